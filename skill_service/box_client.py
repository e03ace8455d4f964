"""Thin async client for the parts of the Box REST API a skill needs.

Each client is bound to one access token from the skill event (read or write)
and is closed at the end of the invocation.
"""

from __future__ import annotations

import asyncio
import json as jsonlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from skill_service.config import (
    BOX_API_ENDPOINT,
    SKILL_HTTP_MAX_RETRIES,
    SKILL_HTTP_RETRY_BASE_SECONDS,
    SKILL_HTTP_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {502, 503, 504}

SKILL_INVOCATIONS_PATH = "/skill_invocations"


class BoxClient:
    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = BOX_API_ENDPOINT,
        timeout: float = SKILL_HTTP_TIMEOUT_SECONDS,
        max_retries: int = SKILL_HTTP_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._max_retries = max(0, max_retries)
        self._http = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> BoxClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def url(self, url_or_path: str) -> str:
        """Resolve an API path against the base URL; absolute URLs pass through."""
        if url_or_path.startswith(("http://", "https://")):
            return url_or_path
        return f"{self.base_url}/{url_or_path.lstrip('/')}"

    async def request(
        self,
        method: str,
        url_or_path: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: str | None = None,
    ) -> httpx.Response:
        """Make a request, retrying transient gateway failures with backoff."""
        url = self.url(url_or_path)
        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._http.request(
                    method, url, headers=headers, json=json, params=params, content=content
                )
                if resp.status_code not in _RETRYABLE_STATUS or attempt >= self._max_retries:
                    return resp
                logger.warning(
                    "Box API %s %s returned %d (attempt %d/%d)",
                    method,
                    url_or_path,
                    resp.status_code,
                    attempt + 1,
                    self._max_retries + 1,
                )
            except (httpx.ConnectError, httpx.ReadTimeout) as e:
                if attempt >= self._max_retries:
                    raise
                logger.warning(
                    "Box API request failed (attempt %d/%d): %s",
                    attempt + 1,
                    self._max_retries + 1,
                    e,
                )
            await asyncio.sleep(SKILL_HTTP_RETRY_BASE_SECONDS * (2**attempt))
        raise RuntimeError("Unreachable retry path")

    async def get_json(
        self,
        url_or_path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        resp = await self.request("GET", url_or_path, params=params, headers=headers)
        resp.raise_for_status()
        return resp.json()

    @asynccontextmanager
    async def stream(self, url_or_path: str) -> AsyncIterator[httpx.Response]:
        """Open a streaming GET; raises HTTPStatusError before yielding on failure."""
        async with self._http.stream("GET", self.url(url_or_path)) as resp:
            if resp.is_error:
                await resp.aread()
                resp.raise_for_status()
            yield resp

    # -- Files ----------------------------------------------------------------

    async def get_representation_info(self, file_id: str, rep_hints: str) -> dict[str, Any]:
        """Return the file's ``representations`` object for the given hints."""
        body = await self.get_json(
            f"/files/{file_id}",
            params={"fields": "representations"},
            headers={"x-rep-hints": rep_hints},
        )
        return body.get("representations") or {"entries": []}

    def file_content_path(self, file_id: str) -> str:
        return f"/files/{file_id}/content"

    # -- Metadata -------------------------------------------------------------

    async def get_metadata(self, file_id: str, scope: str, template: str) -> dict[str, Any] | None:
        """Return a metadata instance, or None when the template is not applied."""
        resp = await self.request("GET", f"/files/{file_id}/metadata/{scope}/{template}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def set_metadata(
        self, file_id: str, scope: str, template: str, values: dict[str, Any]
    ) -> dict[str, Any]:
        """Create a metadata instance, or update it in place if it already exists."""
        path = f"/files/{file_id}/metadata/{scope}/{template}"
        resp = await self.request("POST", path, json=values)
        if resp.status_code == 409:
            ops = [{"op": "add", "path": f"/{key}", "value": value} for key, value in values.items()]
            resp = await self.request(
                "PUT",
                path,
                content=jsonlib.dumps(ops),
                headers={"Content-Type": "application/json-patch+json"},
            )
        resp.raise_for_status()
        return resp.json()

    # -- Skill invocations ----------------------------------------------------

    async def put_skill_invocation(self, skill_id: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = await self.request(
            "PUT",
            f"{SKILL_INVOCATIONS_PATH}/{skill_id}",
            json=body,
            headers={"Cache-Control": "no-cache", "Content-Type": "application/json"},
        )
        resp.raise_for_status()
        if not resp.content:
            return {}
        return resp.json()
