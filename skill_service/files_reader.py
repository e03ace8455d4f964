"""FilesReader: typed access to the file referenced by a Box Skills event.

Wraps the event payload in a FileContext and reads the file through the
event's read token, either as uploaded or in a "basic format" representation
that ML providers accept more readily (mp3 for audio, mp4 for video, jpg for
images, extracted text for documents). Basic formats may need to be generated
first, so those calls can wait on representation polling.
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import AsyncIterator, Collection, Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from skill_service.box_client import BoxClient
from skill_service.config import BOX_API_ENDPOINT
from skill_service.errors import ClientAuthorizationError, SkillsError, SkillsErrorCode
from skill_service.models import SkillEvent
from skill_service.representations import expand_url_template, resolve_representation_template
from skill_service.types import FileContext, derive_file_format, derive_file_type

logger = logging.getLogger(__name__)

MB_INTO_BYTES = 1_048_576


def parse_event(body: Mapping[str, Any] | str | bytes) -> SkillEvent:
    """Decode and validate a raw skill event body.

    Raises SkillsError(INVALID_EVENT) when the body is not JSON or is missing
    any of the skill id, source id/name/size, or read/write tokens.
    """
    try:
        payload = body if isinstance(body, Mapping) else json.loads(body)
        return SkillEvent.model_validate(payload)
    except (ValueError, ValidationError) as e:
        # pydantic's ValidationError subclasses ValueError; both mean a bad event
        logger.error("Invalid skill event: %s", e)
        raise SkillsError(SkillsErrorCode.INVALID_EVENT) from e


class FilesReader:
    def __init__(
        self,
        body: Mapping[str, Any] | str | bytes,
        *,
        api_endpoint: str = BOX_API_ENDPOINT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        event = parse_event(body)
        file_format = derive_file_format(event.source.name)
        api_endpoint = api_endpoint.rstrip("/")

        self._context = FileContext(
            request_id=event.id,
            skill_id=event.skill.id,
            file_id=event.source.id,
            file_name=event.source.name,
            file_size=event.source.size,
            file_format=file_format,
            file_type=derive_file_type(file_format),
            file_read_token=event.token.read.access_token,
            file_write_token=event.token.write.access_token,
            file_download_url=(
                f"{api_endpoint}/files/{event.source.id}/content"
                f"?access_token={event.token.read.access_token}"
            ),
        )
        self._client = BoxClient(
            self._context.file_read_token, base_url=api_endpoint, transport=transport
        )

    async def __aenter__(self) -> FilesReader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def client(self) -> BoxClient:
        return self._client

    def get_file_context(self) -> FileContext:
        return self._context

    # -- Validation -----------------------------------------------------------

    def validate_format(self, allowed_formats: Collection[str]) -> bool:
        """Return True if the file's format is allowed, else raise INVALID_FILE_FORMAT."""
        if self._context.file_format in allowed_formats:
            return True
        logger.error("File format %s is not accepted by this skill", self._context.file_format)
        raise SkillsError(SkillsErrorCode.INVALID_FILE_FORMAT)

    def validate_size(self, allowed_megabytes: float) -> bool:
        """Return True if the file is within the size limit, else raise INVALID_FILE_SIZE."""
        size_mb = self._context.file_size / MB_INTO_BYTES
        if size_mb <= allowed_megabytes:
            return True
        logger.error(
            "File size %.2f MB is over accepted limit of %s MB", size_mb, allowed_megabytes
        )
        raise SkillsError(SkillsErrorCode.INVALID_FILE_SIZE)

    # -- Original content -----------------------------------------------------

    async def get_content_stream(self) -> AsyncIterator[bytes]:
        """Yield the uploaded file's bytes in chunks."""
        async with self._client.stream(self._client.file_content_path(self._context.file_id)) as resp:
            async for chunk in resp.aiter_bytes():
                yield chunk

    async def get_content(self) -> bytes:
        return b"".join([chunk async for chunk in self.get_content_stream()])

    async def get_content_base64(self) -> str:
        return base64.b64encode(await self.get_content()).decode("ascii")

    # -- Basic format ---------------------------------------------------------

    async def _basic_format_template(self) -> str:
        return await resolve_representation_template(
            self._client,
            self._context.file_id,
            self._context.file_type.representation_type,
        )

    async def get_basic_format_file_url(self) -> str:
        """Like ``file_download_url`` but pointing at the basic-format representation."""
        template = await self._basic_format_template()
        return f"{expand_url_template(template)}?access_token={self._context.file_read_token}"

    async def get_basic_format_content_stream(self) -> AsyncIterator[bytes]:
        """Yield the basic-format representation's bytes in chunks.

        Raises ClientAuthorizationError if Box rejects the read token, whether
        on the representation lookup, the readiness poll or the download.
        """
        try:
            url = expand_url_template(await self._basic_format_template())
            async with self._client.stream(url) as resp:
                async for chunk in resp.aiter_bytes():
                    yield chunk
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                raise ClientAuthorizationError(
                    "The client provided is unauthorized. "
                    "Client should have read access to the file passed"
                ) from e
            raise

    async def get_basic_format_content(self) -> bytes:
        return b"".join([chunk async for chunk in self.get_basic_format_content_stream()])

    async def get_basic_format_content_base64(self) -> str:
        return base64.b64encode(await self.get_basic_format_content()).decode("ascii")
