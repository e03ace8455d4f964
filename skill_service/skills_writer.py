"""SkillsWriter: build skill cards and save them to a file through the Box API.

Cards show up in the Box preview sidebar in the order they are passed to
``save_data_cards``. Every save replaces whatever cards the skill previously
wrote for the same file version, including pending and error status cards.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import ValidationError

from skill_service.box_client import BoxClient
from skill_service.config import BOX_API_ENDPOINT, SKILL_HTTP_TIMEOUT_SECONDS, SKILL_THUMBNAIL_SIZE
from skill_service.errors import CUSTOM_ERROR_CODE, SkillsErrorCode
from skill_service.models import (
    CardTitleRef,
    FileRef,
    InvocationMetadata,
    InvocationRef,
    MetadataCard,
    SkillInvocationBody,
    SkillServiceRef,
    Usage,
)
from skill_service.thumbnails import fetch_thumbnail_data_uri
from skill_service.types import CardTitle, CardType, FileContext, InvocationStatus, UsageUnit

logger = logging.getLogger(__name__)

PROCESSING_MESSAGE = "We're preparing to process your file. Please hold on!"

DEFAULT_USAGE = Usage(unit=UsageUnit.FILES, value=1)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def title_code(title: str) -> str:
    return f"skills_{title.lower()}".replace(" ", "_")


def process_data_list(
    data_list: Iterable[Mapping[str, Any]], duration: float | None = None
) -> list[dict[str, Any]]:
    """Normalize card entries: drop blank text, trim it, and tag image vs text."""
    processed: list[dict[str, Any]] = []
    for data in data_list:
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        if duration and not isinstance(data.get("appears"), list):
            logger.warning(
                "Missing optional 'appears' field in %s which is list of 'start' and 'end' fields",
                data,
            )
        entry = copy.deepcopy(dict(data))
        entry["type"] = "image" if isinstance(data.get("image_url"), str) else "text"
        entry["text"] = text.strip()
        processed.append(entry)
    return processed


def resolve_status(status: object) -> InvocationStatus:
    try:
        return InvocationStatus(status)
    except ValueError:
        return InvocationStatus.SUCCESS


def resolve_usage(usage: object) -> Usage:
    """Validate a ``{unit, value}`` usage record, defaulting to one file."""
    if isinstance(usage, Usage):
        return usage
    if not isinstance(usage, Mapping):
        return DEFAULT_USAGE
    try:
        return Usage.model_validate(usage)
    except ValidationError:
        logger.warning("Ignoring malformed usage %s; defaulting to one file", usage)
        return DEFAULT_USAGE


class SkillsWriter:
    def __init__(
        self,
        file_context: FileContext,
        *,
        api_endpoint: str = BOX_API_ENDPOINT,
        transport: httpx.AsyncBaseTransport | None = None,
        image_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.request_id = file_context.request_id
        self.skill_id = file_context.skill_id
        self.file_id = file_context.file_id
        self._client = BoxClient(
            file_context.file_write_token, base_url=api_endpoint, transport=transport
        )
        self._image_transport = image_transport

    async def __aenter__(self) -> SkillsWriter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def client(self) -> BoxClient:
        return self._client

    # -- Cards ----------------------------------------------------------------

    def create_metadata_card(
        self,
        card_type: CardType,
        title: str,
        status: dict[str, Any] | None = None,
        entries: list[dict[str, Any]] | None = None,
        duration: float | str | None = None,
    ) -> dict[str, Any]:
        """Return a complete skill card ready to pass to ``save_data_cards``."""
        card = MetadataCard(
            created_at=_now_iso(),
            skill=SkillServiceRef(id=self.skill_id),
            skill_card_type=card_type,
            skill_card_title=CardTitleRef(code=title_code(title), message=title),
            invocation=InvocationRef(id=self.request_id),
            status=status or {},
            entries=entries,
            duration=float(duration) if duration else None,
        )
        return card.to_payload()

    def create_topics_card(
        self,
        topics: Iterable[Mapping[str, Any]],
        duration: float | None = None,
        title: str | None = None,
    ) -> dict[str, Any]:
        return self.create_metadata_card(
            CardType.TOPIC,
            title or CardTitle.TOPIC.value,
            entries=process_data_list(topics, duration),
            duration=duration,
        )

    def create_transcripts_card(
        self,
        transcripts: Iterable[Mapping[str, Any]],
        duration: float | None = None,
        title: str | None = None,
    ) -> dict[str, Any]:
        return self.create_metadata_card(
            CardType.TRANSCRIPT,
            title or CardTitle.TRANSCRIPT.value,
            entries=process_data_list(transcripts, duration),
            duration=duration,
        )

    async def create_faces_card(
        self,
        faces: Iterable[Mapping[str, Any]],
        duration: float | None = None,
        title: str | None = None,
    ) -> dict[str, Any]:
        """Build a timeline card whose image entries carry inline thumbnails.

        Each image is fetched and resized independently; an image that cannot
        be fetched or decoded keeps its original URL.
        """
        entries = process_data_list(faces, duration)
        images = [e for e in entries if e["type"] == "image"]

        if images:
            async with httpx.AsyncClient(
                timeout=SKILL_HTTP_TIMEOUT_SECONDS,
                follow_redirects=True,
                transport=self._image_transport,
            ) as http:
                results = await asyncio.gather(
                    *(fetch_thumbnail_data_uri(http, e["image_url"], SKILL_THUMBNAIL_SIZE) for e in images),
                    return_exceptions=True,
                )
            for entry, result in zip(images, results):
                if isinstance(result, BaseException):
                    logger.warning("Keeping original image url %s: %s", entry["image_url"], result)
                    continue
                entry["image_url"] = result

        return self.create_metadata_card(
            CardType.FACES,
            title or CardTitle.FACES.value,
            entries=entries,
            duration=duration,
        )

    # -- Saving ---------------------------------------------------------------

    async def save_processing_card(self) -> dict[str, Any]:
        """Show a "preparing to process" card while the skill is working."""
        status = {"code": InvocationStatus.PENDING.value, "message": PROCESSING_MESSAGE}
        card = self.create_metadata_card(CardType.STATUS, CardTitle.STATUS.value, status)
        return await self.save_data_cards([card], InvocationStatus.PROCESSING)

    async def save_error_card(
        self,
        error_code: SkillsErrorCode | str,
        custom_message: str | None = None,
        failure_type: InvocationStatus | str | None = None,
    ) -> dict[str, Any]:
        """Show an error card; any code outside the known set becomes unknown_error."""
        status = (
            InvocationStatus.TRANSIENT_FAILURE
            if failure_type == InvocationStatus.TRANSIENT_FAILURE
            else InvocationStatus.PERMANENT_FAILURE
        )
        if custom_message:
            error: dict[str, Any] = {"code": CUSTOM_ERROR_CODE, "message": custom_message}
        else:
            error = {"code": SkillsErrorCode.normalize(error_code).value}
        card = self.create_metadata_card(CardType.STATUS, CardTitle.ERROR.value, error)
        return await self.save_data_cards([card], status)

    async def save_data_cards(
        self,
        cards: list[dict[str, Any]],
        status: InvocationStatus | str | None = None,
        usage: Usage | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Save ``cards`` to the file, replacing any cards shown for this version."""
        resolved = resolve_status(status)
        body = SkillInvocationBody(
            status=resolved,
            file=FileRef(id=self.file_id),
            metadata=InvocationMetadata(cards=cards),
            usage=resolve_usage(usage) if resolved is InvocationStatus.SUCCESS else None,
        )
        logger.info(
            "Saving %d card(s) with status %s for file %s", len(cards), resolved.value, self.file_id
        )
        return await self._client.put_skill_invocation(self.skill_id, body.model_dump(mode="json"))
