"""Skill invocation handling: verify, read, apply the metadata rule, report back.

The Box skills engine expects an answer within its invocation deadline
(about 10 seconds). A 200 acknowledges the event, 401 rejects an unsigned
request, and any other failure is answered with 400 so Box retries it with
exponential backoff.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from skill_service.config import (
    BOX_PRIMARY_KEY,
    BOX_SECONDARY_KEY,
    SKILL_ALLOWED_FORMATS,
    SKILL_MATCH_FIELD,
    SKILL_MATCH_VALUE,
    SKILL_MAX_FILE_MB,
    SKILL_SHOW_PROCESSING_CARD,
    SKILL_SOURCE_SCOPE,
    SKILL_SOURCE_TEMPLATE,
    SKILL_TARGET_TEMPLATE,
    SKILL_TARGET_VALUES,
)
from skill_service.errors import SkillsError, SkillsErrorCode
from skill_service.files_reader import FilesReader
from skill_service.models import Usage
from skill_service.signature import validate_webhook_message
from skill_service.skills_writer import SkillsWriter
from skill_service.types import FileContext, InvocationStatus, UsageUnit

logger = logging.getLogger(__name__)

MSG_PROCESSED = "Box event was processed by skill"
MSG_NOT_APPLICABLE = "Not an applicable document"
MSG_UNAUTHORIZED = "Unauthorized"
MSG_INVALID_EVENT = "Invalid skill event"
MSG_RETRY = "Something went wrong. The process will retry via exponential backoff."
ERROR_CARD_MESSAGE = "Something went wrong. It will retry again in a few minutes."


@dataclass(frozen=True)
class SkillResult:
    status_code: int
    message: str


async def apply_metadata_rule(writer: SkillsWriter, ctx: FileContext) -> bool:
    """Copy the configured values onto the file if its source template matches.

    Returns False when the source template is not applied to the file or its
    match field holds a different value.
    """
    logger.info("Getting %s/%s metadata for file id %s", SKILL_SOURCE_SCOPE, SKILL_SOURCE_TEMPLATE, ctx.file_id)
    instance = await writer.client.get_metadata(ctx.file_id, SKILL_SOURCE_SCOPE, SKILL_SOURCE_TEMPLATE)
    if instance is None or instance.get(SKILL_MATCH_FIELD) != SKILL_MATCH_VALUE:
        return False

    await writer.client.set_metadata(ctx.file_id, SKILL_SOURCE_SCOPE, SKILL_TARGET_TEMPLATE, SKILL_TARGET_VALUES)
    logger.info("Wrote %s/%s metadata for file id %s", SKILL_SOURCE_SCOPE, SKILL_TARGET_TEMPLATE, ctx.file_id)
    return True


def check_file(reader: FilesReader) -> None:
    """Apply the configured format and size gate; raises SkillsError on a mismatch."""
    if SKILL_ALLOWED_FORMATS:
        reader.validate_format(SKILL_ALLOWED_FORMATS)
    if SKILL_MAX_FILE_MB > 0:
        reader.validate_size(SKILL_MAX_FILE_MB)


async def _report_failure(writer: SkillsWriter, exc: Exception) -> None:
    try:
        if isinstance(exc, SkillsError):
            await writer.save_error_card(exc.code)
        else:
            await writer.save_error_card(SkillsErrorCode.UNKNOWN, ERROR_CARD_MESSAGE)
    except Exception:
        logger.exception("Failed to save error card for file %s", writer.file_id)


async def handle_skill_event(
    body: bytes,
    headers: Mapping[str, str],
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SkillResult:
    """Process one skill event end to end and return the HTTP answer for Box."""
    if not validate_webhook_message(body, headers, BOX_PRIMARY_KEY, BOX_SECONDARY_KEY):
        logger.warning("Webhook signature keys were not valid")
        return SkillResult(401, MSG_UNAUTHORIZED)

    try:
        reader = FilesReader(body, transport=transport)
    except SkillsError:
        return SkillResult(400, MSG_INVALID_EVENT)

    ctx = reader.get_file_context()
    extra = {"request_id": ctx.request_id, "skill_id": ctx.skill_id, "file_id": ctx.file_id}
    writer = SkillsWriter(ctx, transport=transport)
    try:
        try:
            check_file(reader)
        except SkillsError as e:
            logger.info("Skipping file %s: %s", ctx.file_id, e.code.value, extra=extra)
            return SkillResult(200, MSG_NOT_APPLICABLE)

        if SKILL_SHOW_PROCESSING_CARD:
            await writer.save_processing_card()

        applied = await apply_metadata_rule(writer, ctx)

        if SKILL_SHOW_PROCESSING_CARD:
            # clears the processing card; only an applied rule bills the file
            usage = Usage(unit=UsageUnit.FILES, value=1 if applied else 0)
            await writer.save_data_cards([], InvocationStatus.SUCCESS, usage)

        if not applied:
            logger.info("File %s is not an applicable document", ctx.file_id, extra=extra)
            return SkillResult(200, MSG_NOT_APPLICABLE)
        logger.info("Skill process completed for file %s", ctx.file_id, extra=extra)
        return SkillResult(200, MSG_PROCESSED)
    except Exception as e:
        logger.exception("Skill processing failed for file %s", ctx.file_id, extra=extra)
        await _report_failure(writer, e)
        return SkillResult(400, MSG_RETRY)
    finally:
        await reader.aclose()
        await writer.aclose()
