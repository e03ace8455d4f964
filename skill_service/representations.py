"""Readiness polling for Box representations (converted renditions of a file).

Box generates representations asynchronously. An info object carries
``status.state`` which moves from ``none``/``pending`` to ``success`` (or
``viewable`` for partially generated video) or ``error``. Polling uses a fixed
delay and an explicit attempt cap.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import uritemplate

from skill_service import config
from skill_service.box_client import BoxClient
from skill_service.errors import SkillsError, SkillsErrorCode

logger = logging.getLogger(__name__)

READY_STATES = frozenset({"success", "viewable"})
WAITING_STATES = frozenset({"none", "pending"})
ERROR_STATE = "error"

Sleep = Callable[[float], Awaitable[Any]]


def _state_of(info: dict[str, Any]) -> str | None:
    status = info.get("status") or {}
    return status.get("state")


def _content_template(info: dict[str, Any]) -> str:
    template = (info.get("content") or {}).get("url_template")
    if not template:
        logger.error("Representation is ready but has no content url_template")
        raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)
    return str(template)


async def poll_representation_info(
    client: BoxClient,
    info_url: str,
    *,
    interval: float | None = None,
    max_attempts: int | None = None,
    sleep: Sleep | None = None,
) -> str:
    """Query ``info_url`` until the representation is ready; return its url_template.

    ``interval`` and ``max_attempts`` default to SKILL_REPRESENTATION_POLL_SECONDS
    and SKILL_REPRESENTATION_MAX_POLLS; a cap of 0 polls until the caller's own
    deadline. Raises SkillsError(FILE_PROCESSING_ERROR) on an ``error`` state,
    an unknown state, or when every allowed query came back pending.
    """
    if interval is None:
        interval = config.SKILL_REPRESENTATION_POLL_SECONDS
    if max_attempts is None:
        max_attempts = config.SKILL_REPRESENTATION_MAX_POLLS
    sleep = sleep or asyncio.sleep

    attempt = 0
    while True:
        attempt += 1
        info = await client.get_json(info_url)
        state = _state_of(info)

        if state in READY_STATES:
            return _content_template(info)
        if state == ERROR_STATE:
            logger.error("Representation had error status")
            raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)
        if state not in WAITING_STATES:
            logger.error("Unknown representation status: %s", state)
            raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)

        if max_attempts > 0 and attempt >= max_attempts:
            logger.error("Representation still %s after %d polls", state, attempt)
            raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)
        await sleep(interval)


async def resolve_representation_template(
    client: BoxClient,
    file_id: str,
    rep_hints: str,
    *,
    interval: float | None = None,
    max_attempts: int | None = None,
    sleep: Sleep | None = None,
) -> str:
    """Look up the file's representation for ``rep_hints`` and wait until it is ready."""
    reps = await client.get_representation_info(file_id, rep_hints)
    entries = reps.get("entries") or []
    if not entries:
        logger.error("Could not get information for requested representation")
        raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)

    rep_info = entries[-1]
    state = _state_of(rep_info)

    if state in READY_STATES:
        return _content_template(rep_info)
    if state == ERROR_STATE:
        logger.error("Representation had error status")
        raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)
    if state in WAITING_STATES:
        info_url = (rep_info.get("info") or {}).get("url")
        if not info_url:
            logger.error("Pending representation has no info url")
            raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)
        return await poll_representation_info(
            client, info_url, interval=interval, max_attempts=max_attempts, sleep=sleep
        )

    logger.error("Unknown representation status: %s", state)
    raise SkillsError(SkillsErrorCode.FILE_PROCESSING_ERROR)


def expand_url_template(template: str, asset_path: str = "") -> str:
    """Expand a representation content url_template (RFC 6570).

    Box templates carry a single ``{+asset_path}`` variable; any other
    variable expands to nothing.
    """
    return uritemplate.expand(template, asset_path=asset_path)
