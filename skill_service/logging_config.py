"""Logging setup for the skill service.

JSON lines with GCP severity on Cloud Run (python-json-logger), plain text
locally. Box hands out file tokens in URLs, so every handler redacts
``access_token`` query values before a record is written.
"""

from __future__ import annotations

import logging
import re
import uuid

from pythonjsonlogger.json import JsonFormatter

from skill_service.config import IS_CLOUD_RUN, SKILL_LOG_LEVEL

_TOKEN_RE = re.compile(r"(access_token=)[^&\s\"']+")


def redact_tokens(text: str) -> str:
    return _TOKEN_RE.sub(r"\1[REDACTED]", text)


class TokenRedactingFilter(logging.Filter):
    """Replace access_token values in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class SkillJsonFormatter(JsonFormatter):
    """JSON formatter emitting Cloud Logging ``severity`` and skill correlation ids."""

    def add_fields(
        self,
        log_record: dict[str, object],
        record: logging.LogRecord,
        message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["severity"] = record.levelname
        log_record.pop("levelname", None)
        for key in ("request_id", "skill_id", "file_id"):
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value


def setup_logging(*, level: str | None = None, json_output: bool | None = None) -> None:
    """Replace root handlers with one redacting stream handler.

    ``json_output`` defaults to True on Cloud Run.
    """
    if json_output is None:
        json_output = IS_CLOUD_RUN

    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or SKILL_LOG_LEVEL).upper(), logging.INFO))
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.addFilter(TokenRedactingFilter())
    if json_output:
        handler.setFormatter(SkillJsonFormatter(
            fmt="%(message)s %(name)s %(funcName)s %(lineno)d",
            rename_fields={"name": "logger"},
        ))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d  %(message)s",
            datefmt="%H:%M:%S",
        ))
    root.addHandler(handler)

    # request lines carry access_token query params
    logging.getLogger("httpx").setLevel(logging.WARNING)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:16]
