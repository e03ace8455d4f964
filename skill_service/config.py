"""Environment-variable-driven configuration for the Box skill service.

All config comes from env vars; nothing is read from disk.
"""

from __future__ import annotations

import json
import os
from typing import Any


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


def _env_json(name: str, default: str) -> dict[str, Any]:
    raw = os.getenv(name, default)
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a JSON object")
    return value


# -- Webhook signature --------------------------------------------------------
BOX_PRIMARY_KEY: str | None = os.getenv("BOX_PRIMARY_KEY")
BOX_SECONDARY_KEY: str | None = os.getenv("BOX_SECONDARY_KEY")
SKILL_SIGNATURE_MAX_AGE_SECONDS: int = int(os.getenv("SKILL_SIGNATURE_MAX_AGE_SECONDS", "600"))

# -- Box API ------------------------------------------------------------------
BOX_API_ENDPOINT: str = os.getenv("BOX_API_ENDPOINT", "https://api.box.com/2.0").rstrip("/")
SKILL_HTTP_TIMEOUT_SECONDS: float = float(os.getenv("SKILL_HTTP_TIMEOUT_SECONDS", "8.0"))
SKILL_HTTP_MAX_RETRIES: int = int(os.getenv("SKILL_HTTP_MAX_RETRIES", "2"))
SKILL_HTTP_RETRY_BASE_SECONDS: float = float(os.getenv("SKILL_HTTP_RETRY_BASE_SECONDS", "0.5"))

# -- Representations ----------------------------------------------------------
SKILL_REPRESENTATION_POLL_SECONDS: float = float(os.getenv("SKILL_REPRESENTATION_POLL_SECONDS", "1.0"))
SKILL_REPRESENTATION_MAX_POLLS: int = int(os.getenv("SKILL_REPRESENTATION_MAX_POLLS", "8"))

# -- Cards --------------------------------------------------------------------
SKILL_THUMBNAIL_SIZE: int = int(os.getenv("SKILL_THUMBNAIL_SIZE", "45"))
SKILL_SHOW_PROCESSING_CARD: bool = _env_bool("SKILL_SHOW_PROCESSING_CARD", False)

# -- File gate (empty list / 0 disables the check) ----------------------------
SKILL_ALLOWED_FORMATS: list[str] = _env_csv("SKILL_ALLOWED_FORMATS", "")
SKILL_MAX_FILE_MB: float = float(os.getenv("SKILL_MAX_FILE_MB", "0"))

# -- Metadata rule ------------------------------------------------------------
SKILL_SOURCE_SCOPE: str = os.getenv("SKILL_SOURCE_SCOPE", "enterprise")
SKILL_SOURCE_TEMPLATE: str = os.getenv("SKILL_SOURCE_TEMPLATE", "eventSubmissionDocument")
SKILL_MATCH_FIELD: str = os.getenv("SKILL_MATCH_FIELD", "documentType")
SKILL_MATCH_VALUE: str = os.getenv("SKILL_MATCH_VALUE", "Event Plan")
SKILL_TARGET_TEMPLATE: str = os.getenv("SKILL_TARGET_TEMPLATE", "eventDetails")
SKILL_TARGET_VALUES: dict[str, Any] = _env_json("SKILL_TARGET_VALUES", '{"participantCount": 500}')

# -- Server -------------------------------------------------------------------
SKILL_LOG_LEVEL: str = os.getenv("SKILL_LOG_LEVEL", "INFO")
SKILL_RATE_LIMIT: str = os.getenv("SKILL_RATE_LIMIT", "120/minute")
IS_CLOUD_RUN: bool = bool(os.getenv("K_SERVICE"))
