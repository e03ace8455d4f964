"""
Box webhook signature verification (HMAC-SHA256, signature version 1).

Box signs ``body + box-delivery-timestamp`` with two rotating keys and sends
both results, base64-encoded, in ``box-signature-primary`` and
``box-signature-secondary``. A message is genuine if either signature matches.
Deliveries older than the maximum age are rejected; timestamps ahead of the
local clock are accepted, as in Box's own SDKs. All checks return False on
missing keys or headers (fail closed).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from collections.abc import Mapping
from datetime import UTC, datetime

from skill_service.config import SKILL_SIGNATURE_MAX_AGE_SECONDS

logger = logging.getLogger(__name__)

SIGNATURE_VERSION = "1"
SIGNATURE_ALGORITHM = "HmacSHA256"


def _lower_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {k.lower(): v for k, v in headers.items()}


def _timestamp_is_fresh(timestamp: str, max_age_seconds: int, now: datetime | None = None) -> bool:
    try:
        delivered = datetime.fromisoformat(timestamp)
    except ValueError:
        return False
    if delivered.tzinfo is None:
        delivered = delivered.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    return (now - delivered).total_seconds() <= max_age_seconds


def compute_signature(body: bytes, timestamp: str, key: str) -> str:
    digest = hmac.new(key.encode("utf-8"), body + timestamp.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def validate_webhook_message(
    body: bytes | str,
    headers: Mapping[str, str],
    primary_key: str | None,
    secondary_key: str | None,
    *,
    max_age_seconds: int = SKILL_SIGNATURE_MAX_AGE_SECONDS,
    now: datetime | None = None,
) -> bool:
    """Return True if the message was signed by Box with either key."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    h = _lower_headers(headers)

    if h.get("box-signature-version") != SIGNATURE_VERSION:
        return False
    if h.get("box-signature-algorithm") != SIGNATURE_ALGORITHM:
        return False

    timestamp = h.get("box-delivery-timestamp", "")
    if not timestamp or not _timestamp_is_fresh(timestamp, max_age_seconds, now):
        logger.warning("Webhook delivery timestamp missing or older than %ds", max_age_seconds)
        return False

    for key, header in ((primary_key, "box-signature-primary"), (secondary_key, "box-signature-secondary")):
        if not key:
            continue
        expected = compute_signature(body, timestamp, key).encode("ascii")
        if hmac.compare_digest(h.get(header, "").encode("utf-8"), expected):
            return True
    return False
