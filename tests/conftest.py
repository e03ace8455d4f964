"""Shared test fixtures for the skill service test suite."""

from __future__ import annotations

import copy
import json
from datetime import UTC, datetime
from typing import Any

import pytest

from skill_service.signature import compute_signature

PRIMARY_KEY = "primary-test-key"
SECONDARY_KEY = "secondary-test-key"

_EVENT: dict[str, Any] = {
    "type": "skill_invocation",
    "id": "req-123",
    "skill": {"id": 7001, "type": "skill", "name": "event-skill"},
    "source": {"id": "file-42", "type": "file", "name": "Plan.PDF", "size": 2048},
    "token": {
        "read": {"access_token": "read-token", "token_type": "bearer"},
        "write": {"access_token": "write-token", "token_type": "bearer"},
    },
}


@pytest.fixture
def skill_event() -> dict[str, Any]:
    return copy.deepcopy(_EVENT)


@pytest.fixture
def event_body(skill_event: dict[str, Any]) -> bytes:
    return json.dumps(skill_event).encode("utf-8")


def signed_headers(
    body: bytes,
    *,
    primary: str | None = PRIMARY_KEY,
    secondary: str | None = SECONDARY_KEY,
    timestamp: str | None = None,
) -> dict[str, str]:
    """Headers Box would send for ``body`` signed with the given keys."""
    ts = timestamp or datetime.now(UTC).isoformat()
    headers = {
        "box-delivery-timestamp": ts,
        "box-signature-version": "1",
        "box-signature-algorithm": "HmacSHA256",
    }
    if primary:
        headers["box-signature-primary"] = compute_signature(body, ts, primary)
    if secondary:
        headers["box-signature-secondary"] = compute_signature(body, ts, secondary)
    return headers
