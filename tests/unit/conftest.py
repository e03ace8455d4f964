"""Unit test conftest: no network required."""

from __future__ import annotations

import io

import pytest


@pytest.fixture
def sample_png_bytes() -> bytes:
    """Generate a 120x80 RGB PNG in memory."""
    image_mod = pytest.importorskip("PIL.Image")
    img = image_mod.new("RGB", (120, 80), (200, 30, 30))
    buf = io.BytesIO()
    img.save(buf, "PNG")
    return buf.getvalue()
