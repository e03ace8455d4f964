"""Downscale remote images into inline PNG data URIs for skill card entries."""

from __future__ import annotations

import asyncio
import base64
from io import BytesIO

import httpx
from PIL import Image

from skill_service.config import SKILL_THUMBNAIL_SIZE


def resize_to_data_uri(image_data: bytes, size: int = SKILL_THUMBNAIL_SIZE) -> str:
    """Resize raw image bytes to ``size`` x ``size`` and encode as a PNG data URI."""
    with Image.open(BytesIO(image_data)) as img:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        thumb = img.resize((size, size))
        buf = BytesIO()
        thumb.save(buf, "PNG")

    encoded = base64.b64encode(buf.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{encoded}"


async def fetch_thumbnail_data_uri(
    client: httpx.AsyncClient,
    image_url: str,
    size: int = SKILL_THUMBNAIL_SIZE,
) -> str:
    """Download ``image_url`` and return it as a small PNG data URI.

    Network and decode errors propagate; callers decide whether a failed
    thumbnail is fatal.
    """
    resp = await client.get(image_url)
    resp.raise_for_status()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, resize_to_data_uri, resp.content, size)
