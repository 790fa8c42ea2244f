"""Poster download and transcoding into inline JPEG data URIs."""
from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging

from PIL import Image, ImageOps

from .fetcher import FetchController

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;base64,"


def decode_data_uri(data_uri: str) -> bytes:
    """Return the payload of a base64 ``data:image/...`` URI."""

    header, _, payload = data_uri.partition(",")
    if not payload or ";base64" not in header:
        raise ValueError("Only base64 encoded data URIs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc


def transcode_poster(raw: bytes, width: int, height: int, quality: int) -> bytes:
    """Center-crop ``raw`` to ``width`` x ``height`` and encode it as JPEG."""

    with Image.open(io.BytesIO(raw)) as image:
        image.load()
        rgb = image.convert("RGB")
    fitted = ImageOps.fit(rgb, (width, height), method=Image.Resampling.LANCZOS)
    buffer = io.BytesIO()
    fitted.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class ImageProcessor:
    """Turns poster URLs into fixed-size base64 JPEG data URIs."""

    def __init__(self, fetcher: FetchController) -> None:
        self.fetcher = fetcher

    async def process_image(self, image_url: str, label: str) -> str | None:
        """Download and transcode ``image_url``; ``None`` on any failure."""

        config = self.fetcher.config
        try:
            if image_url.startswith("data:image/"):
                raw = decode_data_uri(image_url)
            else:
                raw = await self.fetcher.fetch_bytes(image_url)
            encoded = await asyncio.to_thread(
                transcode_poster,
                raw,
                config.image_width,
                config.image_height,
                config.image_quality,
            )
        except Exception as exc:
            logger.warning("Failed to process image for %s (%s): %s", label, image_url, exc)
            return None

        logger.info("Processed image for %s (%d bytes)", label, len(encoded))
        return DATA_URI_PREFIX + base64.b64encode(encoded).decode("ascii")
