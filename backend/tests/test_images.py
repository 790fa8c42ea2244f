"""Tests for poster download and transcoding."""
from __future__ import annotations

import asyncio
import base64
import io
import sys
from pathlib import Path

import httpx
import pytest
from PIL import Image

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.harvester import FetchController, ImageProcessor, ScraperConfig  # noqa: E402
from backend.harvester.images import DATA_URI_PREFIX, decode_data_uri  # noqa: E402


def _png_bytes(size: tuple[int, int] = (640, 480), mode: str = "RGBA") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


def _decode(data_uri: str) -> Image.Image:
    assert data_uri.startswith(DATA_URI_PREFIX)
    return Image.open(io.BytesIO(base64.b64decode(data_uri[len(DATA_URI_PREFIX):])))


def _process(image_url: str, handler) -> str | None:
    async def no_sleep(_: float) -> None:
        return None

    config = ScraperConfig(rate_limit_interval=0, image_width=300, image_height=450)

    async def scenario() -> str | None:
        async with FetchController(config, transport=httpx.MockTransport(handler), sleep=no_sleep) as fetcher:
            return await ImageProcessor(fetcher).process_image(image_url, "Sample Movie")

    return asyncio.run(scenario())


def test_remote_poster_is_cropped_to_jpeg_data_uri() -> None:
    payload = _png_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=payload, headers={"Content-Type": "image/png"})

    data_uri = _process("https://cdn.example/poster.png", handler)

    assert data_uri is not None
    image = _decode(data_uri)
    assert image.format == "JPEG"
    assert image.size == (300, 450)
    assert image.mode == "RGB"


def test_missing_poster_yields_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    assert _process("https://cdn.example/missing.jpg", handler) is None


def test_undecodable_poster_yields_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not an image</html>")

    assert _process("https://cdn.example/poster.jpg", handler) is None


def test_inline_data_uri_is_transcoded_without_fetching() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(500)

    source = "data:image/png;base64," + base64.b64encode(_png_bytes((100, 100), "RGB")).decode("ascii")

    data_uri = _process(source, handler)

    assert data_uri is not None
    assert _decode(data_uri).size == (300, 450)
    assert calls == []


def test_decode_data_uri_rejects_non_base64_payloads() -> None:
    with pytest.raises(ValueError):
        decode_data_uri("data:image/svg+xml,<svg></svg>")
    with pytest.raises(ValueError):
        decode_data_uri("data:image/png;base64,@@@")
