"""HTTP client helpers for the Reelharvest CLI."""
from __future__ import annotations

import httpx


def create_client(base_url: str, *, timeout: float = 10.0, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Instantiate an HTTPX client bound to the manager API base URL."""

    return httpx.Client(base_url=base_url, timeout=timeout, transport=transport, follow_redirects=True)
