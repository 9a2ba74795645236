from __future__ import annotations

"""Lightweight async HTTP JSON client for the rate source.

Single attempt per call: the rate provider's pivot cascade is the only retry
mechanism, so a failed request surfaces immediately as HttpError carrying the
HTTP status (None for transport failures).
"""
from typing import Any, Dict, Optional

import httpx


class HttpError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


async def get_json(
    url: str,
    *,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.get(url)
    except httpx.HTTPError as e:
        raise HttpError(f"Failed to fetch JSON from {_redact(url)}: {e!r}") from e
    if resp.status_code >= 400:
        raise HttpError(f"HTTP {resp.status_code} for {_redact(url)}", resp.status_code)
    try:
        data = resp.json()
    except ValueError as e:  # JSON decode
        raise HttpError(f"Invalid JSON from {_redact(url)}", resp.status_code) from e
    if not isinstance(data, dict):
        raise HttpError(f"Unexpected JSON payload from {_redact(url)}", resp.status_code)
    return data


def _redact(url: str) -> str:
    # exchangerate-api embeds the key in the path: /v6/<key>/latest/<pivot>
    parts = url.split("/")
    if "latest" in parts:
        idx = parts.index("latest")
        if idx >= 1:
            parts[idx - 1] = "***"
    return "/".join(parts)
