"""Shared URL utilities — resolve scenario URLs and derive ports."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urljoin, urlparse

_DEFAULT_PORTS = {"http": 80, "https": 443}


def port_from_url(url: str) -> Optional[int]:
    """Return the explicit or scheme-implied port, or None for a malformed URL."""
    parsed = urlparse(url)
    if parsed.scheme not in _DEFAULT_PORTS or not parsed.hostname:
        return None
    try:
        port = parsed.port
    except ValueError:
        return None
    return port if port is not None else _DEFAULT_PORTS[parsed.scheme]


def host_from_url(url: str) -> str:
    return urlparse(url).hostname or "localhost"


def resolve_url(base_url: str, url: str) -> str:
    """Resolve a scenario URL (possibly relative, possibly empty) against the base URL."""
    if not url:
        return base_url
    return urljoin(base_url if base_url.endswith("/") else base_url + "/", url)
