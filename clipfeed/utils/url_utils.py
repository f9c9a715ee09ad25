"""URL filtering helpers."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def filter_http_urls(raw_urls: Iterable[Any] | None) -> list[str]:
    """Keep entries that look like web links, preserving order and duplicates."""
    if not raw_urls:
        return []
    return [url for url in raw_urls if isinstance(url, str) and url.startswith("http")]
