"""Expand shortened links to their final destination."""

from __future__ import annotations

from urllib.parse import urlparse

import httpx

from clipfeed.core.logging import get_logger
from clipfeed.core.settings import get_settings
from clipfeed.http_client.robust_http_client import RobustHttpClient, get_http_client

logger = get_logger(__name__)


def _host_matches(host: str, domains: list[str]) -> bool:
    host = host.lower().removeprefix("www.")
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


class UrlResolver:
    """Best-effort resolver: a failed expansion is a missed enrichment, not an error."""

    def __init__(
        self,
        http_client: RobustHttpClient | None = None,
        shortener_domains: list[str] | None = None,
    ) -> None:
        self._http_client = http_client or get_http_client()
        domains = shortener_domains or get_settings().shortener_domains
        self._shortener_domains = [domain.lower() for domain in domains]

    def is_shortened(self, url: str) -> bool:
        try:
            host = urlparse(url.strip()).hostname
        except ValueError:
            return False
        return bool(host) and _host_matches(host, self._shortener_domains)

    def resolve(self, url: str) -> str:
        """Return the redirect destination for shortener links, else ``url`` unchanged.

        Never raises.
        """
        target = url.strip()
        if not self.is_shortened(target):
            return url

        try:
            response = self._http_client.get(target)
        except httpx.HTTPStatusError as e:
            # Redirects were followed; the destination refusing us doesn't matter
            resolved = str(e.response.url)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Could not resolve shortened URL %s: %s",
                url,
                e,
                extra={
                    "component": "url_resolver",
                    "operation": "resolve",
                    "context_data": {"url": url, "error": str(e)},
                },
            )
            return url
        else:
            resolved = str(response.url)

        if resolved != target:
            logger.info("Resolved %s -> %s", url, resolved)
        return resolved
