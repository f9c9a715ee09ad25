"""Video metadata extraction through platform oEmbed endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from clipfeed.core.logging import get_logger
from clipfeed.http_client.robust_http_client import RobustHttpClient, get_http_client
from clipfeed.models.metadata import DEFAULT_VIDEO_TITLE, VideoMetadata, VideoPlatform
from clipfeed.services.url_resolver import UrlResolver
from clipfeed.utils.error_logger import increment_pipeline_metric, log_http_error

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlatformSpec:
    """A supported video platform and its oEmbed endpoint."""

    platform: VideoPlatform
    domains: tuple[str, ...]
    oembed_endpoint: str
    extra_params: dict[str, str] = field(default_factory=dict)

    def matches(self, url: str) -> bool:
        try:
            host = (urlparse(url.lower()).hostname or "").removeprefix("www.")
        except ValueError:
            return False
        return any(host == domain or host.endswith(f".{domain}") for domain in self.domains)


SUPPORTED_PLATFORMS: tuple[PlatformSpec, ...] = (
    PlatformSpec(
        platform=VideoPlatform.YOUTUBE,
        domains=("youtube.com", "youtu.be"),
        oembed_endpoint="https://www.youtube.com/oembed",
        extra_params={"format": "json"},
    ),
    PlatformSpec(
        platform=VideoPlatform.LOOM,
        domains=("loom.com",),
        oembed_endpoint="https://www.loom.com/v1/oembed",
    ),
)


def _text_field(value: object) -> str | None:
    """oEmbed providers occasionally send numbers or objects; keep real text only."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def detect_platform(url: str) -> PlatformSpec | None:
    """Return the platform spec whose domains match ``url``."""
    for spec in SUPPORTED_PLATFORMS:
        if spec.matches(url):
            return spec
    return None


class VideoMetadataExtractor:
    """Resolve a URL, classify its platform and fetch oEmbed metadata.

    ``extract`` returns None for anything it cannot enrich: unsupported
    platforms, failed lookups and malformed responses. It never raises.
    """

    def __init__(
        self,
        http_client: RobustHttpClient | None = None,
        resolver: UrlResolver | None = None,
    ) -> None:
        self._http_client = http_client or get_http_client()
        self._resolver = resolver or UrlResolver(http_client=self._http_client)

    def extract(self, url: str) -> VideoMetadata | None:
        resolved_url = self._resolver.resolve(url)
        logger.debug("Processing URL: %s", resolved_url)

        spec = detect_platform(resolved_url)
        if spec is None:
            logger.info("URL not from supported platform: %s", resolved_url)
            increment_pipeline_metric("video_metadata", "unsupported")
            return None

        try:
            response = self._http_client.get(
                spec.oembed_endpoint,
                params={"url": resolved_url, **spec.extra_params},
            )
            data = response.json()
        except httpx.HTTPStatusError as e:
            log_http_error(
                "video_metadata",
                spec.oembed_endpoint,
                response=e.response,
                error=e,
                operation="oembed_lookup",
                context={"platform": spec.platform.value, "video_url": resolved_url},
                level=logging.WARNING,
            )
            increment_pipeline_metric("video_metadata", "lookup_failed")
            return None
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "%s oEmbed request failed for %s: %s",
                spec.platform.value,
                resolved_url,
                e,
                extra={
                    "component": "video_metadata",
                    "operation": "oembed_lookup",
                    "context_data": {"platform": spec.platform.value, "error": str(e)},
                },
            )
            increment_pipeline_metric("video_metadata", "lookup_failed")
            return None

        if not isinstance(data, dict):
            logger.warning("Unexpected oEmbed payload for %s: %r", resolved_url, data)
            increment_pipeline_metric("video_metadata", "lookup_failed")
            return None

        try:
            metadata = VideoMetadata(
                url=resolved_url,
                thumbnail_url=_text_field(data.get("thumbnail_url")),
                title=_text_field(data.get("title")) or DEFAULT_VIDEO_TITLE,
                platform=spec.platform,
                description=_text_field(data.get("description")),
            )
        except ValidationError as e:
            logger.warning("Invalid oEmbed payload for %s: %s", resolved_url, e)
            increment_pipeline_metric("video_metadata", "lookup_failed")
            return None

        increment_pipeline_metric("video_metadata", "extracted")
        return metadata
