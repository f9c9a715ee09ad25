"""Download video bytes for multimodal analysis using yt-dlp."""

from __future__ import annotations

import mimetypes
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yt_dlp

from clipfeed.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MEDIA_TYPE = "video/mp4"


class VideoFetchError(Exception):
    """The video content could not be downloaded."""


@dataclass(frozen=True)
class VideoContent:
    data: bytes
    media_type: str
    source_url: str


class _YtDlpLogger:
    def __init__(self, base_logger):
        self._logger = base_logger

    def debug(self, msg: str) -> None:
        self._logger.debug(msg)

    def warning(self, msg: str) -> None:
        self._logger.warning(msg)

    def error(self, msg: str) -> None:
        self._logger.warning(msg)


class VideoContentFetcher:
    """Fetch the smallest available rendition of a video into memory."""

    def __init__(self, max_bytes: int, user_agent: str | None = None) -> None:
        self.max_bytes = max_bytes
        self.user_agent = user_agent

    def _build_ydl_opts(self, target_dir: str) -> dict[str, Any]:
        opts: dict[str, Any] = {
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "ignoreerrors": False,
            "logger": _YtDlpLogger(logger),
            # Smallest mp4 keeps the inline payload under provider limits
            "format": "worst[ext=mp4]/worst",
            "max_filesize": self.max_bytes,
            "outtmpl": str(Path(target_dir) / "video.%(ext)s"),
        }
        if self.user_agent:
            opts["user_agent"] = self.user_agent
        return opts

    def fetch(self, url: str) -> VideoContent:
        """Download ``url`` and return its bytes.

        Raises:
            VideoFetchError: on download failure, a missing file, or an
                oversized or empty file.
        """
        with tempfile.TemporaryDirectory(prefix="clipfeed-video-") as target_dir:
            try:
                with yt_dlp.YoutubeDL(self._build_ydl_opts(target_dir)) as ydl:
                    info = ydl.extract_info(url, download=True)
                    if info is None:
                        raise VideoFetchError(f"No video information returned for {url}")
                    path = Path(ydl.prepare_filename(info))
            except yt_dlp.utils.DownloadError as exc:
                raise VideoFetchError(f"Failed to download video {url}: {exc}") from exc

            if not path.exists():
                # yt-dlp skips files over max_filesize without raising
                raise VideoFetchError(
                    f"Video {url} was not downloaded (size limit {self.max_bytes} bytes)"
                )
            data = path.read_bytes()

        if not data:
            raise VideoFetchError(f"Downloaded video {url} is empty")
        if len(data) > self.max_bytes:
            raise VideoFetchError(
                f"Video {url} is {len(data)} bytes, above the {self.max_bytes} byte limit"
            )

        media_type = mimetypes.guess_type(path.name)[0] or DEFAULT_MEDIA_TYPE
        logger.info("Fetched %d bytes of %s for %s", len(data), media_type, url)
        return VideoContent(data=data, media_type=media_type, source_url=url)
