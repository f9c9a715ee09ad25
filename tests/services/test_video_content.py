"""Tests for yt-dlp backed video fetching."""

from pathlib import Path

import pytest
import yt_dlp

from clipfeed.services import video_content
from clipfeed.services.video_content import VideoContentFetcher, VideoFetchError


class FakeYoutubeDL:
    """Writes ``payload`` where the real downloader would put the file."""

    payload: bytes | None = b"\x00\x00\x00\x18ftypmp4"
    error: Exception | None = None
    last_opts: dict | None = None

    def __init__(self, opts):
        self.opts = opts
        FakeYoutubeDL.last_opts = opts

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def _path(self) -> Path:
        return Path(self.opts["outtmpl"].replace("%(ext)s", "mp4"))

    def extract_info(self, url, download=True):
        if self.error is not None:
            raise self.error
        if self.payload is not None:
            self._path().write_bytes(self.payload)
        return {"id": "abc", "ext": "mp4"}

    def prepare_filename(self, info):
        return str(self._path())


@pytest.fixture
def fake_ydl(monkeypatch):
    FakeYoutubeDL.payload = b"\x00\x00\x00\x18ftypmp4"
    FakeYoutubeDL.error = None
    monkeypatch.setattr(video_content.yt_dlp, "YoutubeDL", FakeYoutubeDL)
    return FakeYoutubeDL


class TestVideoContentFetcher:
    def test_fetch_returns_bytes_and_media_type(self, fake_ydl):
        content = VideoContentFetcher(max_bytes=1024).fetch("https://youtu.be/abc")

        assert content.data == b"\x00\x00\x00\x18ftypmp4"
        assert content.media_type == "video/mp4"
        assert content.source_url == "https://youtu.be/abc"
        assert fake_ydl.last_opts["max_filesize"] == 1024
        assert fake_ydl.last_opts["noplaylist"] is True

    def test_download_error_is_wrapped(self, fake_ydl):
        fake_ydl.error = yt_dlp.utils.DownloadError("Video unavailable")

        with pytest.raises(VideoFetchError, match="Video unavailable"):
            VideoContentFetcher(max_bytes=1024).fetch("https://youtu.be/gone")

    def test_skipped_oversized_download_raises(self, fake_ydl):
        fake_ydl.payload = None

        with pytest.raises(VideoFetchError, match="size limit"):
            VideoContentFetcher(max_bytes=1024).fetch("https://youtu.be/huge")

    def test_file_over_limit_raises(self, fake_ydl):
        fake_ydl.payload = b"x" * 2048

        with pytest.raises(VideoFetchError, match="byte limit"):
            VideoContentFetcher(max_bytes=1024).fetch("https://youtu.be/big")

    def test_empty_file_raises(self, fake_ydl):
        fake_ydl.payload = b""

        with pytest.raises(VideoFetchError, match="empty"):
            VideoContentFetcher(max_bytes=1024).fetch("https://youtu.be/empty")
