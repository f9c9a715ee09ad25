"""Tests for oEmbed metadata extraction."""

import httpx
import pytest

from clipfeed.http_client.robust_http_client import RobustHttpClient
from clipfeed.models.metadata import DEFAULT_VIDEO_TITLE, VideoPlatform
from clipfeed.services.url_resolver import UrlResolver
from clipfeed.services.video_metadata import VideoMetadataExtractor, detect_platform
from clipfeed.utils.error_logger import get_pipeline_metrics


@pytest.fixture
def calls():
    return []


def _extractor(handler, calls) -> VideoMetadataExtractor:
    def recording(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    client = RobustHttpClient(transport=httpx.MockTransport(recording), max_attempts=1)
    resolver = UrlResolver(http_client=client, shortener_domains=["t.co", "bit.ly", "goo.gl"])
    return VideoMetadataExtractor(http_client=client, resolver=resolver)


class TestDetectPlatform:
    @pytest.mark.parametrize(
        ("url", "platform"),
        [
            ("https://www.youtube.com/watch?v=abc", VideoPlatform.YOUTUBE),
            ("https://youtu.be/abc", VideoPlatform.YOUTUBE),
            ("HTTPS://M.YOUTUBE.COM/shorts/abc", VideoPlatform.YOUTUBE),
            ("https://www.loom.com/share/123", VideoPlatform.LOOM),
        ],
    )
    def test_supported(self, url, platform):
        assert detect_platform(url).platform == platform

    def test_unsupported(self):
        assert detect_platform("https://vimeo.com/123") is None
        assert detect_platform("https://example.com/youtube.com") is None


class TestVideoMetadataExtractor:
    def test_youtube_oembed_success(self, calls):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "title": "Building a Flutter app",
                    "thumbnail_url": "https://i.ytimg.com/vi/abc/hqdefault.jpg",
                },
            )

        metadata = _extractor(handler, calls).extract("https://www.youtube.com/watch?v=abc")

        assert metadata is not None
        assert metadata.platform == VideoPlatform.YOUTUBE
        assert metadata.title == "Building a Flutter app"
        assert metadata.thumbnail_url == "https://i.ytimg.com/vi/abc/hqdefault.jpg"
        assert metadata.url == "https://www.youtube.com/watch?v=abc"
        request = calls[0]
        assert request.url.host == "www.youtube.com"
        assert request.url.path == "/oembed"
        assert request.url.params["url"] == "https://www.youtube.com/watch?v=abc"
        assert request.url.params["format"] == "json"

    def test_missing_title_defaults(self, calls):
        handler = lambda request: httpx.Response(200, json={"thumbnail_url": "t.jpg"})  # noqa: E731

        metadata = _extractor(handler, calls).extract("https://www.loom.com/share/123")

        assert metadata.title == DEFAULT_VIDEO_TITLE == "Untitled Video"
        assert metadata.platform == VideoPlatform.LOOM
        assert calls[0].url.path == "/v1/oembed"

    def test_unsupported_platform_makes_no_request(self, calls):
        handler = lambda request: httpx.Response(200, json={})  # noqa: E731

        assert _extractor(handler, calls).extract("https://vimeo.com/123") is None
        assert calls == []
        assert get_pipeline_metrics()["video_metadata"]["unsupported"] == 1

    def test_oembed_error_returns_none(self, calls):
        handler = lambda request: httpx.Response(404)  # noqa: E731

        assert _extractor(handler, calls).extract("https://youtu.be/gone") is None
        assert get_pipeline_metrics()["video_metadata"]["lookup_failed"] == 1

    def test_invalid_json_returns_none(self, calls):
        handler = lambda request: httpx.Response(200, text="<html>nope</html>")  # noqa: E731

        assert _extractor(handler, calls).extract("https://youtu.be/abc") is None

    def test_non_object_json_returns_none(self, calls):
        handler = lambda request: httpx.Response(200, json=["a", "b"])  # noqa: E731

        assert _extractor(handler, calls).extract("https://youtu.be/abc") is None

    def test_transport_error_returns_none(self, calls):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert _extractor(handler, calls).extract("https://youtu.be/abc") is None

    def test_shortened_link_is_resolved_before_matching(self, calls):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "t.co":
                return httpx.Response(301, headers={"Location": "https://youtu.be/xyz"})
            if request.url.host == "youtu.be":
                return httpx.Response(200, text="video page")
            return httpx.Response(200, json={"title": "Short"})

        metadata = _extractor(handler, calls).extract("https://t.co/abc")

        assert metadata.url == "https://youtu.be/xyz"
        assert metadata.title == "Short"
        assert calls[-1].url.params["url"] == "https://youtu.be/xyz"

    def test_non_string_fields_are_dropped(self, calls):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"title": 12345, "thumbnail_url": {"src": "x.jpg"}, "description": ["a"]},
            )

        metadata = _extractor(handler, calls).extract("https://youtu.be/abc")

        assert metadata.title == DEFAULT_VIDEO_TITLE
        assert metadata.thumbnail_url is None
        assert metadata.description is None
        assert get_pipeline_metrics()["video_metadata"]["extracted"] == 1

    def test_list_title_falls_back_to_default(self, calls):
        handler = lambda request: httpx.Response(200, json={"title": ["not", "a", "string"]})  # noqa: E731

        metadata = _extractor(handler, calls).extract("https://youtu.be/bad")

        assert metadata is not None
        assert metadata.title == DEFAULT_VIDEO_TITLE
