"""Tests for page fetching and stream location."""

from unittest.mock import MagicMock, Mock

import pytest
import requests

from stream_grab.stream_helpers.locator import StreamLocator, normalize_content
from stream_grab.utils.errors import FetchError
from stream_grab.utils.models import Cookie, CredentialBundle


def make_session(*responses):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return session


def page(text, status_code=200, url="https://www.example.com/watch"):
    return Mock(status_code=status_code, text=text, url=url)


def test_normalize_content_unescapes_slashes_and_entities():
    raw = '{"src": "https:\\/\\/cdn.example\\/v.mp4?a=1&amp;b=2"}'
    assert normalize_content(raw) == '{"src": "https://cdn.example/v.mp4?a=1&b=2"}'


class TestLocate:
    def test_manifest_and_caption(self):
        html = ('<video src="https://cdn.example/a.m3u8"></video>'
                '<track src="https://cdn.example/caption.srt">')
        locator = StreamLocator(session=make_session(page(html)))
        stream_set = locator.locate("https://www.example.com/watch")

        assert stream_set.source_url == "https://www.example.com/watch"
        assert stream_set.video == "https://cdn.example/a.m3u8"
        assert stream_set.audio is None
        assert stream_set.subtitle == "https://cdn.example/caption.srt"

    def test_json_escaped_urls(self):
        html = '<script>var cfg = {"file": "https:\\/\\/cdn.example\\/media\\/clip.mp4"};</script>'
        stream_set = StreamLocator(session=make_session(page(html))).locate("https://www.example.com/w")
        assert stream_set.video == "https://cdn.example/media/clip.mp4"

    def test_json_fragment_video(self):
        html = '<script>{"url":"https://cdn.example/v2.mp4","type":"video"}</script>'
        stream_set = StreamLocator(session=make_session(page(html))).locate("https://www.example.com/w")
        assert stream_set.video == "https://cdn.example/v2.mp4"

    def test_no_video_is_not_an_error(self, log_messages):
        stream_set = StreamLocator(session=make_session(page("<p>nothing</p>"))).locate(
            "https://www.example.com/w")
        assert not stream_set.is_usable
        assert ("WARNING", "No video stream URL found") in log_messages

    def test_located_streams_logged_at_debug(self, log_messages):
        html = '<video src="https://cdn.example/a.m3u8"></video>'
        StreamLocator(session=make_session(page(html))).locate("https://www.example.com/w")
        debug = [message for level, message in log_messages
                 if level == "DEBUG" and message.startswith("Located streams: ")]
        assert len(debug) == 1
        assert "'video': 'https://cdn.example/a.m3u8'" in debug[0]
        assert "'subtitle': None" in debug[0]

    def test_same_content_same_result(self):
        html = '"https://cdn.example/b.mp4" "https://cdn.example/a.mp4"'
        first = StreamLocator(session=make_session(page(html))).locate("https://www.example.com/w")
        second = StreamLocator(session=make_session(page(html))).locate("https://www.example.com/w")
        assert (first.video, first.audio, first.subtitle) == (second.video, second.audio, second.subtitle)

    def test_single_fetch_with_credentials(self):
        session = make_session(page('"https://cdn.example/v.mp4"'))
        bundle = CredentialBundle(origin="example.com",
                                  cookies=(Cookie(domain=".example.com", name="sid", value="1"),))
        StreamLocator(session=session, user_agent="agent/1.0").locate("https://www.example.com/w", bundle)

        assert session.get.call_count == 1
        _, kwargs = session.get.call_args
        assert kwargs["headers"] == {"User-Agent": "agent/1.0"}
        assert kwargs["allow_redirects"] is True
        assert [c.name for c in kwargs["cookies"]] == ["sid"]


class TestFetchErrors:
    def test_http_error_status(self):
        locator = StreamLocator(session=make_session(page("denied", status_code=403)))
        with pytest.raises(FetchError) as exc_info:
            locator.fetch("https://www.example.com/w")
        assert "HTTP 403" in str(exc_info.value)
        assert exc_info.value.stage == "page fetch"

    def test_empty_body(self):
        locator = StreamLocator(session=make_session(page("   ")))
        with pytest.raises(FetchError):
            locator.fetch("https://www.example.com/w")

    def test_connection_error_retried(self):
        session = make_session(requests.ConnectionError("reset"), page('"https://cdn.example/v.mp4"'))
        locator = StreamLocator(session=session, max_retries=3, retry_delay=0)
        assert locator.fetch("https://www.example.com/w") == '"https://cdn.example/v.mp4"'
        assert session.get.call_count == 2

    def test_retries_exhausted(self):
        session = make_session(*[requests.Timeout("slow")] * 2)
        locator = StreamLocator(session=session, max_retries=2, retry_delay=0)
        with pytest.raises(FetchError):
            locator.fetch("https://www.example.com/w")
        assert session.get.call_count == 2

    def test_other_request_errors_not_retried(self):
        session = make_session(requests.exceptions.InvalidURL("bad"))
        locator = StreamLocator(session=session, retry_delay=0)
        with pytest.raises(FetchError):
            locator.fetch("https://www.example.com/w")
        assert session.get.call_count == 1


def test_from_params_disables_json_fallback():
    locator = StreamLocator.from_params({"json_fallback": False, "fetch_timeout": 5.0, "fetch_retries": 1},
                                        session=MagicMock())
    assert [m.name for m in locator.matchers] == ["manifest", "progressive", "subtitle"]
    assert locator.timeout == 5.0
    assert locator.max_retries == 1
