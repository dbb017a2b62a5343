"""Tests for cookie file and browser credential sources."""

from unittest.mock import patch

import pytest

from stream_grab.stream_helpers import credentials
from stream_grab.stream_helpers.credentials import CookieSource, obtain, resolve_profile_cookie_file
from stream_grab.utils.context import RunContext
from stream_grab.utils.errors import CookieFileNotFoundError, CredentialExtractionError
from stream_grab.utils.models import Cookie, CredentialBundle

PAGE = "https://www.example.com/watch?v=1"


@pytest.fixture
def context(tmp_path):
    with RunContext(root=tmp_path) as ctx:
        yield ctx


def browser_jar():
    return CredentialBundle(origin="example.com", cookies=(
        Cookie(domain=".example.com", name="sid", value="s3cret", secure=True, http_only=True),
        Cookie(domain=".example.com", name="empty", value=""),
    )).to_cookiejar()


class TestCookieFile:
    def test_copied_into_work_dir(self, cookie_file, context):
        bundle = obtain(PAGE, CookieSource(cookie_file=cookie_file), context)

        target = context.work_dir / "cookies.txt"
        assert target.read_text(encoding="utf-8") == cookie_file.read_text(encoding="utf-8")
        assert bundle.cookie_file == target
        assert bundle.origin == "example.com"
        assert sorted(c.name for c in bundle.cookies) == ["session", "token"]
        assert bundle.cookie_header("https://cdn.example.com/v.mp4") == "session=abc123"

    def test_missing_file(self, tmp_path, context):
        with pytest.raises(CookieFileNotFoundError) as exc_info:
            obtain(PAGE, CookieSource(cookie_file=tmp_path / "absent.txt"), context)
        assert isinstance(exc_info.value, FileNotFoundError)
        assert exc_info.value.exit_code == 3

    def test_unreadable_file(self, tmp_path, context):
        bad = tmp_path / "bad.txt"
        bad.write_text("not a cookie file\n", encoding="utf-8")
        with pytest.raises(CredentialExtractionError):
            obtain(PAGE, CookieSource(cookie_file=bad), context)


class TestBrowser:
    def test_extracts_for_origin_domain(self, context):
        with patch.object(credentials.browser_cookie3, "firefox", return_value=browser_jar()) as loader:
            bundle = obtain(PAGE, CookieSource(browser="Firefox"), context)

        loader.assert_called_once_with(domain_name="example.com")
        assert [c.name for c in bundle.cookies] == ["sid"]
        text = (context.work_dir / "cookies.txt").read_text(encoding="utf-8")
        assert text.startswith("# Netscape HTTP Cookie File\n")
        assert "#HttpOnly_.example.com\tTRUE\t/\tTRUE\t0\tsid\ts3cret" in text

    def test_browser_failure_wrapped(self, context):
        with patch.object(credentials.browser_cookie3, "chrome", side_effect=RuntimeError("locked")):
            with pytest.raises(CredentialExtractionError, match="locked"):
                obtain(PAGE, CookieSource(browser="chrome"), context)

    def test_no_cookies_is_an_error(self, context):
        with patch.object(credentials.browser_cookie3, "chrome", return_value=[]):
            with pytest.raises(CredentialExtractionError, match="No usable cookies"):
                obtain(PAGE, CookieSource(browser="chrome"), context)

    def test_profile_resolved_to_cookie_database(self, tmp_path, monkeypatch, context):
        monkeypatch.setattr(credentials.sys, "platform", "linux")
        db = tmp_path / "home" / ".config" / "google-chrome" / "Work" / "Network" / "Cookies"
        db.parent.mkdir(parents=True)
        db.write_bytes(b"")

        with patch.object(credentials.browser_cookie3, "chrome", return_value=browser_jar()) as loader:
            obtain(PAGE, CookieSource(browser="chrome", profile="Work"), context)
        loader.assert_called_once_with(domain_name="example.com", cookie_file=str(db))

    def test_unknown_profile(self, monkeypatch, context):
        monkeypatch.setattr(credentials.sys, "platform", "linux")
        with pytest.raises(CredentialExtractionError, match="profile 'Missing'"):
            obtain(PAGE, CookieSource(browser="chrome", profile="Missing"), context)

    def test_safari_ignores_profile(self, log_messages):
        assert resolve_profile_cookie_file("safari", "Work") is None
        assert any(level == "WARNING" and "Safari" in msg for level, msg in log_messages)


class TestSourceValidation:
    @pytest.mark.parametrize("source", [
        CookieSource(),
        CookieSource(cookie_file="cookies.txt", browser="chrome"),
        CookieSource(browser="lynx"),
    ])
    def test_invalid_sources(self, source, context):
        with pytest.raises(CredentialExtractionError):
            obtain(PAGE, source, context)

    def test_url_without_host(self, cookie_file, context):
        with pytest.raises(CredentialExtractionError, match="Cannot determine domain"):
            obtain("not-a-url", CookieSource(cookie_file=cookie_file), context)
