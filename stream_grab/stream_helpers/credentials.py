"""
Credential Provider: cookies for the page fetch, from a cookie file or from a
local browser profile.
"""
import http.cookiejar
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import browser_cookie3
from loguru import logger

from stream_grab.stream_helpers.utils import origin_domain
from stream_grab.utils.context import RunContext
from stream_grab.utils.defaults import SUPPORTED_BROWSERS
from stream_grab.utils.errors import CookieFileNotFoundError, CredentialExtractionError
from stream_grab.utils.models import CredentialBundle

COOKIE_FILE_NAME = "cookies.txt"

# Browser data directories per platform, relative to home or the Windows
# app data roots. Chromium-family profiles keep cookies in "<profile>/Cookies"
# or "<profile>/Network/Cookies"; Firefox in "<profile>/cookies.sqlite".
_CHROMIUM_DIRS = {
    "chrome": {
        "linux": "~/.config/google-chrome",
        "darwin": "~/Library/Application Support/Google/Chrome",
        "win32": "%LOCALAPPDATA%/Google/Chrome/User Data",
    },
    "chromium": {
        "linux": "~/.config/chromium",
        "darwin": "~/Library/Application Support/Chromium",
        "win32": "%LOCALAPPDATA%/Chromium/User Data",
    },
    "edge": {
        "linux": "~/.config/microsoft-edge",
        "darwin": "~/Library/Application Support/Microsoft Edge",
        "win32": "%LOCALAPPDATA%/Microsoft/Edge/User Data",
    },
    "brave": {
        "linux": "~/.config/BraveSoftware/Brave-Browser",
        "darwin": "~/Library/Application Support/BraveSoftware/Brave-Browser",
        "win32": "%LOCALAPPDATA%/BraveSoftware/Brave-Browser/User Data",
    },
    "opera": {
        "linux": "~/.config/opera",
        "darwin": "~/Library/Application Support/com.operasoftware.Opera",
        "win32": "%APPDATA%/Opera Software/Opera Stable",
    },
}

_FIREFOX_DIRS = {
    "linux": "~/.mozilla/firefox",
    "darwin": "~/Library/Application Support/Firefox/Profiles",
    "win32": "%APPDATA%/Mozilla/Firefox/Profiles",
}


@dataclass
class CookieSource:
    """Where cookies come from: an exported cookie file or a browser (+ profile)."""
    cookie_file: Optional[Path] = None
    browser: Optional[str] = None
    profile: Optional[str] = None

    def __post_init__(self):
        if self.cookie_file is not None:
            self.cookie_file = Path(self.cookie_file)
        if self.browser:
            self.browser = self.browser.lower()

    def validate(self) -> None:
        if self.cookie_file and self.browser:
            raise CredentialExtractionError("Specify either a cookie file or a browser, not both")
        if not self.cookie_file and not self.browser:
            raise CredentialExtractionError("No cookie source specified (neither file nor browser)")
        if self.browser and self.browser not in SUPPORTED_BROWSERS:
            raise CredentialExtractionError(
                f"Unsupported browser: {self.browser} (choose from {', '.join(SUPPORTED_BROWSERS)})")

    def describe(self) -> str:
        if self.cookie_file:
            return f"cookie file {self.cookie_file}"
        if self.profile:
            return f"{self.browser} (profile {self.profile})"
        return f"{self.browser}"


def _platform_key() -> str:
    if sys.platform.startswith("win"):
        return "win32"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def _expand(path_template: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(path_template)))


def profile_cookie_candidates(browser: str, profile: str) -> List[Path]:
    """Possible cookie database paths for a named browser profile."""
    platform = _platform_key()
    if browser == "firefox":
        root = _expand(_FIREFOX_DIRS[platform])
        if not root.is_dir():
            return []
        dirs = sorted(p for p in root.iterdir()
                      if p.is_dir() and (p.name == profile or p.name.endswith("." + profile)))
        return [d / "cookies.sqlite" for d in dirs]

    root = _expand(_CHROMIUM_DIRS[browser][platform])
    return [root / profile / "Network" / "Cookies", root / profile / "Cookies"]


def resolve_profile_cookie_file(browser: str, profile: Optional[str]) -> Optional[Path]:
    """
    Map a profile name to its cookie database.

    Returns None when no profile is given (browser_cookie3 then picks the
    default profile itself).
    """
    if not profile:
        return None
    if browser == "safari":
        logger.warning("Safari has no browser profiles; ignoring profile option")
        return None
    for candidate in profile_cookie_candidates(browser, profile):
        if candidate.exists():
            logger.debug(f"Using {browser} profile cookie database: {candidate}")
            return candidate
    raise CredentialExtractionError(f"Cookie database for {browser} profile '{profile}' not found")


def load_cookie_file(path: Path, origin: str) -> CredentialBundle:
    """Parse a Netscape format cookie file into a bundle."""
    jar = http.cookiejar.MozillaCookieJar(str(path))
    try:
        jar.load(ignore_discard=True, ignore_expires=True)
    except (http.cookiejar.LoadError, OSError) as e:
        raise CredentialExtractionError(f"Unreadable cookie file {path}: {e}") from e
    return CredentialBundle.from_cookiejar(origin, jar, cookie_file=path)


def from_cookie_file(cookie_file: Path, origin: str, context: RunContext) -> CredentialBundle:
    """Copy a user-supplied cookie file into the working directory and load it."""
    if not cookie_file.is_file():
        raise CookieFileNotFoundError(f"Cookie file not found: {cookie_file}")

    target = context.work_dir / COOKIE_FILE_NAME
    shutil.copyfile(cookie_file, target)
    logger.info(f"Using provided cookie file: {cookie_file}")
    return load_cookie_file(target, origin)


def from_browser(browser: str, origin: str, profile: Optional[str], context: RunContext) -> CredentialBundle:
    """Extract cookies for ``origin`` from a local browser via browser_cookie3."""
    logger.info(f"Extracting cookies from {browser} browser...")
    cookie_db = resolve_profile_cookie_file(browser, profile)
    loader = getattr(browser_cookie3, browser)

    kwargs = {"domain_name": origin}
    if cookie_db is not None:
        kwargs["cookie_file"] = str(cookie_db)

    try:
        jar = loader(**kwargs)
    except Exception as e:
        raise CredentialExtractionError(f"Failed to extract cookies from {browser}: {e}") from e

    bundle = CredentialBundle.from_cookiejar(origin, jar)
    if not bundle.cookies:
        raise CredentialExtractionError(f"No usable cookies for {origin} found in {browser}")

    bundle.write_netscape(context.work_dir / COOKIE_FILE_NAME)
    logger.success(f"Successfully extracted {len(bundle)} cookie(s) from {browser} for domain {origin}")
    return bundle


def obtain(page_url: str, source: CookieSource, context: RunContext) -> CredentialBundle:
    """
    Obtain the credential bundle for the origin of ``page_url``.

    Args:
        page_url: Source page URL; its host scopes browser extraction
        source: Cookie file or browser (+ optional profile)
        context: Run context whose working directory receives cookies.txt

    Returns:
        CredentialBundle with cookies in Netscape form on disk and in memory

    Raises:
        CredentialExtractionError: on any failure; there is no retry
    """
    source.validate()
    try:
        origin = origin_domain(page_url)
    except ValueError as e:
        raise CredentialExtractionError(str(e)) from e

    if source.cookie_file:
        return from_cookie_file(source.cookie_file, origin, context)
    return from_browser(source.browser, origin, source.profile, context)
