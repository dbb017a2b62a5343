"""
Fetch a page and locate the stream URLs it embeds.
"""
import html
from datetime import datetime
from typing import List, Optional, Sequence
import requests
from loguru import logger

from stream_grab.stream_helpers.matchers import StreamMatcher, compose_matches, default_matchers
from stream_grab.stream_helpers.utils import with_retry
from stream_grab.utils.errors import FetchError
from stream_grab.utils.models import CredentialBundle, StreamKind, StreamSet

DEFAULT_USER_AGENT = ('Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 '
                      '(KHTML, like Gecko) Chrome/124.0 Safari/537.36')


def normalize_content(content: str) -> str:
    """Undo JSON slash escaping and HTML entities so URLs match as plain text."""
    return html.unescape(content.replace("\\/", "/"))


class StreamLocator:
    """
    Stream Locator: one page fetch, then the matcher waterfall.

    Args:
        session: requests session to fetch with (a new one by default)
        matchers: ordered matchers (default: manifest, progressive, subtitle, JSON)
        timeout: page fetch timeout in seconds
        max_retries: attempts for connection errors and timeouts
        retry_delay: seconds between attempts
        user_agent: User-Agent header sent with the page request
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 matchers: Optional[Sequence[StreamMatcher]] = None,
                 timeout: float = 30, max_retries: int = 3, retry_delay: float = 2.0,
                 user_agent: Optional[str] = None):
        self.session = session or requests.Session()
        self.matchers: List[StreamMatcher] = list(matchers) if matchers is not None else default_matchers()
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.user_agent = user_agent or DEFAULT_USER_AGENT

    @classmethod
    def from_params(cls, params: dict, session: Optional[requests.Session] = None) -> "StreamLocator":
        return cls(
            session=session,
            matchers=default_matchers(json_fallback=params.get("json_fallback", True)),
            timeout=params.get("fetch_timeout", 30),
            max_retries=params.get("fetch_retries", 3),
            user_agent=params.get("user_agent"),
        )

    def fetch(self, url: str, credentials: Optional[CredentialBundle] = None) -> str:
        """
        Download the page body.

        Raises:
            FetchError: on request failure, a non-2xx status or an empty body
        """
        logger.info("Downloading webpage content...")
        cookies = credentials.to_cookiejar() if credentials else None
        headers = {"User-Agent": self.user_agent}

        def _get():
            return self.session.get(url, cookies=cookies, headers=headers,
                                    timeout=self.timeout, allow_redirects=True)

        try:
            response = with_retry(
                _get,
                retry_on=(requests.ConnectionError, requests.Timeout),
                max_retries=self.max_retries,
                retry_delay=self.retry_delay,
            )
        except requests.RequestException as e:
            raise FetchError(f"Failed to download webpage {url}: {e}", stage="page fetch") from e

        if not 200 <= response.status_code < 300:
            raise FetchError(f"Failed to download webpage {url}: HTTP {response.status_code}",
                             stage="page fetch")
        if not response.text or not response.text.strip():
            raise FetchError(f"Webpage is empty: {url}", stage="page fetch")

        logger.debug(f"Fetched {len(response.text)} characters from {response.url or url}")
        return response.text

    def locate_content(self, content: str, source_url: str) -> StreamSet:
        """Run the matcher waterfall over already-fetched page content."""
        logger.info("Analyzing webpage for stream URLs...")
        matches = compose_matches(self.matchers, normalize_content(content))
        urls = {kind.value: (m.url if m.found else None) for kind, m in matches.items()}
        stream_set = StreamSet(source_url=source_url, extracted_at=datetime.now(), **urls)

        if stream_set.video:
            logger.info(f"Found video stream URL: {stream_set.video}")
        else:
            logger.warning("No video stream URL found")
        if stream_set.audio:
            logger.info(f"Found audio stream URL: {stream_set.audio}")
        else:
            logger.info("No separate audio stream URL found")
        if stream_set.subtitle:
            logger.info(f"Found subtitle URL: {stream_set.subtitle}")
        else:
            logger.info("No subtitle URL found")
        return stream_set

    def locate(self, url: str, credentials: Optional[CredentialBundle] = None) -> StreamSet:
        """
        Fetch ``url`` once with the given credentials and locate its streams.

        Args:
            url: Source page URL
            credentials: Cookies for the page's origin

        Returns:
            StreamSet for the page (video may be None)
        """
        content = self.fetch(url, credentials)
        stream_set = self.locate_content(content, url)
        logger.debug(f"Located streams: {stream_set.as_dict()}")
        found = [k.value for k in StreamKind if stream_set.get(k)]
        logger.success(f"Located {len(found)} stream(s) on {url}: {', '.join(found) or 'none'}")
        return stream_set
