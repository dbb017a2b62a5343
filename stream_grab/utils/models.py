"""
Data model shared by the extraction and download stages.
"""
import http.cookiejar
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse


class StreamKind(str, Enum):
    """Kinds of elementary streams a page can expose."""
    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MuxMode(str, Enum):
    """How the final file is assembled."""
    COPY = "copy"
    BURN_IN = "burn-in"
    SOFT = "soft"


class RunState(str, Enum):
    INIT = "init"
    FETCHING_VIDEO = "fetching-video"
    FETCHING_AUDIO = "fetching-audio"
    FETCHING_SUBTITLE = "fetching-subtitle"
    TRANSCRIBING = "transcribing"
    MUXING = "muxing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StreamSet:
    """
    Stream URLs located for one source page.

    Only ``video`` is needed for the set to be usable downstream; ``audio``
    and ``subtitle`` are independently optional.
    """
    source_url: str
    video: Optional[str] = None
    audio: Optional[str] = None
    subtitle: Optional[str] = None
    extracted_at: datetime = field(default_factory=datetime.now)

    @property
    def is_usable(self) -> bool:
        return self.video is not None

    def get(self, kind: StreamKind) -> Optional[str]:
        """Return the URL located for a stream kind, if any."""
        return getattr(self, StreamKind(kind).value)

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "source_url": self.source_url,
            "video": self.video,
            "audio": self.audio,
            "subtitle": self.subtitle,
            "extracted_at": self.extracted_at.isoformat(),
        }


@dataclass(frozen=True)
class Cookie:
    domain: str
    name: str
    value: str
    path: str = "/"
    secure: bool = False
    expires: Optional[int] = None
    http_only: bool = False

    def matches_host(self, host: str) -> bool:
        """Check whether the cookie would be sent to ``host``."""
        domain = self.domain.lstrip(".").lower()
        host = (host or "").lower()
        return host == domain or host.endswith("." + domain)

    def applies_to(self, url: str) -> bool:
        """Check host, path prefix and the secure flag against a request URL."""
        parsed = urlparse(url)
        if not self.matches_host(parsed.hostname or ""):
            return False
        if self.secure and parsed.scheme != "https":
            return False
        request_path = parsed.path or "/"
        cookie_path = self.path or "/"
        if request_path == cookie_path:
            return True
        if not request_path.startswith(cookie_path):
            return False
        return cookie_path.endswith("/") or request_path[len(cookie_path)] == "/"

    def to_netscape_line(self) -> str:
        include_subdomains = "TRUE" if self.domain.startswith(".") else "FALSE"
        secure = "TRUE" if self.secure else "FALSE"
        expires = int(self.expires) if self.expires else 0
        domain = f"#HttpOnly_{self.domain}" if self.http_only else self.domain
        return "\t".join([domain, include_subdomains, self.path, secure,
                          str(expires), self.name, self.value])


@dataclass
class CredentialBundle:
    """
    Cookies scoped to one origin, as handed from the credential provider to
    the page fetch.
    """
    origin: str
    cookies: Tuple[Cookie, ...] = ()
    cookie_file: Optional[Path] = None

    def __len__(self) -> int:
        return len(self.cookies)

    @classmethod
    def from_cookiejar(cls, origin: str, jar, cookie_file: Optional[Path] = None) -> "CredentialBundle":
        cookies = []
        for c in jar:
            if not c.value:
                continue
            cookies.append(Cookie(
                domain=c.domain,
                name=c.name,
                value=c.value,
                path=c.path or "/",
                secure=bool(c.secure),
                expires=int(c.expires) if c.expires else None,
                http_only=c.has_nonstandard_attr("HttpOnly"),
            ))
        return cls(origin=origin, cookies=tuple(cookies), cookie_file=cookie_file)

    def to_cookiejar(self) -> http.cookiejar.CookieJar:
        """Build a cookie jar usable by ``requests``."""
        jar = http.cookiejar.CookieJar()
        for c in self.cookies:
            jar.set_cookie(http.cookiejar.Cookie(
                version=0, name=c.name, value=c.value,
                port=None, port_specified=False,
                domain=c.domain, domain_specified=True,
                domain_initial_dot=c.domain.startswith("."),
                path=c.path, path_specified=True,
                secure=c.secure, expires=c.expires, discard=c.expires is None,
                comment=None, comment_url=None,
                rest={"HttpOnly": ""} if c.http_only else {},
            ))
        return jar

    def cookie_header(self, url: str) -> Optional[str]:
        """Render a ``Cookie`` header value for ``url``, or None if nothing applies."""
        pairs = [f"{c.name}={c.value}" for c in self.cookies if c.applies_to(url)]
        return "; ".join(pairs) if pairs else None

    def write_netscape(self, path: Path) -> Path:
        """Write the cookies in Netscape (curl compatible) format."""
        lines = ["# Netscape HTTP Cookie File"]
        lines.extend(c.to_netscape_line() for c in self.cookies)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        self.cookie_file = path
        return path


@dataclass
class DownloadJob:
    """One elementary stream to fetch into the working directory."""
    kind: StreamKind
    source_url: str
    destination: Path
    status: JobStatus = JobStatus.PENDING
    attempt: int = 1

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.SUCCEEDED


@dataclass
class MuxPlan:
    """Which downloaded files go into the output and how they are combined."""
    video: Path
    mode: MuxMode
    audio: Optional[Path] = None
    subtitle: Optional[Path] = None

    @property
    def inputs(self) -> List[Path]:
        paths = [self.video]
        if self.audio:
            paths.append(self.audio)
        if self.subtitle and self.mode == MuxMode.SOFT:
            paths.append(self.subtitle)
        return paths
