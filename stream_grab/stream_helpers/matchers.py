"""
Pattern strategies that pick stream URLs out of raw page content.

Each matcher looks at the whole page on its own and returns, per stream kind,
either NotFound or Found(url). compose_matches() folds the results of an
ordered list of matchers so that the first matcher to find a kind wins.
Within a matcher duplicates collapse and the lexicographically smallest
candidate is chosen, so the same content always yields the same URLs.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union
from loguru import logger

from stream_grab.utils.models import StreamKind


@dataclass(frozen=True)
class NotFound:
    found = False


@dataclass(frozen=True)
class Found:
    url: str
    found = True


MatchResult = Union[Found, NotFound]
NOT_FOUND = NotFound()

KindMatches = Dict[StreamKind, MatchResult]


def url_pattern(extensions: Sequence[str]) -> "re.Pattern":
    """
    Regex for http(s) URLs ending in one of ``extensions``.

    The URL stops at quotes, whitespace and angle brackets; an optional query
    string after the extension is kept.
    """
    ext = "|".join(re.escape(e) for e in extensions)
    return re.compile(
        r"https?://[^\"'\s<>]*\.(?:%s)\b(?:\?[^\"'\s<>]*)?" % ext,
        re.IGNORECASE,
    )


def unique_sorted(urls: Iterable[str]) -> List[str]:
    return sorted(set(urls))


def first_of(candidates: Sequence[str]) -> MatchResult:
    return Found(candidates[0]) if candidates else NOT_FOUND


def empty_matches() -> KindMatches:
    return {kind: NOT_FOUND for kind in StreamKind}


class StreamMatcher(ABC):
    """Base class for all stream URL matchers."""

    name = "base"

    @abstractmethod
    def match(self, content: str) -> KindMatches:
        """
        Scan page content.

        Args:
            content: Raw page body

        Returns:
            Match result for every stream kind
        """

    def candidates(self, pattern: "re.Pattern", content: str) -> List[str]:
        found = unique_sorted(pattern.findall(content))
        if found:
            logger.debug(f"{self.name}: {len(found)} candidate(s): {found}")
        return found


class ManifestMatcher(StreamMatcher):
    """Adaptive-streaming manifests (HLS/DASH)."""

    name = "manifest"
    EXTENSIONS = ("m3u8", "mpd")
    AUDIO_MARKER = "audio"

    def __init__(self):
        self.pattern = url_pattern(self.EXTENSIONS)

    def match(self, content: str) -> KindMatches:
        result = empty_matches()
        manifests = self.candidates(self.pattern, content)
        if not manifests:
            return result

        audio_manifests = [m for m in manifests if self.AUDIO_MARKER in m]
        video_manifests = [m for m in manifests if self.AUDIO_MARKER not in m] or manifests

        video = video_manifests[0]
        result[StreamKind.VIDEO] = Found(video)
        result[StreamKind.AUDIO] = first_of([m for m in audio_manifests if m != video])
        return result


class ProgressiveMatcher(StreamMatcher):
    """Single-file video containers."""

    name = "progressive"
    EXTENSIONS = ("mp4", "m4v", "webm", "mov", "mkv")

    def __init__(self):
        self.pattern = url_pattern(self.EXTENSIONS)

    def match(self, content: str) -> KindMatches:
        result = empty_matches()
        result[StreamKind.VIDEO] = first_of(self.candidates(self.pattern, content))
        return result


class SubtitleMatcher(StreamMatcher):
    """Caption files."""

    name = "subtitle"
    EXTENSIONS = ("srt", "vtt", "ass", "ssa")

    def __init__(self):
        self.pattern = url_pattern(self.EXTENSIONS)

    def match(self, content: str) -> KindMatches:
        result = empty_matches()
        result[StreamKind.SUBTITLE] = first_of(self.candidates(self.pattern, content))
        return result


class JsonFragmentMatcher(StreamMatcher):
    """
    Structured-data fallback.

    Finds flat JSON-like fragments carrying a "url" key and classifies each URL
    by keyword hits. A keyword in the fragment's other text (for example
    "type": "audio") counts twice as much as one inside the URL itself. The
    highest score wins; ties go to the more specific kind.
    """

    name = "json"
    FRAGMENT = re.compile(r'\{[^{]*"url"[^}]*\}')
    URL_FIELD = re.compile(r'"url"\s*:\s*"([^"]*)"')

    KEYWORDS = {
        StreamKind.VIDEO: ("video", "mp4", "stream"),
        StreamKind.AUDIO: ("audio",),
        StreamKind.SUBTITLE: ("subtitle", "caption", "srt", "vtt"),
    }
    # Most specific first; used to break ties
    PRIORITY = (StreamKind.SUBTITLE, StreamKind.AUDIO, StreamKind.VIDEO)
    SIBLING_WEIGHT = 2
    URL_WEIGHT = 1

    def score(self, kind: StreamKind, url: str, sibling_text: str) -> int:
        url_lower = url.lower()
        sibling_lower = sibling_text.lower()
        total = 0
        for keyword in self.KEYWORDS[kind]:
            total += self.SIBLING_WEIGHT * sibling_lower.count(keyword)
            total += self.URL_WEIGHT * url_lower.count(keyword)
        return total

    def classify(self, url: str, fragment: str) -> Optional[StreamKind]:
        sibling_text = fragment.replace(url, " ")
        best_kind, best_score = None, 0
        for kind in self.PRIORITY:
            s = self.score(kind, url, sibling_text)
            if s > best_score:
                best_kind, best_score = kind, s
        return best_kind

    def match(self, content: str) -> KindMatches:
        result = empty_matches()
        by_kind: Dict[StreamKind, List[str]] = {kind: [] for kind in StreamKind}

        for fragment in self.FRAGMENT.findall(content):
            for url in self.URL_FIELD.findall(fragment):
                if not url:
                    continue
                kind = self.classify(url, fragment)
                if kind is not None:
                    by_kind[kind].append(url)

        for kind, urls in by_kind.items():
            candidates = unique_sorted(urls)
            if candidates:
                logger.debug(f"{self.name}: {kind.value} candidate(s): {candidates}")
            result[kind] = first_of(candidates)
        return result


def default_matchers(json_fallback: bool = True) -> List[StreamMatcher]:
    """The matcher waterfall in priority order."""
    matchers: List[StreamMatcher] = [ManifestMatcher(), ProgressiveMatcher(), SubtitleMatcher()]
    if json_fallback:
        matchers.append(JsonFragmentMatcher())
    return matchers


def compose_matches(matchers: Sequence[StreamMatcher], content: str) -> KindMatches:
    """Apply matchers in order; for each kind the first Found wins."""
    combined = empty_matches()
    for matcher in matchers:
        pending = [kind for kind, m in combined.items() if not m.found]
        if not pending:
            break
        matches = matcher.match(content)
        for kind in pending:
            if matches[kind].found:
                logger.debug(f"{kind.value} stream found by {matcher.name} matcher")
                combined[kind] = matches[kind]
    return combined
