"""
stream-grab

Locate the video, audio and subtitle streams embedded in a web page,
download them and combine them into one file:
- cookie acquisition from a cookie file or a local browser
- heuristic stream URL extraction
- optional subtitle generation with Whisper
- muxing with ffmpeg (caption burn-in or soft subtitles)
"""

__version__ = "0.1.0"
