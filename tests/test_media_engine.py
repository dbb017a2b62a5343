"""Tests for ffmpeg command building and process handling."""

import io
import sys
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from stream_grab.stream_helpers.media_engine import CaptionStyle, MediaEngine, escape_filter_value
from stream_grab.utils.errors import MediaEngineError
from stream_grab.utils.models import MuxMode, MuxPlan


class FakeProcess:
    """Stand-in for subprocess.Popen with canned stderr output."""

    def __init__(self, stderr_text="", returncode=0):
        self.stderr = io.StringIO(stderr_text)
        self._returncode = returncode
        self.returncode = None
        self.killed = False

    def wait(self, timeout=None):
        self.returncode = -9 if self.killed else self._returncode
        return self.returncode

    def kill(self):
        self.killed = True


class BlockingStderr:
    """stderr that produces nothing until the process is killed."""

    def __init__(self):
        self.closed = threading.Event()

    def readline(self):
        self.closed.wait(5)
        return ""


class HangingProcess(FakeProcess):
    def __init__(self):
        super().__init__()
        self.stderr = BlockingStderr()

    def kill(self):
        super().kill()
        self.stderr.closed.set()


class TestCommands:
    def test_download_copies_codecs(self):
        cmd = MediaEngine().download_command("https://cdn.example/a.m3u8", Path("/w/video-1.mp4"))
        assert cmd == ["ffmpeg", "-y", "-hide_banner", "-i", "https://cdn.example/a.m3u8",
                       "-c", "copy", "/w/video-1.mp4"]

    def test_download_with_cookie_header(self):
        cmd = MediaEngine().download_command("https://cdn.example/en.vtt", Path("/w/sub.srt"), copy=False,
                                             headers={"Cookie": "sid=1"})
        assert cmd[cmd.index("-headers") + 1] == "Cookie: sid=1\r\n"
        assert "-c" not in cmd

    def test_pcm_extraction_is_mono_16k(self):
        cmd = MediaEngine().pcm_command(Path("v.mp4"), Path("t.wav"))
        assert cmd[cmd.index("-ac") + 1] == "1"
        assert cmd[cmd.index("-ar") + 1] == "16000"
        assert cmd[cmd.index("-c:a") + 1] == "pcm_s16le"
        assert "-vn" in cmd

    def test_copy_mux_without_audio_keeps_embedded_audio(self):
        plan = MuxPlan(video=Path("v.mp4"), mode=MuxMode.COPY)
        cmd = MediaEngine().mux_command(plan, Path("out.mp4"))
        assert cmd == ["ffmpeg", "-y", "-hide_banner", "-i", "v.mp4",
                       "-map", "0:v:0", "-map", "0:a?", "-c", "copy", "out.mp4"]

    def test_copy_mux_with_separate_audio(self):
        plan = MuxPlan(video=Path("v.mp4"), audio=Path("a.aac"), mode=MuxMode.COPY)
        cmd = MediaEngine().mux_command(plan, Path("out.mp4"))
        assert cmd[3:7] == ["-i", "v.mp4", "-i", "a.aac"]
        assert "1:a:0" in cmd

    def test_burn_in(self):
        plan = MuxPlan(video=Path("v.mp4"), audio=Path("a.aac"), subtitle=Path("/w/sub.srt"),
                       mode=MuxMode.BURN_IN)
        cmd = MediaEngine().mux_command(plan, Path("out.mp4"), CaptionStyle(font_size=30, crf=20))
        assert cmd.count("-i") == 2
        assert cmd[cmd.index("-vf") + 1] == "subtitles='/w/sub.srt':force_style='FontName=Arial,FontSize=30'"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-crf") + 1] == "20"
        assert cmd[cmd.index("-c:a") + 1] == "copy"

    @pytest.mark.parametrize("output, codec", [("out.mp4", "mov_text"), ("out.mkv", "srt")])
    def test_soft_subtitles(self, output, codec):
        plan = MuxPlan(video=Path("v.mp4"), subtitle=Path("sub.srt"), mode=MuxMode.SOFT)
        cmd = MediaEngine().mux_command(plan, Path(output))
        assert cmd[3:7] == ["-i", "v.mp4", "-i", "sub.srt"]
        assert "1:s:0" in cmd
        assert cmd[cmd.index("-c:s") + 1] == codec


def test_escape_filter_value():
    assert escape_filter_value("C:\\subs\\it's.srt") == "C\\:\\\\subs\\\\it\\'s.srt"


def test_duration_tool_next_to_ffmpeg():
    assert MediaEngine(binary="/opt/ff/ffmpeg").ffprobe == "/opt/ff/ffprobe"


class TestRun:
    def test_success(self):
        process = FakeProcess("frame=1 time=00:00:01.00 bitrate=1\n", returncode=0)
        with patch("stream_grab.stream_helpers.media_engine.subprocess.Popen", return_value=process):
            MediaEngine().run(["ffmpeg", "-i", "x", "y"], "Testing")

    def test_non_zero_exit_reports_last_line(self):
        process = FakeProcess("Input #0\nServer returned 403 Forbidden\n", returncode=1)
        with patch("stream_grab.stream_helpers.media_engine.subprocess.Popen", return_value=process):
            with pytest.raises(MediaEngineError) as exc_info:
                MediaEngine().run(["ffmpeg", "-i", "x", "y"], "Downloading")
        assert exc_info.value.returncode == 1
        assert "403 Forbidden" in str(exc_info.value)
        assert "Input #0" in exc_info.value.stderr

    def test_missing_binary(self):
        with patch("stream_grab.stream_helpers.media_engine.subprocess.Popen",
                   side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(MediaEngineError, match="Cannot run ffmpeg"):
                MediaEngine().run(["ffmpeg", "-version"], "Checking")

    def test_timeout_kills_process(self):
        process = HangingProcess()
        with patch("stream_grab.stream_helpers.media_engine.subprocess.Popen", return_value=process):
            with pytest.raises(MediaEngineError, match="timed out"):
                MediaEngine(timeout=0.05).run(["ffmpeg", "-i", "x", "y"], "Downloading")
        assert process.killed

    def test_popen_decodes_stderr_leniently(self):
        with patch("stream_grab.stream_helpers.media_engine.subprocess.Popen",
                   return_value=FakeProcess()) as popen:
            MediaEngine().run(["ffmpeg", "-i", "x", "y"], "Testing")
        _, kwargs = popen.call_args
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["errors"] == "replace"

    @pytest.mark.parametrize("exit_code", [0, 1])
    def test_latin1_metadata_on_stderr(self, exit_code):
        # A child that prints ISO-8859-1 text (as found in ID3 tags) before exiting
        script = ("import sys; sys.stderr.buffer.write(b'title : Caf\\xe9\\n'); "
                  f"sys.stderr.flush(); sys.exit({exit_code})")
        engine = MediaEngine()
        cmd = [sys.executable, "-c", script]
        if exit_code == 0:
            engine.run(cmd, "Downloading")
            return
        with pytest.raises(MediaEngineError) as exc_info:
            engine.run(cmd, "Downloading")
        assert "Caf\ufffd" in str(exc_info.value)

    def test_interrupt_kills_process(self):
        class InterruptedStderr:
            def readline(self):
                raise KeyboardInterrupt

        process = FakeProcess()
        process.stderr = InterruptedStderr()
        with patch("stream_grab.stream_helpers.media_engine.subprocess.Popen", return_value=process):
            with pytest.raises(KeyboardInterrupt):
                MediaEngine().run(["ffmpeg", "-i", "x", "y"], "Downloading")
        assert process.killed
        assert process.returncode == -9
