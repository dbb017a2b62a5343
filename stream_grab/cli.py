"""
stream-grab - CLI Interface

Locate the media streams of a web page, download them and combine them into
one file. The two halves can also run on their own:

    streamgrab -u <page url> -b chrome -o output.mp4 [-w]
    streamgrab extract -u <page url> -c cookies.txt -o streams.txt
    streamgrab download -f streams.txt -o output.mp4
"""
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import click
from loguru import logger

from stream_grab import __version__
from stream_grab.stream_helpers import setup_logger
from stream_grab.stream_helpers.credentials import CookieSource, obtain
from stream_grab.stream_helpers.locator import StreamLocator
from stream_grab.stream_helpers.media_engine import MediaEngine
from stream_grab.stream_helpers.orchestrator import RunOptions, StreamOrchestrator, run_pipeline
from stream_grab.stream_helpers.transcription import WhisperTranscriber
from stream_grab.tui import (
    prompt_page_url, prompt_cookie_source, prompt_download_inputs, show_run_summary, run_setup_wizard,
)
from stream_grab.utils.config import ConfigManager
from stream_grab.utils.context import RunContext
from stream_grab.utils.defaults import DefaultsManager, SUPPORTED_BROWSERS
from stream_grab.utils.errors import StreamGrabError
from stream_grab.utils.models import StreamSet
from stream_grab.utils.streamfile import read_stream_file, write_stream_file

EXIT_INTERRUPTED = 130


def _terminate(signum, frame):
    # Turn SIGTERM into SystemExit so context managers clean up
    raise SystemExit(128 + signum)


def guarded(func: Callable[[], Any]) -> Any:
    """
    Run a pipeline step, turning fatal errors into a one-line diagnostic and
    a non-zero exit code.
    """
    try:
        return func()
    except StreamGrabError as e:
        logger.debug(f"Fatal {type(e).__name__}: {e}")
        click.echo(f"Error: {e.diagnostic()}", err=True)
        sys.exit(e.exit_code)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("Interrupted; temporary files removed.", err=True)
        sys.exit(EXIT_INTERRUPTED)


def effective_params(raw_user_params: Dict[str, Any]) -> Dict[str, Any]:
    params = DefaultsManager.get_effective_params(raw_user_params, ConfigManager())
    # An explicit cookie file overrides a configured default browser
    if raw_user_params.get("cookie_file"):
        params["browser"] = None
        params["profile"] = None
    return params


def require_ffmpeg(engine: MediaEngine) -> None:
    if not engine.is_available():
        click.echo(f"Error: {engine.binary} is not installed. Please install it first.", err=True)
        sys.exit(1)


def resolve_transcriber(params: Dict[str, Any]) -> WhisperTranscriber:
    transcriber = WhisperTranscriber.from_params(params)
    if params.get("whisper") and not transcriber.is_available():
        logger.warning(f"{transcriber.binary} not found; subtitle generation disabled")
        params["whisper"] = False
    return transcriber


def resolve_cookie_source(params: Dict[str, Any], interactive: bool) -> Optional[CookieSource]:
    cookie_file, browser, profile = params.get("cookie_file"), params.get("browser"), params.get("profile")
    if not cookie_file and not browser:
        if not interactive:
            raise click.UsageError("Specify a cookie source with --cookies or --browser")
        answer = prompt_cookie_source()
        if not answer:
            return None
        cookie_file, browser, profile = answer["cookie_file"], answer["browser"], answer["profile"]
    return CookieSource(cookie_file=Path(cookie_file).expanduser() if cookie_file else None,
                        browser=browser, profile=profile)


def cookie_options(func):
    """Options shared by commands that fetch the source page."""
    func = click.option("--profile", "-p", help="Browser profile to use (default: the browser's default profile)")(func)
    func = click.option("--browser", "-b", type=click.Choice(SUPPORTED_BROWSERS, case_sensitive=False),
                        help="Browser to extract cookies from")(func)
    func = click.option("--cookies", "-c", "cookie_file", type=click.Path(dir_okay=False),
                        help="Cookie file (Netscape format, exported from a browser)")(func)
    func = click.option("--url", "-u", help="Website URL containing the streams")(func)
    return func


def subtitle_options(func):
    """Options shared by commands that download and mux."""
    func = click.option("--burn-in/--soft-subs", "burn_in", default=None,
                        help="Render subtitles into the video (default) or add them as a text track")(func)
    func = click.option("--whisper", "-w", is_flag=True,
                        help="Use Whisper to generate subtitles if none are found")(func)
    return func


@click.group(invoke_without_command=True)
@cookie_options
@subtitle_options
@click.option("--output", "-o", help="Output filename (default: output.mp4)")
@click.option("--save-streams", type=click.Path(dir_okay=False), help="Also save the located stream URLs to this file")
@click.option("--debug", "-d", is_flag=True, help="Enable debug logging")
@click.option("--verbose", "-v", is_flag=True, help="Show progress messages in the console")
@click.option("--setup", is_flag=True, help="Run setup wizard or save the given options as defaults")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx, url, cookie_file, browser, profile, whisper, burn_in, output, save_streams,
         debug, verbose, setup):
    """Extract media streams from a web page and combine them into one file."""
    setup_logger(debug=debug, verbose=verbose)
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _terminate)

    # If a subcommand is invoked, let it handle the rest
    if ctx.invoked_subcommand is not None:
        return

    if setup:
        run_setup(browser=browser, profile=profile, burn_in=burn_in)
        sys.exit(0)

    interactive = not url
    url = prompt_page_url(url) if interactive else url
    if not url:
        sys.exit(1)

    params = effective_params({
        "cookie_file": cookie_file,
        "browser": browser,
        "profile": profile,
        "output": output,
        "whisper": whisper,
        "burn_in": burn_in,
    })
    source = resolve_cookie_source(params, interactive)
    if source is None:
        sys.exit(1)

    engine = MediaEngine.from_params(params)
    require_ffmpeg(engine)
    transcriber = resolve_transcriber(params)

    if interactive:
        show_run_summary("stream-grab", {
            "Page": url,
            "Cookies": source.describe(),
            "Output": params["output"],
            "Subtitles": "burn-in" if params["burn_in"] else "soft",
            "Whisper fallback": "yes" if params.get("whisper") else "no",
        })

    result = guarded(lambda: run_pipeline(
        url, source, params,
        orchestrator=StreamOrchestrator(engine, transcriber),
        save_streams=Path(save_streams) if save_streams else None,
    ))
    click.echo(f"Successfully created: {result}")


def run_setup(browser: Optional[str], profile: Optional[str], burn_in: Optional[bool]) -> None:
    """Save given options as defaults, or run the wizard when none are given."""
    config = ConfigManager()
    if browser is None and profile is None and burn_in is None:
        run_setup_wizard(config)
        return

    logger.info("Running non-interactive setup...")
    if browser:
        config.set("browser", browser.lower())
        logger.success(f"Set default browser to: {browser}")
    if profile:
        config.set("profile", profile)
        logger.success(f"Set default profile to: {profile}")
    if burn_in is not None:
        config.set("burn_in", burn_in)
        logger.success(f"Set subtitle mode to: {'burn-in' if burn_in else 'soft'}")
    logger.success("Configuration updated successfully.")


@main.command()
@cookie_options
@click.option("--output", "-o", "streams_file", help="Output file to save stream URLs (default: streams.txt)")
def extract(url, cookie_file, browser, profile, streams_file):
    """Locate stream URLs on a page and save them to a stream file."""
    interactive = not url
    url = prompt_page_url(url) if interactive else url
    if not url:
        sys.exit(1)

    params = effective_params({
        "cookie_file": cookie_file,
        "browser": browser,
        "profile": profile,
        "streams_file": streams_file,
    })
    source = resolve_cookie_source(params, interactive)
    if source is None:
        sys.exit(1)

    def _extract() -> StreamSet:
        with RunContext() as context:
            credentials = obtain(url, source, context)
            stream_set = StreamLocator.from_params(params).locate(url, credentials)
        write_stream_file(stream_set, params["streams_file"])
        return stream_set

    stream_set = guarded(_extract)
    click.echo(f"Stream URLs saved to: {params['streams_file']}")
    if not stream_set.video:
        click.echo("Warning: No video stream URL found", err=True)
    click.echo(f"Next: streamgrab download -f {params['streams_file']} -o output.mp4")


@main.command()
@click.option("--video", "-v", help="Video stream URL")
@click.option("--audio", "-a", help="Audio stream URL (optional)")
@click.option("--subtitle", "-s", help="Subtitle stream URL (optional)")
@click.option("--streams-file", "-f", type=click.Path(dir_okay=False), help="Stream file written by 'extract'")
@click.option("--output", "-o", help="Output filename (default: output.mp4)")
@subtitle_options
def download(video, audio, subtitle, streams_file, output, whisper, burn_in):
    """Download video/audio/subtitle streams and combine them with ffmpeg."""
    if streams_file:
        loaded = guarded(lambda: read_stream_file(streams_file))
        video = video or loaded.video
        audio = audio or loaded.audio
        subtitle = subtitle or loaded.subtitle
        source_url = loaded.source_url
    else:
        source_url = ""

    if not video:
        answer = prompt_download_inputs(video, audio, subtitle, output)
        if not answer:
            click.echo("Error: Invalid video URL", err=True)
            sys.exit(1)
        video, audio, subtitle, output = answer["video"], answer["audio"], answer["subtitle"], answer["output"]

    params = effective_params({"output": output, "whisper": whisper, "burn_in": burn_in})
    engine = MediaEngine.from_params(params)
    require_ffmpeg(engine)
    orchestrator = StreamOrchestrator(engine, resolve_transcriber(params))

    stream_set = StreamSet(source_url=source_url, video=video, audio=audio, subtitle=subtitle)
    options = RunOptions.from_params(params)

    def _download() -> Path:
        with RunContext() as context:
            return orchestrator.run(stream_set, context, options)

    result = guarded(_download)
    click.echo(f"Successfully created: {result}")


if __name__ == "__main__":
    main()
