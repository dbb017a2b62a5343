"""
Interactive prompts for inputs missing from the command line.
"""
from pathlib import Path
from typing import Dict, Any, Optional
import questionary
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stream_grab.stream_helpers.utils import is_http_url
from stream_grab.utils.defaults import SUPPORTED_BROWSERS

console = Console(stderr=True)


def confirm_url(url: Optional[str], required: bool = True) -> Optional[str]:
    """
    Validate a URL, asking before accepting one without an http(s) scheme.

    Returns the URL, or None if it was rejected (or empty and optional).
    """
    if not url:
        if required:
            console.print("[red]A URL is required.[/red]")
        return None
    if is_http_url(url):
        return url
    console.print(f"[yellow]Warning: URL '{url}' doesn't start with http:// or https://[/yellow]")
    if questionary.confirm("Continue anyway?", default=False).ask():
        return url
    return None


def prompt_page_url(url: Optional[str] = None) -> Optional[str]:
    if not url:
        url = questionary.text("Enter website URL:").ask()
    return confirm_url(url.strip() if url else url)


def prompt_cookie_source(cookie_file: Optional[str] = None, browser: Optional[str] = None,
                         profile: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Ask for a cookie source when neither a file nor a browser was given.

    Returns a dict with cookie_file, browser and profile, or None if cancelled.
    """
    if cookie_file or browser:
        return {"cookie_file": cookie_file, "browser": browser, "profile": profile}

    choice = questionary.select(
        "Cookie source not specified. Choose an option:",
        choices=[
            questionary.Choice("Use a cookie file", value="file"),
            questionary.Choice("Extract cookies from browser", value="browser"),
        ]
    ).ask()

    if choice == "file":
        path = questionary.path("Enter path to cookie file:").ask()
        if not path:
            return None
        if not Path(path).expanduser().is_file():
            console.print(f"[red]Cookie file not found: {path}[/red]")
            return None
        return {"cookie_file": str(Path(path).expanduser()), "browser": None, "profile": None}

    if choice == "browser":
        browser = questionary.select("Select browser:", choices=SUPPORTED_BROWSERS).ask()
        if not browser:
            return None
        if browser != "safari":
            entered = questionary.text("Enter browser profile (leave empty for default):").ask()
            profile = entered.strip() if entered and entered.strip() else None
        return {"cookie_file": None, "browser": browser, "profile": profile}

    return None


def prompt_download_inputs(video: Optional[str], audio: Optional[str], subtitle: Optional[str],
                           output: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Ask for stream URLs and the output name for a stand-alone download.

    Audio and subtitle may be left empty.
    """
    if not video:
        video = questionary.text("Enter video stream URL:").ask()
        video = confirm_url(video.strip() if video else video)
        if not video:
            return None

        if audio is None:
            entered = questionary.text("Enter audio stream URL (leave empty if not available):").ask()
            if entered and entered.strip():
                audio = confirm_url(entered.strip(), required=False)
                if audio is None:
                    return None

        if subtitle is None:
            entered = questionary.text("Enter subtitle stream URL (leave empty if not available):").ask()
            if entered and entered.strip():
                subtitle = confirm_url(entered.strip(), required=False)
                if subtitle is None:
                    return None

        if not output:
            entered = questionary.text("Enter output filename (e.g., output.mp4):").ask()
            if entered and entered.strip():
                output = entered.strip()

    return {"video": video, "audio": audio or None, "subtitle": subtitle or None, "output": output}


def show_run_summary(title: str, rows: Dict[str, Any]) -> None:
    """Print a summary table of the run about to start."""
    console.print(Panel.fit(title, style="bold blue"))
    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in rows.items():
        table.add_row(key, "-" if value in (None, "") else str(value))
    console.print(table)
