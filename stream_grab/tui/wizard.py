"""
Setup wizard for configuring stream-grab defaults.
"""
import questionary
from rich.console import Console
from rich.panel import Panel

from stream_grab.utils.config import ConfigManager
from stream_grab.utils.defaults import DefaultsManager, SUPPORTED_BROWSERS

console = Console()


def run_setup_wizard(config: ConfigManager = None):
    """Run the interactive setup wizard."""
    console.print(Panel.fit("stream-grab Setup", style="bold blue"))

    config = config or ConfigManager()
    defaults = DefaultsManager.all_defaults()

    while True:
        browser = config.get("browser") or "Not set"
        burn_in = config.get("burn_in", defaults["burn_in"])
        model = config.get("whisper_model", defaults["whisper_model"])
        language = config.get("whisper_language", defaults["whisper_language"])

        action = questionary.select(
            "Defaults Menu:",
            choices=[
                questionary.Choice(f"Default browser ({browser})", value="browser"),
                questionary.Choice(f"Subtitles ({'burn-in' if burn_in else 'soft'})", value="burn_in"),
                questionary.Choice(f"Whisper model ({model})", value="whisper_model"),
                questionary.Choice(f"Whisper language ({language or 'Auto'})", value="whisper_language"),
                questionary.Choice("Exit", value="exit"),
            ]
        ).ask()

        if action == "exit" or action is None:
            console.print("Exiting setup.")
            break

        if action == "browser":
            configure_browser(config)

        elif action == "burn_in":
            value = questionary.confirm("Burn subtitles into the video (re-encode)?",
                                        default=bool(burn_in)).ask()
            if value is not None:
                config.set("burn_in", value)
                console.print(f"[green]Subtitles set to {'burn-in' if value else 'soft'}[/green]")

        elif action == "whisper_model":
            selected = questionary.select(
                "Select Whisper model:",
                choices=["tiny", "base", "small", "medium", "large", "turbo"],
                default=model if model in ("tiny", "base", "small", "medium", "large", "turbo") else None,
            ).ask()
            if selected:
                config.set("whisper_model", selected)
                console.print(f"[green]Whisper model set to {selected}[/green]")

        elif action == "whisper_language":
            lang = questionary.text("Enter language code (e.g. 'en', 'de') or leave empty for Auto:").ask()
            if lang is not None:
                val = lang.strip() if lang.strip() else None
                config.set("whisper_language", val)
                console.print(f"[green]Whisper language set to {val if val else 'Auto'}[/green]")


def configure_browser(config: ConfigManager):
    """Configure the default browser and profile for cookie extraction."""
    choices = SUPPORTED_BROWSERS + ["none"]
    selected = questionary.select("Select default browser:", choices=choices).ask()
    if not selected:
        return
    if selected == "none":
        config.unset("browser")
        config.unset("profile")
        console.print("[green]Default browser cleared[/green]")
        return

    config.set("browser", selected)
    profile = None
    if selected != "safari":
        entered = questionary.text("Default profile (leave empty for the browser default):").ask()
        profile = entered.strip() if entered and entered.strip() else None
    if profile:
        config.set("profile", profile)
    else:
        config.unset("profile")
    console.print(f"[green]Default browser set to {selected}{f' ({profile})' if profile else ''}[/green]")
