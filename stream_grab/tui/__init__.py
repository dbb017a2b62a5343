"""
Interactive prompts and setup wizard.
"""
from stream_grab.tui.interactive import (
    prompt_page_url, prompt_cookie_source, prompt_download_inputs, show_run_summary,
)
from stream_grab.tui.wizard import run_setup_wizard
