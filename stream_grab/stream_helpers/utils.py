"""
Utility functions for the stream pipeline
"""
import sys
import time
from pathlib import Path
from typing import Callable, Optional, Tuple, Type, TypeVar
from urllib.parse import urlparse
from loguru import logger

T = TypeVar("T")

LOG_DIR_NAME = Path(".stream_grab") / "logs"


def setup_logger(debug: bool = False, verbose: bool = False, log_dir: Optional[Path] = None) -> None:
    """
    Configure loguru logger with appropriate log levels.

    Args:
        debug: Enable debug mode for maximum verbosity
        verbose: Enable info-level messages
        log_dir: Directory for the rotating log file
    """
    logger.remove()  # Remove default handler

    log_dir = log_dir or Path.home() / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)

    # Add file logging
    logger.add(
        str(log_dir / "streamgrab_{time}.log"),
        rotation="1 day",
        retention="7 days",
        level="INFO",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    )

    # Console logging goes to the diagnostic stream
    if debug:
        logger.add(sys.stderr, level="DEBUG")
    elif verbose:
        logger.add(sys.stderr, level="INFO", format="<level>{message}</level>")
    else:
        logger.add(sys.stderr, level="SUCCESS", format="<level>{message}</level>")


def is_http_url(url: Optional[str]) -> bool:
    """Basic URL validation: http:// or https:// scheme."""
    if not url:
        return False
    return urlparse(url.strip()).scheme in ("http", "https")


def origin_domain(url: str) -> str:
    """
    Cookie domain for a page URL: its host name without a leading "www.".

    browser_cookie3 matches cookie hosts by suffix, so the bare domain also
    picks up cookies set on ".example.com".
    """
    host = urlparse(url).hostname or ""
    if not host:
        raise ValueError(f"Cannot determine domain of URL: {url}")
    if host.startswith("www."):
        host = host[4:]
    return host


def with_retry(func: Callable[[], T], retry_on: Tuple[Type[BaseException], ...],
               max_retries: int = 3, retry_delay: float = 2.0) -> T:
    """
    Execute a function with retry logic.

    Args:
        func: Function to execute
        retry_on: Exception types that trigger another attempt
        max_retries: Total number of attempts
        retry_delay: Seconds to wait between attempts

    Returns:
        Result of the function
    """
    retries = 0
    while True:
        try:
            return func()
        except retry_on as e:
            retries += 1
            if retries >= max_retries:
                logger.error(f"Failed after {max_retries} attempts: {e}")
                raise
            logger.warning(f"Error: {e}. Retrying in {retry_delay} seconds... (attempt {retries}/{max_retries})")
            time.sleep(retry_delay)
