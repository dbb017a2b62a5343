"""
Centralized defaults management for stream-grab.
"""
from typing import Dict, Any, Optional
from loguru import logger

from stream_grab.utils.config import ConfigManager

SUPPORTED_BROWSERS = ["chrome", "chromium", "firefox", "edge", "brave", "opera", "safari"]


class DefaultsManager:
    """Centralized defaults management."""

    # Pipeline defaults
    RUN_DEFAULTS = {
        'output': 'output.mp4',
        'streams_file': 'streams.txt',
        'browser': None,
        'profile': None,
        'download_attempts': 1,
        'process_timeout': None,
        'ffmpeg_binary': 'ffmpeg',
    }

    # Page fetch defaults
    FETCH_DEFAULTS = {
        'fetch_timeout': 30,
        'fetch_retries': 3,
        'json_fallback': True,
        'user_agent': ('Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 '
                       '(KHTML, like Gecko) Chrome/124.0 Safari/537.36'),
    }

    # Mux defaults
    MUX_DEFAULTS = {
        'burn_in': True,
        'caption_font': 'Arial',
        'caption_font_size': 24,
        'video_preset': 'slow',
        'video_crf': 18,
    }

    # Transcription fallback defaults
    TRANSCRIBE_DEFAULTS = {
        'whisper_binary': 'whisper',
        'whisper_model': 'medium',
        'whisper_language': 'en',
    }

    _INT_KEYS = {'download_attempts', 'fetch_retries', 'caption_font_size', 'video_crf'}
    _FLOAT_KEYS = {'process_timeout', 'fetch_timeout'}
    _BOOL_KEYS = {'burn_in', 'json_fallback'}

    @classmethod
    def all_defaults(cls) -> Dict[str, Any]:
        effective = {}
        effective.update(cls.RUN_DEFAULTS)
        effective.update(cls.FETCH_DEFAULTS)
        effective.update(cls.MUX_DEFAULTS)
        effective.update(cls.TRANSCRIBE_DEFAULTS)
        return effective

    @classmethod
    def coerce(cls, key: str, value: Any) -> Any:
        """Coerce string values from the environment or config to their type."""
        if value is None:
            return None
        try:
            if key in cls._BOOL_KEYS:
                if isinstance(value, str):
                    return value.strip().lower() in ("1", "true", "yes", "on")
                return bool(value)
            if key in cls._INT_KEYS:
                return int(value)
            if key in cls._FLOAT_KEYS:
                return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid value {value!r} for {key}, using default")
            return cls.all_defaults().get(key)
        return value

    @staticmethod
    def get_effective_params(user_params: Dict[str, Any], config: Optional[ConfigManager] = None) -> Dict[str, Any]:
        """
        Merge defaults with user params using precedence:
        1. User explicit params (highest)
        2. STREAMGRAB_* environment variables
        3. Config file params
        4. Built-in defaults (lowest)
        """
        config = config or ConfigManager()
        defaults = DefaultsManager.all_defaults()

        # Merge in order (lowest precedence first)
        effective = dict(defaults)
        effective.update({k: v for k, v in config.config.items() if k in defaults})
        effective.update(config.env_overrides(defaults.keys()))

        # User params override everything (only if not None)
        user_overrides = {k: v for k, v in user_params.items() if v is not None}
        effective.update(user_overrides)

        return {k: DefaultsManager.coerce(k, v) for k, v in effective.items()}
