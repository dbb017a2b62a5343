"""
Configuration management for stream-grab.
Handles loading and saving user preferences and environment overrides.
"""
import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
from loguru import logger
from dotenv import load_dotenv

ENV_PREFIX = "STREAMGRAB_"


class ConfigManager:
    """Manages application configuration and user preferences."""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_dir: Directory holding config.json (default: ~/.stream_grab)
        """
        self.app_name = "stream_grab"
        self.config_dir = Path(config_dir) if config_dir else Path.home() / f".{self.app_name}"
        self.config_file = self.config_dir / "config.json"
        self.env_file = Path(".env")

        # Ensure config directory exists
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Load existing config
        self.config = self._load_config()

        # Load environment variables
        load_dotenv(self.env_file)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from JSON file."""
        if not self.config_file.exists():
            return {}

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config file: {e}")
            return {}

    def save_config(self) -> None:
        """Save current configuration to JSON file."""
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2)
            logger.info(f"Configuration saved to {self.config_file}")
        except OSError as e:
            logger.error(f"Failed to save config file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value and save."""
        self.config[key] = value
        self.save_config()

    def unset(self, key: str) -> None:
        if key in self.config:
            del self.config[key]
            self.save_config()

    def env_overrides(self, keys) -> Dict[str, str]:
        """
        Collect STREAMGRAB_<KEY> environment variables for the given keys.

        Values are returned as raw strings; DefaultsManager coerces them.
        """
        overrides = {}
        for key in keys:
            value = os.getenv(f"{ENV_PREFIX}{key.upper()}")
            if value is not None and value != "":
                overrides[key] = value
        return overrides
