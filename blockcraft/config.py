"""
Configuration management for Blockcraft.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized place for the limits and defaults used by the
merger, splitter, converter and interaction manager.
"""

import yaml
import os
from pathlib import Path
from typing import Any, Dict
import logging


class ConfigManager:
    """
    Manages configuration loading and access for Blockcraft.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file, falling back to defaults."""
        defaults = self._get_default_config()

        if not self.config_path.exists():
            logging.info(f"Configuration file not found: {self.config_path}, using defaults")
            self._config = defaults
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}

            if not isinstance(loaded, dict):
                raise ValueError("top-level YAML value must be a mapping")

            self._config = self._merge(defaults, loaded)
            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError, ValueError) as e:
            logging.error(f"Failed to load configuration: {e}")
            self._config = defaults

    @staticmethod
    def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively overlay ``override`` onto ``base``."""
        merged = dict(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = ConfigManager._merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "merger": {
                "max_merge_items": 50,
                "separator": " ",
                "default_code_language": "plaintext",
                "debug_mode": False
            },
            "splitter": {
                "max_split_parts": 20,
                "min_part_length": 1,
                "words_per_block": 5,
                "smart_splitting": True,
                "proximity_window": 10
            },
            "converter": {
                "max_convert_items": 100,
                "smart_suggestions": True
            },
            "interactions": {
                "max_history_size": 50
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "file": None
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "splitter.max_split_parts")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("merger.max_merge_items")  # Returns 50
            config.get("interactions.max_history_size")  # Returns 50
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def max_merge_items(self) -> int:
        """Get the largest number of blocks a single merge may consume."""
        return self.get("merger.max_merge_items", 50)

    @property
    def merge_separator(self) -> str:
        """Get the default separator for concatenating merges."""
        return self.get("merger.separator", " ")

    @property
    def default_code_language(self) -> str:
        """Get the language assigned to code blocks created by a merge."""
        return self.get("merger.default_code_language", "plaintext")

    @property
    def max_split_parts(self) -> int:
        """Get the largest number of blocks a split may produce."""
        return self.get("splitter.max_split_parts", 20)

    @property
    def min_part_length(self) -> int:
        """Get the shortest part a split keeps as its own block."""
        return self.get("splitter.min_part_length", 1)

    @property
    def words_per_block(self) -> int:
        """Get the default chunk size for word splits."""
        return self.get("splitter.words_per_block", 5)

    @property
    def smart_splitting(self) -> bool:
        """Get whether smart split suggestions are enabled."""
        return self.get("splitter.smart_splitting", True)

    @property
    def proximity_window(self) -> int:
        """Get the minimum distance between two smart split points."""
        return self.get("splitter.proximity_window", 10)

    @property
    def max_convert_items(self) -> int:
        """Get the largest number of blocks a single conversion may touch."""
        return self.get("converter.max_convert_items", 100)

    @property
    def smart_suggestions(self) -> bool:
        """Get whether conversion suggestions are enabled."""
        return self.get("converter.smart_suggestions", True)

    @property
    def max_history_size(self) -> int:
        """Get the interaction history capacity."""
        return self.get("interactions.max_history_size", 50)


# Global configuration instance
config = ConfigManager(os.environ.get("BLOCKCRAFT_CONFIG", "config.yaml"))


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
