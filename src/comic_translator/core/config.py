"""Configuration management for Comic Translator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class AppConfig:
    """
    Application configuration settings.

    Controls where groups are stored and how sidecar files are written.
    """

    storage_root: str = "uploads"  # One subdirectory per group
    sidecar_filename: str = "translations.json"  # Annotation file inside each group
    json_indent: int = 2  # Indentation of sidecar JSON (0 = compact)
    max_upload_mb: int = 100  # Largest accepted image upload
    export_filename: str = "translations.txt"  # Attachment name for text exports
    log_level: str = "INFO"

    @property
    def storage_path(self) -> Path:
        """Storage root as a Path."""
        return Path(self.storage_root)

    @property
    def max_upload_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_upload_mb * 1024 * 1024

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "storageRoot": self.storage_root,
            "sidecarFilename": self.sidecar_filename,
            "jsonIndent": self.json_indent,
            "maxUploadMb": self.max_upload_mb,
            "exportFilename": self.export_filename,
            "logLevel": self.log_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """
        Create config from dictionary.

        Values of the wrong type are logged and replaced by the default.
        """
        return cls(
            storage_root=_typed(data, "storageRoot", str, "uploads"),
            sidecar_filename=_typed(data, "sidecarFilename", str, "translations.json"),
            json_indent=_typed(data, "jsonIndent", int, 2),
            max_upload_mb=_typed(data, "maxUploadMb", int, 100),
            export_filename=_typed(data, "exportFilename", str, "translations.txt"),
            log_level=_typed(data, "logLevel", str, "INFO"),
        )


def _typed(data: Dict[str, Any], key: str, kind: type, default: Any) -> Any:
    """Read a config value, falling back to the default on a type mismatch."""
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, kind):
        logger.warning(f"Config value {key}={value!r} is not a {kind.__name__}, using {default!r}")
        return default
    if kind is int and value < 0:
        logger.warning(f"Config value {key}={value!r} is negative, using {default!r}")
        return default
    return value


class ConfigManager:
    """
    Manager for loading and saving application configuration.

    Handles YAML serialization and provides a clean interface
    for configuration access.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> AppConfig:
        """
        Load configuration from file.

        Returns:
            AppConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return AppConfig()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                logger.error(f"Config file {self.config_path} is not a mapping, using defaults")
                return AppConfig()
            logger.info(f"Loaded configuration from {self.config_path}")
            return AppConfig.from_dict(data)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return AppConfig()
        except OSError as e:
            logger.error(f"Error loading config: {e}")
            return AppConfig()

    def save(self, config: Optional[AppConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False
