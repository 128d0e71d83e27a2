"""
Configuration management for Ambient Tracker.
Supports loading from YAML files and environment variables.
"""
import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .utils import validate_mac_address


logger = logging.getLogger(__name__)

ENV_PREFIX = "AMBIENT_TRACKER_"

REQUIRED_FIELDS = (
    "ambient_weather.api_key",
    "ambient_weather.application_key",
    "ambient_weather.mac_address",
    "google_sheets.spreadsheet_id",
    "google_sheets.credentials_file",
)

# (section, key) -> environment variable suffix
_ENV_FIELDS = {
    ("ambient_weather", "api_key"): "AMBIENT_WEATHER_API_KEY",
    ("ambient_weather", "application_key"): "AMBIENT_WEATHER_APPLICATION_KEY",
    ("ambient_weather", "mac_address"): "AMBIENT_WEATHER_MAC_ADDRESS",
    ("ambient_weather", "end_date"): "AMBIENT_WEATHER_END_DATE",
    ("google_sheets", "spreadsheet_id"): "GOOGLE_SHEETS_SPREADSHEET_ID",
    ("google_sheets", "credentials_file"): "GOOGLE_SHEETS_CREDENTIALS_FILE",
    ("google_sheets", "token_file"): "GOOGLE_SHEETS_TOKEN_FILE",
    ("google_sheets", "sensor_file"): "GOOGLE_SHEETS_SENSOR_FILE",
    ("logging", "level"): "LOGGING_LEVEL",
    ("logging", "file"): "LOGGING_FILE",
    ("logging", "format"): "LOGGING_FORMAT",
}


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""
    pass


class Config:
    """Configuration manager for Ambient Tracker."""

    def __init__(self, config_dict: Dict[str, Any]):
        """
        Initialize Config with a dictionary.

        Args:
            config_dict: Configuration dictionary
        """
        self._config = config_dict
        self.validate()

    @classmethod
    def load_from_file(cls, path: str = "config.yaml") -> "Config":
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        config_path = Path(path)

        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with open(config_path, 'r') as f:
                config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration: {e}")
        except IOError as e:
            raise ConfigError(f"Failed to read configuration file: {e}")

        if config_dict is None:
            raise ConfigError(f"Configuration file is empty: {path}")
        if not isinstance(config_dict, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {path}")

        return cls(config_dict)

    @classmethod
    def load_from_env(cls) -> "Config":
        """
        Load configuration from environment variables.

        Environment variables are prefixed with AMBIENT_TRACKER_
        and use underscores for nested keys. GOOGLE_APPLICATION_CREDENTIALS
        is used for the credentials file when the prefixed variable is unset.

        Example:
            AMBIENT_TRACKER_AMBIENT_WEATHER_API_KEY=abc123
            AMBIENT_TRACKER_GOOGLE_SHEETS_SPREADSHEET_ID=1XfM5...

        Returns:
            Config instance
        """
        config_dict: Dict[str, Any] = {
            "ambient_weather": {},
            "google_sheets": {},
            "logging": {}
        }

        for (section, key), suffix in _ENV_FIELDS.items():
            if value := os.getenv(ENV_PREFIX + suffix):
                config_dict[section][key] = value

        if "credentials_file" not in config_dict["google_sheets"]:
            if creds := os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
                config_dict["google_sheets"]["credentials_file"] = creds

        end_date = config_dict["ambient_weather"].get("end_date")
        if end_date is not None:
            try:
                config_dict["ambient_weather"]["end_date"] = int(end_date)
            except ValueError:
                raise ConfigError(f"end_date must be an integer epoch, got {end_date!r}")

        return cls(config_dict)

    @classmethod
    def load(cls, path: str = "config.yaml") -> "Config":
        """Load from path if it exists, otherwise from the environment."""
        if Path(path).exists():
            return cls.load_from_file(path)
        logger.info(f"No configuration file at {path}, using environment variables")
        return cls.load_from_env()

    def validate(self) -> None:
        """
        Validate configuration values.

        Missing required fields are logged but not fatal; the components that
        need them fail when they are used.

        Raises:
            ConfigError: If a value is present but malformed
        """
        for section in ("ambient_weather", "google_sheets", "logging"):
            value = self._config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigError(f"'{section}' section must be a mapping")

        for name in self.missing_fields():
            logger.warning(f"Missing configuration field: {name}")

        # Validate MAC address format
        mac_address = self.get("ambient_weather.mac_address")
        if mac_address and not validate_mac_address(mac_address):
            raise ConfigError(f"Invalid MAC address format: {mac_address}")

        end_date = self.get("ambient_weather.end_date")
        if end_date is not None and not isinstance(end_date, int):
            raise ConfigError("end_date must be an integer epoch")

        # Validate logging section (optional, with defaults)
        log_level = self.get("logging.level", "INFO")
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if str(log_level).upper() not in valid_levels:
            raise ConfigError(f"Invalid log level: {log_level}. Must be one of {valid_levels}")

    def missing_fields(self) -> List[str]:
        """Required fields that are absent or empty."""
        return [name for name in REQUIRED_FIELDS if not self.get(name)]

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'ambient_weather.api_key')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_ambient_weather_config(self) -> Dict[str, Any]:
        """Get ambient weather configuration section."""
        return self._config.get("ambient_weather") or {}

    def get_google_sheets_config(self) -> Dict[str, Any]:
        """Get Google Sheets configuration section with defaults."""
        defaults = {
            "token_file": None,
            "sensor_file": "config/headers.txt",
        }
        config = self._config.get("google_sheets") or {}
        return {**defaults, **config}

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration section with defaults."""
        defaults = {
            "level": "INFO",
            "file": "logs/ambient_tracker.log",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        }
        config = self._config.get("logging") or {}
        return {**defaults, **config}

    def to_dict(self, sanitize: bool = True) -> Dict[str, Any]:
        """
        Export configuration as dictionary.

        Args:
            sanitize: If True, redact sensitive values (API keys)

        Returns:
            Configuration dictionary
        """
        exported = copy.deepcopy(self._config)
        if not sanitize:
            return exported

        ambient = exported.get("ambient_weather") or {}
        for key in ("api_key", "application_key"):
            if key in ambient:
                ambient[key] = "***REDACTED***"

        return exported
