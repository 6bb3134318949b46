"""Configuration management system."""

from __future__ import annotations

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from dotenv import load_dotenv

from utils.timezone_utils import get_ledger_timezone
from .constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_DECIMAL_PRECISION,
    DEFAULT_ROUNDING,
    XIRR_DEFAULT_GUESS,
    XIRR_MAX_ITERATIONS,
    XIRR_TOLERANCE,
    XIRR_MIN_RATE,
    XIRR_MAX_RATE,
    MONEY_DECIMAL_PLACES,
    PERCENT_DECIMAL_PLACES,
    COP_DECIMAL_PLACES,
    TOP_HOLDINGS_COUNT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_FORMAT,
    LOG_FILE,
)

logger = logging.getLogger(__name__)


class Settings:
    """Configuration management class for the portfolio engine.

    This class handles loading and managing configuration settings:
    decimal precision, XIRR solver bounds, ledger location and logging.
    Values come from defaults, then an optional JSON file, then environment
    variables.
    """

    def __init__(self, config_file: Optional[str] = None):
        """Initialize settings.

        Args:
            config_file: Optional path to configuration file
        """
        self._config: Dict[str, Any] = {}
        self._config_file = config_file
        self._load_default_config()

        if config_file:
            self.load_from_file(config_file)

        # Load from environment variables
        self._load_from_environment()

    def _load_default_config(self) -> None:
        """Load default configuration values."""
        self._config = {
            'decimal': {
                'precision': DEFAULT_DECIMAL_PRECISION,
                'rounding': DEFAULT_ROUNDING
            },
            'xirr': {
                'guess': XIRR_DEFAULT_GUESS,
                'max_iterations': XIRR_MAX_ITERATIONS,
                'tolerance': XIRR_TOLERANCE,
                'min_rate': XIRR_MIN_RATE,
                'max_rate': XIRR_MAX_RATE
            },
            'ledger': {
                'data_directory': DEFAULT_DATA_DIR,
                'utc_offset_hours': 0
            },
            'display': {
                'money_places': MONEY_DECIMAL_PLACES,
                'percent_places': PERCENT_DECIMAL_PLACES,
                'cop_places': COP_DECIMAL_PLACES,
                'top_holdings': TOP_HOLDINGS_COUNT
            },
            'logging': {
                'level': DEFAULT_LOG_LEVEL,
                'file': LOG_FILE,
                'format': DEFAULT_LOG_FORMAT
            }
        }

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        if os.getenv('FINTU_DATA_DIR'):
            self._config['ledger']['data_directory'] = os.getenv('FINTU_DATA_DIR')

        if os.getenv('FINTU_LEDGER_UTC_OFFSET'):
            self._config['ledger']['utc_offset_hours'] = float(os.getenv('FINTU_LEDGER_UTC_OFFSET'))

        if os.getenv('FINTU_DECIMAL_PRECISION'):
            self._config['decimal']['precision'] = int(os.getenv('FINTU_DECIMAL_PRECISION'))

        if os.getenv('FINTU_XIRR_MAX_ITERATIONS'):
            self._config['xirr']['max_iterations'] = int(os.getenv('FINTU_XIRR_MAX_ITERATIONS'))

        if os.getenv('FINTU_LOG_LEVEL'):
            self._config['logging']['level'] = os.getenv('FINTU_LOG_LEVEL').upper()

        # Development mode
        if os.getenv('FINTU_DEV', 'false').lower() == 'true':
            self._config['logging']['level'] = 'DEBUG'

    def load_from_file(self, config_file: str) -> None:
        """Load configuration from JSON file.

        Args:
            config_file: Path to configuration file
        """
        config_path = Path(config_file)

        if not config_path.exists():
            logger.warning(f"Configuration file not found: {config_file}")
            return

        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load configuration file {config_file}: {e}")
            return

        # Merge with existing configuration
        self._merge_config(self._config, file_config)
        logger.info(f"Loaded configuration from: {config_file}")

    def save_to_file(self, config_file: str) -> None:
        """Save configuration to JSON file.

        Args:
            config_file: Path to save configuration file
        """
        config_path = Path(config_file)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w') as f:
            json.dump(self._config, f, indent=2)

        logger.info(f"Saved configuration to: {config_file}")

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> None:
        """Recursively merge configuration dictionaries.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Args:
            key: Configuration key (supports dot notation, e.g., 'xirr.guess')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value by key.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split('.')
        config = self._config

        # Navigate to the parent dictionary
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def get_decimal_config(self):
        """Get the decimal arithmetic configuration.

        Returns:
            DecimalConfig built from the 'decimal' section
        """
        from financial.calculations import DecimalConfig

        return DecimalConfig(
            precision=int(self.get('decimal.precision', DEFAULT_DECIMAL_PRECISION)),
            rounding=self.get('decimal.rounding', DEFAULT_ROUNDING)
        )

    def get_xirr_config(self) -> Dict[str, Any]:
        """Get XIRR solver parameters.

        Returns:
            Dictionary with guess, max_iterations, tolerance, min_rate and max_rate
        """
        xirr = self.get('xirr', {})
        return {
            'guess': float(xirr.get('guess', XIRR_DEFAULT_GUESS)),
            'max_iterations': int(xirr.get('max_iterations', XIRR_MAX_ITERATIONS)),
            'tolerance': float(xirr.get('tolerance', XIRR_TOLERANCE)),
            'min_rate': float(xirr.get('min_rate', XIRR_MIN_RATE)),
            'max_rate': float(xirr.get('max_rate', XIRR_MAX_RATE))
        }

    def get_data_directory(self) -> str:
        """Get the ledger data directory used by the CSV adapter."""
        return self.get('ledger.data_directory', DEFAULT_DATA_DIR)

    def get_ledger_timezone(self):
        """Get the timezone used to interpret naive ledger dates."""
        return get_ledger_timezone(self.get('ledger.utc_offset_hours', 0))

    def get_display_config(self) -> Dict[str, Any]:
        """Get display formatting configuration."""
        return self.get('display', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', {})

    def is_development_mode(self) -> bool:
        """Check if development mode is enabled."""
        return os.getenv('FINTU_DEV', 'false').lower() == 'true'


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns:
        Global settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure_system(config_file: Optional[str] = None, env_file: Optional[str] = None) -> Settings:
    """Configure the system with settings.

    Loads a ``.env`` file first so that its variables take part in the
    environment overrides.

    Args:
        config_file: Optional path to configuration file
        env_file: Optional path to a .env file (defaults to searching for '.env')

    Returns:
        Configured settings instance
    """
    global _settings
    load_dotenv(env_file) if env_file else load_dotenv()
    _settings = Settings(config_file)
    return _settings
