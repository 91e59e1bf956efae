"""
Configuration Management for the Oriento session client.

This module handles client configuration including the API server URL,
authentication endpoints, navigation routes and logging settings, with support
for configuration files and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from configparser import ConfigParser

from oriento_shared.exceptions import ConfigurationError, ErrorCode
from oriento_shared.interfaces import IConfigurationManager

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = Path.home() / '.config' / 'oriento' / 'client.conf'


class ClientConfiguration(IConfigurationManager):
    """
    Configuration manager for the Oriento session client.

    Supports configuration from:
    1. Overrides, usually command line arguments (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    ENV_MAPPINGS = {
        'ORIENTO_API_URL': ('server', 'url'),
        'ORIENTO_AUTH_PATH': ('server', 'auth_path'),
        'ORIENTO_TIMEOUT': ('server', 'timeout'),
        'ORIENTO_RETRY_ATTEMPTS': ('server', 'retry_attempts'),
        'ORIENTO_LOGIN_ROUTE': ('navigation', 'login_route'),
        'ORIENTO_LOG_LEVEL': ('logging', 'level'),
        'ORIENTO_LOG_FILE': ('logging', 'file'),
    }

    DEFAULTS = {
        'server': {
            'url': 'http://localhost:8080',
            'auth_path': '/api/auth',
            'timeout': 30.0,
            'retry_attempts': 2,
            'retry_delay': 0.5
        },
        'navigation': {
            'login_route': '/login',
            'home_route': '/dashboard'
        },
        'logging': {
            'level': 'INFO',
            'format': 'standard',
            'file': None,
            'audit_file': None
        }
    }

    def __init__(self, config_file: Optional[str] = None):
        self._config_file = str(config_file) if config_file else str(DEFAULT_CONFIG_PATH)
        self._explicit_file = config_file is not None
        self._config_data: Dict[str, Dict[str, Any]] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration()

    def _load_configuration(self) -> None:
        """Load configuration from file and environment variables."""
        if os.path.exists(self._config_file):
            self._load_from_file()
            logger.info(f"Configuration loaded from: {self._config_file}")
        elif self._explicit_file:
            raise ConfigurationError(
                f"Configuration file not found: {self._config_file}",
                error_code=ErrorCode.CONFIG_FILE_NOT_FOUND
            )
        else:
            logger.debug(f"No configuration file at {self._config_file}, using defaults")

        self._load_from_environment()
        self._set_defaults()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        config.read(self._config_file)

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                # Numbers and booleans are written as JSON literals
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data[section_name] = section_data

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.environ.get(env_var)
            if value is None:
                continue

            section_data = self._config_data.setdefault(section, {})
            if value.lower() in ('true', 'false'):
                section_data[key] = value.lower() == 'true'
            elif value.isdigit():
                section_data[key] = int(value)
            else:
                section_data[key] = value

    def _set_defaults(self) -> None:
        """Fill in default values for anything not configured."""
        for section, section_defaults in self.DEFAULTS.items():
            section_data = self._config_data.setdefault(section, {})
            for key, default_value in section_defaults.items():
                section_data.setdefault(key, default_value)

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if key in self._overrides:
            return self._overrides[key]

        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        return self._config_data.get(section, {}).get(config_key, default)

    def set_override(self, key: str, value: Any) -> None:
        """
        Set configuration override (highest priority).

        Args:
            key: Configuration key in format 'section.key'
            value: Override value
        """
        self._overrides[key] = value

    def get_config_file_path(self) -> str:
        """Get configuration file path."""
        return self._config_file

    def _get_number(self, key: str, cast, minimum: float):
        value = self.get_config(key)
        try:
            number = cast(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid value for {key}: {value!r}", config_key=key)
        if number < minimum:
            raise ConfigurationError(f"{key} must be >= {minimum}, got {number}", config_key=key)
        return number

    def get_server_url(self) -> str:
        """Get server URL."""
        return str(self.get_config('server.url')).rstrip('/')

    def get_auth_path(self) -> str:
        """Get base path of the authentication endpoints."""
        return '/' + str(self.get_config('server.auth_path')).strip('/')

    def get_server_timeout(self) -> float:
        """Get server request timeout in seconds."""
        return self._get_number('server.timeout', float, 0.1)

    def get_retry_attempts(self) -> int:
        """Get number of connection-level retry attempts."""
        return self._get_number('server.retry_attempts', int, 0)

    def get_retry_delay(self) -> float:
        """Get base retry delay in seconds."""
        return self._get_number('server.retry_delay', float, 0.0)

    def get_login_route(self) -> str:
        return self.get_config('navigation.login_route')

    def get_home_route(self) -> str:
        return self.get_config('navigation.home_route')

    def get_log_level(self) -> str:
        """Get logging level."""
        return str(self.get_config('logging.level', 'INFO')).upper()

    def get_log_format(self) -> str:
        return str(self.get_config('logging.format', 'standard')).lower()

    def get_log_file(self) -> Optional[str]:
        """Get log file path."""
        return self.get_config('logging.file')

    def get_audit_file(self) -> Optional[str]:
        return self.get_config('logging.audit_file')
