"""Configuration management for env-backup."""

import os
import yaml
from typing import Dict, List, Any, Optional

from .config_validator import ConfigValidator
from ..core.archiver import DEFAULT_GZIP_COMMAND, DEFAULT_TAR_COMMANDS
from ..core.errors import ConfigError
from ..core.models import BackupEntry

CONFIG_ENV_VAR = 'ENV_BACKUP_CONFIG'


class ConfigManager:
    """Manages configuration loading and validation for env-backup."""

    DEFAULT_CONFIG_LOCATIONS = [
        "config.yaml",
        "config.yml",
        "config.json",
        os.path.expanduser("~/.env-backup/config.yaml"),
        os.path.expanduser("~/.env-backup/config.yml"),
        "/etc/env-backup/config.yaml",
    ]

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to config file. If not provided,
                        the ENV_BACKUP_CONFIG environment variable and then
                        the default locations are searched.
        """
        self.config_path = config_path
        self.config_data: Dict[str, Any] = {}
        self.validator = ConfigValidator()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file.

        Returns:
            Dictionary containing configuration data.

        Raises:
            ConfigError: If the config file is missing, unparsable or invalid.
        """
        config_file = self._find_config_file()

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                self.config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {config_file}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Error reading config file {config_file}: {e}") from e

        self.validator.validate(self.config_data)
        self._set_defaults()

        return self.config_data

    def _find_config_file(self) -> str:
        """Find configuration file.

        Returns:
            Path to configuration file.

        Raises:
            ConfigError: If no config file is found.
        """
        explicit_path = self.config_path or os.environ.get(CONFIG_ENV_VAR)
        if explicit_path:
            if os.path.exists(explicit_path):
                return explicit_path
            raise ConfigError(f"Config file not found: {explicit_path}")

        for location in self.DEFAULT_CONFIG_LOCATIONS:
            if os.path.exists(location):
                return location

        raise ConfigError(
            f"Configuration file not found in any of these locations:\n" +
            "\n".join(f"  - {loc}" for loc in self.DEFAULT_CONFIG_LOCATIONS) +
            f"\n\nPass --config or set {CONFIG_ENV_VAR}."
        )

    def _set_defaults(self):
        """Set default values for optional configuration parameters."""
        defaults = {
            'archiver': {
                'tar_commands': list(DEFAULT_TAR_COMMANDS),
                'gzip_command': DEFAULT_GZIP_COMMAND,
                'temp_dir': None
            },
            'logging': {
                'level': 'INFO',
                'file': None
            }
        }

        for section, section_defaults in defaults.items():
            if not self.config_data.get(section):
                self.config_data[section] = {}
            for key, value in section_defaults.items():
                if key not in self.config_data[section]:
                    self.config_data[section][key] = value

    def get_backup_entries(self) -> List[BackupEntry]:
        """Get all configured backup entries, in configuration order.

        Returns:
            List of backup entries with ``~`` and environment variables expanded.
        """
        entries = []
        for entry in self.config_data.get('backups', []):
            archive_dir = entry.get('archive_dir', entry.get('archiveDir'))
            entries.append(BackupEntry(
                name=entry['name'],
                source=_expand_path(entry['source']),
                latest=_expand_path(entry['latest']),
                archive_dir=_expand_path(archive_dir)
            ))
        return entries

    def get_archiver_config(self) -> Dict[str, Any]:
        """Get archiver configuration.

        Returns:
            Archiver configuration dictionary.
        """
        return self.config_data.get('archiver', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration.

        Returns:
            Logging configuration dictionary.
        """
        return self.config_data.get('logging', {})


def _expand_path(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))
