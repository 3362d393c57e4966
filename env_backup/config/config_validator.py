"""Configuration validation for env-backup."""

from typing import Any, Dict, List

from ..core.errors import ConfigError


class ConfigValidator:
    """Validates env-backup configuration."""

    REQUIRED_SECTIONS = ['backups']
    REQUIRED_ENTRY_FIELDS = ['name', 'source', 'latest']
    # Both spellings are accepted for the archive directory
    ARCHIVE_DIR_KEYS = ['archive_dir', 'archiveDir']
    LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

    def validate(self, config: Any) -> None:
        """Validate configuration data.

        Args:
            config: Parsed configuration document.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not isinstance(config, dict):
            raise ConfigError("Configuration must be a mapping at the top level")

        self._validate_structure(config)
        self._validate_backups(config['backups'])

        if config.get('archiver') is not None:
            self._validate_archiver(config['archiver'])
        if config.get('logging') is not None:
            self._validate_logging(config['logging'])

    def _validate_structure(self, config: Dict[str, Any]) -> None:
        """Validate basic configuration structure.

        Raises:
            ConfigError: If required sections are missing.
        """
        missing_sections = [section for section in self.REQUIRED_SECTIONS if section not in config]
        if missing_sections:
            raise ConfigError(f"Missing required configuration sections: {missing_sections}")

    def _validate_backups(self, entries: List[Dict[str, Any]]) -> None:
        """Validate the list of backup entries.

        Raises:
            ConfigError: If any entry is invalid.
        """
        if not isinstance(entries, list) or not entries:
            raise ConfigError("'backups' must be a non-empty list")

        seen_names = set()
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ConfigError(f"Backup entry {i} must be a mapping")

            missing_fields = [field for field in self.REQUIRED_ENTRY_FIELDS if field not in entry]
            if not any(key in entry for key in self.ARCHIVE_DIR_KEYS):
                missing_fields.append('archive_dir')
            if missing_fields:
                raise ConfigError(f"Backup entry {i} missing required fields: {missing_fields}")

            for field in self.REQUIRED_ENTRY_FIELDS + self.ARCHIVE_DIR_KEYS:
                if field in entry and (not isinstance(entry[field], str) or not entry[field].strip()):
                    raise ConfigError(f"Backup entry {i} field '{field}' must be a non-empty string")

            if entry['name'] in seen_names:
                raise ConfigError(f"Duplicate backup entry name: {entry['name']}")
            seen_names.add(entry['name'])

    def _validate_archiver(self, archiver_config: Dict[str, Any]) -> None:
        if not isinstance(archiver_config, dict):
            raise ConfigError("'archiver' must be a mapping")

        if 'tar_commands' in archiver_config:
            tar_commands = archiver_config['tar_commands']
            if (not isinstance(tar_commands, list) or not tar_commands
                    or not all(isinstance(cmd, str) and cmd for cmd in tar_commands)):
                raise ConfigError("archiver.tar_commands must be a non-empty list of commands")

        if 'gzip_command' in archiver_config:
            gzip_command = archiver_config['gzip_command']
            if not isinstance(gzip_command, str) or not gzip_command:
                raise ConfigError("archiver.gzip_command must be a non-empty string")

        temp_dir = archiver_config.get('temp_dir')
        if temp_dir is not None and not isinstance(temp_dir, str):
            raise ConfigError("archiver.temp_dir must be a path or null")

    def _validate_logging(self, logging_config: Dict[str, Any]) -> None:
        if not isinstance(logging_config, dict):
            raise ConfigError("'logging' must be a mapping")

        level = logging_config.get('level')
        if level is not None and str(level).upper() not in self.LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {level}")

        log_file = logging_config.get('file')
        if log_file is not None and not isinstance(log_file, str):
            raise ConfigError("logging.file must be a path or null")
