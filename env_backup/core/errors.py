"""Exception types raised while running backups."""


class BackupError(Exception):
    """Base class for all env-backup errors."""


class SourceNotFoundError(BackupError):
    """The configured source path does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Source does not exist: {path}")
        self.path = path


class ArchiveToolError(BackupError):
    """An external archiving or compression process failed or is unavailable."""


# Shorter name used by the archiver API.
ArchiveError = ArchiveToolError


class ConfigError(BackupError):
    """Configuration file is missing, unparsable or invalid."""
