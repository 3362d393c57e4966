"""Core backup functionality."""

from .archiver import DeterministicArchiver, GnuTarStrategy, BsdTarStrategy, select_strategy
from .fingerprint import ContentFingerprinter, hash_file
from .orchestrator import BackupOrchestrator
from .models import BackupEntry, BackupResult, BackupStatus, Capability
from .errors import BackupError, SourceNotFoundError, ArchiveToolError, ArchiveError, ConfigError

__all__ = [
    "DeterministicArchiver", "GnuTarStrategy", "BsdTarStrategy", "select_strategy",
    "ContentFingerprinter", "hash_file", "BackupOrchestrator",
    "BackupEntry", "BackupResult", "BackupStatus", "Capability",
    "BackupError", "SourceNotFoundError", "ArchiveToolError", "ArchiveError", "ConfigError",
]
