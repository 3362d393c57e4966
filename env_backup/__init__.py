"""
env-backup - Incremental, deduplicated backups of files and directories.

Each configured source is fingerprinted and compared with its latest backup;
only changed content is written, and the previous latest artifact is rotated
into a timestamped archive.
"""

__version__ = "1.0.0"

from .core.orchestrator import BackupOrchestrator
from .core.fingerprint import ContentFingerprinter
from .core.archiver import DeterministicArchiver
from .reporters.summary_reporter import SummaryReporter

__all__ = ["BackupOrchestrator", "ContentFingerprinter", "DeterministicArchiver", "SummaryReporter"]
