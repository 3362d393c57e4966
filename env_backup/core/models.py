"""Data models for backup runs."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class BackupStatus(str, Enum):
    """Terminal status of a single backup entry."""
    SKIPPED = "skipped"
    UNCHANGED = "unchanged"
    BACKED_UP = "backed_up"
    ERROR = "error"


class Capability(str, Enum):
    """How much control an archiving tool gives over archive metadata."""
    FULL = "full"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass
class BackupEntry:
    """One configured backup target."""
    name: str
    source: str
    latest: str
    archive_dir: str


@dataclass
class BackupResult:
    """Outcome of processing a backup entry."""
    name: str
    status: BackupStatus
    reason: Optional[str] = None
    error: Optional[str] = None
    latest_path: Optional[str] = None
    archived_path: Optional[str] = None
    fingerprint: Optional[str] = None
    size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data
