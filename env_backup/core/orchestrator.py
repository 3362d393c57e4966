"""Per-entry backup decisions: skip, leave unchanged, or rotate and update."""

import logging
import os
import shutil
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from .errors import ArchiveToolError, SourceNotFoundError
from .fingerprint import ContentFingerprinter, hash_file
from .models import BackupEntry, BackupResult, BackupStatus
from ..utils.filesystem import ensure_dir, is_directory
from ..utils.formatters import ARCHIVE_SUFFIX, get_timestamp, make_archive_name, short_digest


def effective_latest_path(latest: str, source_is_dir: bool) -> str:
    """Latest path actually used: directory backups always end in ``.tar.gz``."""
    if source_is_dir and not latest.endswith(ARCHIVE_SUFFIX):
        return f"{latest}{ARCHIVE_SUFFIX}"
    return latest


class BackupOrchestrator:
    """Runs backup entries one after another."""

    def __init__(self, fingerprinter: Optional[ContentFingerprinter] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize backup orchestrator.

        Args:
            fingerprinter: Fingerprinter to use; a default one is created if omitted.
            clock: Returns the time used for archive names. Defaults to current UTC time.
        """
        self.fingerprinter = fingerprinter or ContentFingerprinter()
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def run(self, entries: Iterable[BackupEntry]) -> List[BackupResult]:
        """Process all entries in order.

        A failing entry never stops the ones after it.

        Returns:
            One result per entry, in the same order.
        """
        entries = list(entries)
        self.logger.info(f"Starting backup of {len(entries)} entries")

        results = [self.process_entry(entry) for entry in entries]

        self.logger.info("Backup complete")
        return results

    def process_entry(self, entry: BackupEntry) -> BackupResult:
        """Back up one entry, converting any failure into a result."""
        try:
            return self.backup_entry(entry)
        except SourceNotFoundError as e:
            self.logger.info(f"  SKIP: {e}")
            return BackupResult(name=entry.name, status=BackupStatus.SKIPPED,
                                reason="source not found")
        except (ArchiveToolError, OSError) as e:
            self.logger.error(f"  ERROR: {e}")
            return BackupResult(name=entry.name, status=BackupStatus.ERROR, error=str(e))
        except Exception as e:
            self.logger.exception(f"  ERROR: unexpected failure backing up {entry.name}: {e}")
            return BackupResult(name=entry.name, status=BackupStatus.ERROR, error=str(e))

    def backup_entry(self, entry: BackupEntry) -> BackupResult:
        """Back up one entry.

        Raises:
            SourceNotFoundError: If the source does not exist.
            ArchiveToolError: If a directory source cannot be archived.
            OSError: If any filesystem operation fails.
        """
        self.logger.info(f"Processing: {entry.name}")

        if not os.path.exists(entry.source):
            raise SourceNotFoundError(entry.source)

        source_is_dir = is_directory(entry.source)
        self.logger.info(f"  Type: {'directory' if source_is_dir else 'file'}")

        latest = effective_latest_path(entry.latest, source_is_dir)
        if latest != entry.latest:
            self.logger.info(f"  Latest path normalized to {latest}")

        if source_is_dir:
            with self.fingerprinter.directory_snapshot(entry.source) as snapshot:
                return self._update(entry, latest, snapshot.digest,
                                    install=snapshot.claim)

        source_digest = hash_file(entry.source)
        return self._update(entry, latest, source_digest,
                            install=lambda dest: shutil.copy2(entry.source, dest))

    def _update(self, entry: BackupEntry, latest: str, source_digest: str,
                install: Callable[[str], object]) -> BackupResult:
        self.logger.info(f"  Source hash: {short_digest(source_digest)}")
        archived_path = None

        if os.path.exists(latest):
            latest_digest = hash_file(latest)
            self.logger.info(f"  Latest hash: {short_digest(latest_digest)}")

            if latest_digest == source_digest:
                self.logger.info("  SKIP: No changes detected")
                return BackupResult(name=entry.name, status=BackupStatus.UNCHANGED,
                                    latest_path=latest, fingerprint=source_digest,
                                    size=os.path.getsize(latest))

            archived_path = self.rotate(latest, entry.archive_dir)

        ensure_dir(os.path.dirname(os.path.abspath(latest)))
        install(latest)
        self.logger.info(f"  Updated latest: {latest}")

        return BackupResult(name=entry.name, status=BackupStatus.BACKED_UP,
                            latest_path=latest, archived_path=archived_path,
                            fingerprint=source_digest, size=os.path.getsize(latest))

    def rotate(self, latest: str, archive_dir: str) -> str:
        """Copy the current latest artifact into the archive directory.

        The copy is named after latest with a timestamp inserted. Existing
        archived artifacts are never overwritten.

        Returns:
            Path of the archived copy.
        """
        ensure_dir(archive_dir)
        now = self.clock() if self.clock else None
        timestamp = get_timestamp(now)
        base_name = os.path.basename(latest)

        archive_path = os.path.join(archive_dir, make_archive_name(base_name, timestamp))
        counter = 0
        while os.path.lexists(archive_path):
            counter += 1
            archive_path = os.path.join(archive_dir,
                                        make_archive_name(base_name, f"{timestamp}-{counter}"))

        shutil.copy2(latest, archive_path)
        self.logger.info(f"  Archived previous: {archive_path}")
        return archive_path
