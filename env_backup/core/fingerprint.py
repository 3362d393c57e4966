"""Content fingerprints for files and directory trees."""

import hashlib
import itertools
import logging
import os
import shutil
import tempfile
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from .archiver import DeterministicArchiver
from ..utils.formatters import ARCHIVE_SUFFIX

CHUNK_SIZE = 1024 * 1024

_transient_counter = itertools.count()


def hash_file(path: str) -> str:
    """Return the SHA-256 hex digest of a file's bytes.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


class DirectorySnapshot:
    """Canonical archive of a directory, held in a transient file."""

    def __init__(self, path: str, digest: str):
        self.path = path
        self.digest = digest
        self.claimed = False

    def claim(self, destination: str) -> str:
        """Move the archive to destination; it is no longer cleaned up afterwards."""
        shutil.move(self.path, destination)
        self.claimed = True
        self.path = destination
        return destination


class ContentFingerprinter:
    """Computes fingerprints of files and directories.

    A file's fingerprint is the hash of its bytes. A directory's fingerprint is
    the hash of its canonical archive.
    """

    def __init__(self, archiver: Optional[DeterministicArchiver] = None,
                 temp_dir: Optional[str] = None):
        self.archiver = archiver or DeterministicArchiver()
        self.temp_dir = temp_dir
        self.logger = logging.getLogger(__name__)

    def transient_archive_path(self) -> str:
        """Unique path for a transient archive, safe across overlapping runs."""
        temp_dir = self.temp_dir or tempfile.gettempdir()
        name = f"env-backup-{os.getpid()}-{time.time_ns()}-{next(_transient_counter)}{ARCHIVE_SUFFIX}"
        return os.path.join(temp_dir, name)

    @contextmanager
    def directory_snapshot(self, source_dir: str) -> Iterator[DirectorySnapshot]:
        """Archive a directory and yield the archive with its fingerprint.

        The transient archive is deleted when the block exits, whether it
        succeeded or raised, unless it was moved elsewhere with
        ``DirectorySnapshot.claim``.
        """
        path = self.transient_archive_path()
        snapshot = None
        try:
            self.archiver.archive(source_dir, path)
            snapshot = DirectorySnapshot(path, hash_file(path))
            yield snapshot
        finally:
            if snapshot is None or not snapshot.claimed:
                try:
                    os.unlink(path)
                except FileNotFoundError:
                    pass
                else:
                    self.logger.debug(f"Removed transient archive {path}")

    def fingerprint(self, path: str) -> str:
        """Return the fingerprint of a file or directory.

        Raises:
            OSError: If the path is missing or unreadable.
            ArchiveToolError: If a directory cannot be archived.
        """
        if os.path.isdir(path):
            with self.directory_snapshot(path) as snapshot:
                return snapshot.digest
        return hash_file(path)
