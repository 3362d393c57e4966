import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from env_backup.core.archiver import ArchiveStrategy, DeterministicArchiver, GnuTarStrategy
from env_backup.core.errors import ArchiveToolError
from env_backup.core.fingerprint import ContentFingerprinter
from env_backup.core.models import BackupEntry, Capability
from env_backup.core.orchestrator import BackupOrchestrator

FIXED_TIME = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)
FIXED_TOKEN = "2024-01-15T10-30-00"


def _find_gnu_tar():
    for command in ("gtar", "tar"):
        strategy = GnuTarStrategy(command)
        if strategy.probe() == Capability.FULL:
            return strategy
    return None


GNU_TAR = _find_gnu_tar()


class FakeArchiveStrategy(ArchiveStrategy):
    """Writes a listing of file names and contents instead of calling tar."""

    name = 'fake'
    capability = Capability.FULL

    def __init__(self, capability=Capability.FULL):
        super().__init__('fake-tar')
        self.capability = capability
        self.calls = 0

    def probe(self):
        return self.capability

    def archive(self, source_dir, output_path):
        self.calls += 1
        with open(output_path, 'wb') as out:
            for root, dirs, files in os.walk(source_dir):
                dirs.sort()
                for name in sorted(files):
                    path = os.path.join(root, name)
                    out.write(os.path.relpath(path, source_dir).encode() + b'\0')
                    with open(path, 'rb') as f:
                        out.write(f.read() + b'\0')


class FailingArchiveStrategy(ArchiveStrategy):
    """Leaves a partial archive behind and fails."""

    name = 'failing'
    capability = Capability.FULL

    def __init__(self):
        super().__init__('broken-tar')

    def archive(self, source_dir, output_path):
        with open(output_path, 'wb') as out:
            out.write(b'partial')
        raise ArchiveToolError("broken-tar failed with exit code 2: boom")


@pytest.fixture(autouse=True)
def restore_root_logger():
    """CLI tests reconfigure the root logger; put it back afterwards."""
    root_logger = logging.getLogger()
    level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)


@pytest.fixture
def gnu_archiver():
    """Archiver backed by GNU tar; skips the test when it is not installed."""
    if GNU_TAR is None:
        pytest.skip("GNU tar and gzip are not available")
    return DeterministicArchiver(strategy=GNU_TAR)


@pytest.fixture
def temp_area(tmp_path):
    """Directory for transient archives, so leftovers can be detected."""
    path = tmp_path / "transient"
    path.mkdir()
    return path


@pytest.fixture
def fake_fingerprinter(temp_area):
    return ContentFingerprinter(DeterministicArchiver(strategy=FakeArchiveStrategy()),
                                temp_dir=str(temp_area))


@pytest.fixture
def gnu_fingerprinter(gnu_archiver, temp_area):
    return ContentFingerprinter(gnu_archiver, temp_dir=str(temp_area))


@pytest.fixture
def source_tree(tmp_path):
    """Create a source directory with a few nested files."""
    source = tmp_path / "source"
    (source / "sub" / "deeper").mkdir(parents=True)
    (source / "a.txt").write_text("alpha")
    (source / "B.txt").write_text("bravo")
    (source / "sub" / "c.txt").write_text("charlie")
    (source / "sub" / "deeper" / "d.bin").write_bytes(bytes(range(256)))
    return source


@pytest.fixture
def backup_root(tmp_path):
    root = tmp_path / "backups"
    root.mkdir()
    return root


@pytest.fixture
def make_entry(backup_root):
    """Build a BackupEntry whose outputs live under backup_root."""
    def _make(name, source, latest_name="latest"):
        return BackupEntry(
            name=name,
            source=str(source),
            latest=str(backup_root / name / latest_name),
            archive_dir=str(backup_root / name / "archive"),
        )
    return _make


@pytest.fixture
def fixed_orchestrator(fake_fingerprinter):
    return BackupOrchestrator(fake_fingerprinter, clock=lambda: FIXED_TIME)


@pytest.fixture
def write_config(tmp_path):
    """Write a YAML config file and return its path."""
    def _write(data, name="config.yaml"):
        path = tmp_path / name
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f)
        return path
    return _write


def list_files(directory: Path):
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir())
