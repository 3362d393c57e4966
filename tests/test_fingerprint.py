import hashlib
import os

import pytest

from env_backup.core.archiver import DeterministicArchiver
from env_backup.core.errors import ArchiveToolError
from env_backup.core.fingerprint import ContentFingerprinter, hash_file
from tests.conftest import FailingArchiveStrategy, list_files


class TestHashFile:

    def test_consistent_sha256(self, tmp_path):
        path = tmp_path / "test.txt"
        path.write_text("hello world")

        digest = hash_file(str(path))

        assert digest == hash_file(str(path))
        assert digest == hashlib.sha256(b"hello world").hexdigest()
        assert len(digest) == 64

    def test_different_content_different_hash(self, tmp_path):
        first = tmp_path / "one.txt"
        second = tmp_path / "two.txt"
        first.write_text("hello")
        second.write_text("world")

        assert hash_file(str(first)) != hash_file(str(second))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            hash_file(str(tmp_path / "missing"))

    def test_large_file_read_in_chunks(self, tmp_path):
        data = os.urandom(3 * 1024 * 1024 + 17)
        path = tmp_path / "big.bin"
        path.write_bytes(data)

        assert hash_file(str(path)) == hashlib.sha256(data).hexdigest()


class TestContentFingerprinter:

    def test_file_fingerprint_is_raw_hash(self, tmp_path, fake_fingerprinter):
        path = tmp_path / "file.txt"
        path.write_text("content")

        assert fake_fingerprinter.fingerprint(str(path)) == hash_file(str(path))

    def test_directory_fingerprint_removes_transient_archive(self, source_tree, fake_fingerprinter, temp_area):
        digest = fake_fingerprinter.fingerprint(str(source_tree))

        assert len(digest) == 64
        assert list_files(temp_area) == []

    def test_snapshot_cleaned_up_when_block_raises(self, source_tree, fake_fingerprinter, temp_area):
        with pytest.raises(RuntimeError):
            with fake_fingerprinter.directory_snapshot(str(source_tree)) as snapshot:
                assert os.path.exists(snapshot.path)
                raise RuntimeError("interrupted")

        assert list_files(temp_area) == []

    def test_claimed_snapshot_is_kept(self, source_tree, fake_fingerprinter, temp_area, tmp_path):
        destination = tmp_path / "kept.tar.gz"

        with fake_fingerprinter.directory_snapshot(str(source_tree)) as snapshot:
            digest = snapshot.digest
            snapshot.claim(str(destination))

        assert destination.exists()
        assert hash_file(str(destination)) == digest
        assert list_files(temp_area) == []

    def test_archive_failure_leaves_nothing_behind(self, source_tree, temp_area):
        fingerprinter = ContentFingerprinter(
            DeterministicArchiver(strategy=FailingArchiveStrategy()), temp_dir=str(temp_area)
        )

        with pytest.raises(ArchiveToolError, match="boom"):
            fingerprinter.fingerprint(str(source_tree))

        assert list_files(temp_area) == []

    def test_transient_paths_are_unique(self, fake_fingerprinter):
        paths = {fake_fingerprinter.transient_archive_path() for _ in range(50)}
        assert len(paths) == 50
        assert all(path.endswith(".tar.gz") for path in paths)
        assert all(f"-{os.getpid()}-" in os.path.basename(path) for path in paths)

    def test_missing_path_raises(self, tmp_path, fake_fingerprinter):
        with pytest.raises(OSError):
            fake_fingerprinter.fingerprint(str(tmp_path / "missing"))


class TestDirectoryFingerprintWithGnuTar:

    def test_same_directory_twice_same_digest(self, source_tree, gnu_fingerprinter):
        assert gnu_fingerprinter.fingerprint(str(source_tree)) == gnu_fingerprinter.fingerprint(str(source_tree))

    @pytest.mark.parametrize("change", ["modify", "add", "remove", "rename"])
    def test_content_changes_change_digest(self, source_tree, gnu_fingerprinter, change):
        before = gnu_fingerprinter.fingerprint(str(source_tree))

        if change == "modify":
            (source_tree / "sub" / "c.txt").write_text("charlie!")
        elif change == "add":
            (source_tree / "sub" / "new.txt").write_text("")
        elif change == "remove":
            (source_tree / "a.txt").unlink()
        else:
            (source_tree / "a.txt").rename(source_tree / "z.txt")

        assert gnu_fingerprinter.fingerprint(str(source_tree)) != before

    def test_touching_files_keeps_digest(self, source_tree, gnu_fingerprinter):
        before = gnu_fingerprinter.fingerprint(str(source_tree))

        for path in [source_tree / "a.txt", source_tree / "sub" / "c.txt", source_tree / "sub"]:
            os.utime(path, (1_000_000_000, 1_000_000_000))

        assert gnu_fingerprinter.fingerprint(str(source_tree)) == before
