"""Deterministic tar.gz archiving of directory trees.

Two directory trees holding the same relative paths and file contents must
archive to the same bytes, so that hashing the archive is a stable content
fingerprint. Archiving shells out to tar and gzip. GNU tar can normalize
ordering, timestamps and ownership itself; other tar implementations only get
a sorted file list, which keeps the file set and order stable but not the
member timestamps.
"""

import logging
import os
import re
import subprocess
import tempfile
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import ArchiveToolError
from .models import Capability

DEFAULT_TAR_COMMANDS = ('gtar', 'tar')
DEFAULT_GZIP_COMMAND = 'gzip'
# --sort=name first appeared in GNU tar 1.28
MIN_GNU_TAR_VERSION = (1, 28)

logger = logging.getLogger(__name__)


def deterministic_env() -> Dict[str, str]:
    """Environment for archiving child processes."""
    env = dict(os.environ)
    env['LC_ALL'] = 'C'
    # macOS: keep extended attributes and resource forks out of the archive
    env['COPYFILE_DISABLE'] = '1'
    # user-supplied gzip defaults would change the output bytes
    env.pop('GZIP', None)
    return env


def tool_version(command: str) -> Optional[str]:
    """Return the ``--version`` output of a command, or None if it cannot run."""
    try:
        result = subprocess.run([command, '--version'], capture_output=True,
                                text=True, timeout=10, env=deterministic_env())
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return (result.stdout or '') + (result.stderr or '')


def gnu_tar_version(version_output: str) -> Optional[Tuple[int, int]]:
    """Extract ``(major, minor)`` from GNU tar's ``--version`` output.

    Returns None for any other tar implementation.
    """
    match = re.search(r'GNU tar\)?\s+(\d+)\.(\d+)', version_output)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def list_regular_files(source_dir: str) -> List[str]:
    """List regular files under a directory as sorted ``./relative/path`` strings.

    Sorting is by code point, never by locale collation. Symlinks and empty
    directories are left out.
    """
    files = []
    for root, dirs, names in os.walk(source_dir):
        for name in names:
            full_path = os.path.join(root, name)
            if os.path.islink(full_path) or not os.path.isfile(full_path):
                continue
            rel_path = os.path.relpath(full_path, source_dir).replace(os.sep, '/')
            files.append(f"./{rel_path}")
    files.sort()
    return files


class ArchiveStrategy:
    """A way of producing a canonical tar.gz with a particular tar implementation."""

    name = 'base'
    capability = Capability.UNAVAILABLE

    def __init__(self, tar_command: str, gzip_command: str = DEFAULT_GZIP_COMMAND):
        self.tar_command = tar_command
        self.gzip_command = gzip_command
        self.logger = logging.getLogger(__name__)

    def probe(self) -> Capability:
        """Check whether the tools this strategy needs are present.

        Returns:
            This strategy's capability tier, or ``Capability.UNAVAILABLE``.
        """
        version = tool_version(self.tar_command)
        if version is None or not self._accepts_version(version):
            return Capability.UNAVAILABLE
        if tool_version(self.gzip_command) is None:
            self.logger.debug(f"{self.gzip_command} not available")
            return Capability.UNAVAILABLE
        return self.capability

    def _accepts_version(self, version: str) -> bool:
        return True

    def archive(self, source_dir: str, output_path: str) -> None:
        raise NotImplementedError

    def _run_pipeline(self, tar_args: Sequence[str], output_path: str) -> None:
        """Run ``tar_args | gzip -n`` writing the compressed stream to output_path.

        Raises:
            ArchiveToolError: If either process cannot be started or exits non-zero.
        """
        env = deterministic_env()
        # -n keeps the name and timestamp out of the gzip header
        gzip_args = [self.gzip_command, '-n', '-6', '-c']

        with open(output_path, 'wb') as out, tempfile.TemporaryFile() as tar_stderr:
            try:
                tar_proc = subprocess.Popen(list(tar_args), stdout=subprocess.PIPE,
                                            stderr=tar_stderr, env=env)
            except OSError as e:
                raise ArchiveToolError(f"Could not run {tar_args[0]}: {e}") from e

            try:
                gzip_proc = subprocess.Popen(gzip_args, stdin=tar_proc.stdout, stdout=out,
                                             stderr=subprocess.PIPE, env=env)
            except OSError as e:
                tar_proc.stdout.close()
                tar_proc.kill()
                tar_proc.wait()
                raise ArchiveToolError(f"Could not run {self.gzip_command}: {e}") from e

            # gzip holds the only remaining reader of tar's stdout
            tar_proc.stdout.close()
            _, gzip_err = gzip_proc.communicate()
            tar_code = tar_proc.wait()

            tar_stderr.seek(0)
            tar_err = tar_stderr.read().decode('utf-8', errors='replace').strip()

        if tar_code != 0:
            raise ArchiveToolError(f"{tar_args[0]} failed with exit code {tar_code}: {tar_err}")
        if gzip_proc.returncode != 0:
            message = gzip_err.decode('utf-8', errors='replace').strip()
            raise ArchiveToolError(
                f"{self.gzip_command} failed with exit code {gzip_proc.returncode}: {message}"
            )

    def __repr__(self):
        return f"{type(self).__name__}(tar_command={self.tar_command!r})"


class GnuTarStrategy(ArchiveStrategy):
    """GNU tar with sorted members and zeroed timestamps and ownership."""

    name = 'gnu-tar'
    capability = Capability.FULL

    def _accepts_version(self, version: str) -> bool:
        parsed = gnu_tar_version(version)
        if parsed is None:
            return False
        if parsed < MIN_GNU_TAR_VERSION:
            self.logger.debug(f"{self.tar_command} is GNU tar {parsed[0]}.{parsed[1]}, "
                              f"too old for --sort=name")
            return False
        return True

    def build_command(self, source_dir: str) -> List[str]:
        """Build the tar command line for archiving source_dir.

        Raises:
            ArchiveToolError: If source_dir is a filesystem root, which has no
                base name to archive under.
        """
        source_dir = os.path.abspath(source_dir)
        parent, base = os.path.split(source_dir)
        if not base:
            raise ArchiveToolError(f"Cannot archive filesystem root: {source_dir}")
        return [
            self.tar_command,
            '--create',
            '--file', '-',
            '--format=gnu',
            '--directory', parent,
            '--sort=name',
            '--mtime=@0',
            '--owner=0',
            '--group=0',
            '--numeric-owner',
            '--no-acls',
            '--no-selinux',
            '--no-xattrs',
            '--',
            base,
        ]

    def archive(self, source_dir: str, output_path: str) -> None:
        self._run_pipeline(self.build_command(source_dir), output_path)


class BsdTarStrategy(ArchiveStrategy):
    """Any other tar, fed an explicitly sorted file list.

    Member timestamps and owners are whatever the filesystem reports, so the
    archive is only stable while those stay the same. A GNU tar too old for
    ``--sort=name`` also lands here.
    """

    name = 'bsd-tar'
    capability = Capability.DEGRADED

    def __init__(self, tar_command: str, gzip_command: str = DEFAULT_GZIP_COMMAND):
        super().__init__(tar_command, gzip_command)
        self.is_gnu_tar = False

    def _accepts_version(self, version: str) -> bool:
        self.is_gnu_tar = gnu_tar_version(version) is not None
        return True

    def build_command(self, source_dir: str, list_path: str) -> List[str]:
        tar_args = [
            self.tar_command,
            '-c',
            '-f', '-',
            '-C', source_dir,
        ]
        # GNU tar rejects the macOS-only option
        if not self.is_gnu_tar:
            tar_args.append('--no-mac-metadata')
        tar_args += ['-T', list_path]
        return tar_args

    def archive(self, source_dir: str, output_path: str) -> None:
        source_dir = os.path.abspath(source_dir)
        files = list_regular_files(source_dir)

        with tempfile.NamedTemporaryFile('w', encoding='utf-8', delete=False,
                                         prefix=f'env-backup-list-{os.getpid()}-',
                                         suffix='.txt') as f:
            f.write('\n'.join(files))
            list_path = f.name

        try:
            self._run_pipeline(self.build_command(source_dir, list_path), output_path)
        finally:
            try:
                os.unlink(list_path)
            except FileNotFoundError:
                pass


def select_strategy(tar_commands: Sequence[str] = DEFAULT_TAR_COMMANDS,
                    gzip_command: str = DEFAULT_GZIP_COMMAND) -> ArchiveStrategy:
    """Pick the most capable archiving strategy available on this host.

    Every command is first tried as GNU tar, in order; only if none is GNU tar
    does the degraded strategy get a turn with the same commands.

    Raises:
        ArchiveToolError: If no tar/gzip combination can be run at all.
    """
    candidates = [GnuTarStrategy(cmd, gzip_command) for cmd in tar_commands]
    candidates += [BsdTarStrategy(cmd, gzip_command) for cmd in tar_commands]

    for strategy in candidates:
        if strategy.probe() == strategy.capability:
            logger.debug(f"Selected archive strategy {strategy!r} ({strategy.capability.value})")
            return strategy

    raise ArchiveToolError(
        f"No usable tar/gzip found (tried tar commands: {', '.join(tar_commands)}; "
        f"gzip command: {gzip_command})"
    )


class DeterministicArchiver:
    """Builds reproducible tar.gz archives of directories.

    The strategy is probed once, on first use, and reused for the rest of the run.
    """

    def __init__(self, tar_commands: Sequence[str] = DEFAULT_TAR_COMMANDS,
                 gzip_command: str = DEFAULT_GZIP_COMMAND,
                 strategy: Optional[ArchiveStrategy] = None):
        self.tar_commands = tuple(tar_commands)
        self.gzip_command = gzip_command
        self._strategy = strategy
        self._warned = False
        self.logger = logging.getLogger(__name__)

    @property
    def strategy(self) -> ArchiveStrategy:
        if self._strategy is None:
            self._strategy = select_strategy(self.tar_commands, self.gzip_command)
        return self._strategy

    @property
    def capability(self) -> Capability:
        return self.strategy.capability

    def archive(self, source_dir: str, output_path: str) -> str:
        """Write the canonical archive of source_dir to output_path.

        Args:
            source_dir: Directory to archive.
            output_path: Destination file; removed again if archiving fails.

        Returns:
            output_path.

        Raises:
            ArchiveToolError: If the archiving tools fail or are unavailable.
            NotADirectoryError: If source_dir is not a directory.
        """
        if not os.path.isdir(source_dir):
            raise NotADirectoryError(f"Not a directory: {source_dir}")

        strategy = self.strategy
        if strategy.capability != Capability.FULL and not self._warned:
            self.logger.warning(
                f"Using {strategy.tar_command} without timestamp normalization; archives only "
                f"stay identical while file timestamps do. Install GNU tar for fully "
                f"deterministic archives."
            )
            self._warned = True

        try:
            strategy.archive(source_dir, output_path)
        except BaseException:
            try:
                os.unlink(output_path)
            except FileNotFoundError:
                pass
            raise

        return output_path
