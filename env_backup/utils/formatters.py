"""Formatting utilities for backup file names and summaries."""

import os
from datetime import datetime, timezone
from typing import Optional

# Compound suffix of the canonical directory archives
ARCHIVE_SUFFIX = '.tar.gz'


def get_timestamp(now: Optional[datetime] = None) -> str:
    """Format a time as a filesystem-safe, sortable token.

    Args:
        now: Time to format. Defaults to the current UTC time.

    Returns:
        Token like ``2024-01-15T10-30-00`` (no colons, no sub-seconds).
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H-%M-%S')


def make_archive_name(filename: str, timestamp: str) -> str:
    """Insert a timestamp token into a file name.

    ``backup.tar.gz`` becomes ``backup.<ts>.tar.gz``, ``config.json`` becomes
    ``config.<ts>.json`` and ``Makefile`` or ``.bashrc`` get ``.<ts>`` appended.

    Args:
        filename: Base name of the file being archived.
        timestamp: Token to insert.

    Returns:
        The archive file name.
    """
    if filename.endswith(ARCHIVE_SUFFIX):
        return f"{filename[:-len(ARCHIVE_SUFFIX)]}.{timestamp}{ARCHIVE_SUFFIX}"

    # splitext treats a leading dot as part of the name, not an extension
    root, ext = os.path.splitext(filename)
    if ext:
        return f"{root}.{timestamp}{ext}"
    return f"{filename}.{timestamp}"


def short_digest(digest: Optional[str], length: int = 12) -> str:
    """Shorten a hex digest for log output."""
    if not digest:
        return '-'
    return f"{digest[:length]}..."


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Human readable size string.
    """
    if size_bytes < 1024:
        return f"{size_bytes}B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes // 1024}KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes // (1024 * 1024)}MB"
    else:
        return f"{size_bytes // (1024 * 1024 * 1024)}GB"
