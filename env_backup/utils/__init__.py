"""Utility modules for env-backup."""

from .formatters import get_timestamp, make_archive_name, short_digest, format_file_size
from .filesystem import ensure_dir, is_directory

__all__ = ["get_timestamp", "make_archive_name", "short_digest", "format_file_size",
           "ensure_dir", "is_directory"]
