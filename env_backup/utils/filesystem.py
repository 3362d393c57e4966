"""Filesystem helpers."""

import logging
import os

logger = logging.getLogger(__name__)


def ensure_dir(dir_path: str) -> None:
    """Create a directory and its parents if it does not exist yet."""
    if not os.path.isdir(dir_path):
        os.makedirs(dir_path, exist_ok=True)
        logger.info(f"Created directory: {dir_path}")


def is_directory(path: str) -> bool:
    """Return True if path is an existing directory, False otherwise."""
    try:
        return os.path.isdir(path)
    except (OSError, ValueError):
        return False
