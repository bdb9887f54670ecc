"""I/O utility functions for temporary artifacts."""

# This module is part of shortscreator.utils package

import uuid
from pathlib import Path
from typing import Any, Iterable, Optional


def unique_temp_path(directory: Path, prefix: str, suffix: str) -> Path:
    """
    Build a collision-resistant file path inside ``directory``.

    The directory is created if needed. The file itself is not created.

    Args:
        directory: Parent directory (shared temp namespace).
        prefix: File name prefix, e.g. "subtitles".
        suffix: File extension including the dot, e.g. ".ass".

    Returns:
        Path of the form ``<directory>/<prefix>-<uuid4><suffix>``.
    """
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{prefix}-{uuid.uuid4()}{suffix}"


def delete_temporary_file(path: Optional[Path], logger: Any) -> bool:
    """
    Delete a temporary file, logging (not raising) on failure.

    Returns:
        True if the file is gone afterwards.
    """
    if path is None:
        return True
    try:
        path.unlink(missing_ok=True)
        logger.debug(f"Cleaned up temporary file: {path}")
        return True
    except OSError as e:
        logger.warning(f"Could not delete temp file {path}: {e}")
        return False


def delete_temporary_files(paths: Iterable[Optional[Path]], logger: Any) -> int:
    """Delete every path in ``paths``; returns how many could not be removed."""
    failures = 0
    for path in paths:
        if not delete_temporary_file(path, logger):
            failures += 1
    return failures
