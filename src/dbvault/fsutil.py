"""
Database Vault - Filesystem Helpers

Scoped private working directories, missing-ok removal and the timestamp
formats used in artifact and rollback file names.
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Format a UTC moment as ISO-8601 with millisecond precision.

    Example:
        2026-10-19T08:06:00.123Z
    """
    moment = moment or utc_now()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def file_timestamp(moment: Optional[datetime] = None) -> str:
    """
    Filesystem-safe variant of iso_timestamp().

    Example:
        2026-10-19T08-06-00-123Z
    """
    return iso_timestamp(moment).replace(":", "-").replace(".", "-")


def remove_tree(path: Path) -> None:
    """Recursively remove a directory, tolerating paths that no longer exist."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass


@contextmanager
def private_workdir(prefix: str, parent: Optional[Union[str, Path]] = None) -> Iterator[Path]:
    """
    Create a uniquely named working directory and remove it on exit.

    The directory is removed on both the success and the failure path.

    Args:
        prefix: Directory name prefix (e.g. "dbvault-backup-")
        parent: Directory to create it in (default: system temp dir)

    Yields:
        Path: The working directory
    """
    if parent is not None:
        Path(parent).mkdir(parents=True, exist_ok=True)
    workdir = Path(tempfile.mkdtemp(prefix=prefix, dir=str(parent) if parent else None))
    logger.debug(f"Created working directory: {workdir}")
    try:
        yield workdir
    finally:
        remove_tree(workdir)
        logger.debug(f"Removed working directory: {workdir}")


def remove_if_exists(path: Path) -> bool:
    """
    Delete a file if present.

    Returns:
        bool: True if a file was deleted, False if it did not exist
    """
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    return True
