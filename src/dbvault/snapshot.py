"""
Database Vault - Snapshotter

Takes a consistent point-in-time copy of a live SQLite database using
SQLite's online backup API, which copies pages while other connections keep
reading and writing.
"""

import logging
import sqlite3
from pathlib import Path

from .errors import NotFoundError, SnapshotError
from .integrity import open_read_only

logger = logging.getLogger(__name__)


def snapshot_database(source_path: Path, snapshot_path: Path) -> Path:
    """
    Copy a live database into a fresh file.

    The source is opened read-only and held only for the duration of the copy.

    Args:
        source_path: Live database file
        snapshot_path: Destination (must not exist yet)

    Returns:
        Path: The snapshot path

    Raises:
        NotFoundError: Source database does not exist
        SnapshotError: SQLite reported an error during the copy
    """
    source_path = Path(source_path)
    snapshot_path = Path(snapshot_path)

    if not source_path.exists():
        raise NotFoundError(f"Database not found: {source_path}")
    if snapshot_path.exists():
        raise SnapshotError(f"Snapshot destination already exists: {snapshot_path}")

    source_conn = None
    dest_conn = None
    try:
        source_conn = open_read_only(source_path)
        dest_conn = sqlite3.connect(str(snapshot_path))

        source_conn.backup(dest_conn)
        # Snapshot must stand alone without -wal/-shm companions
        dest_conn.execute("PRAGMA journal_mode=DELETE")
    except sqlite3.Error as e:
        raise SnapshotError(f"Snapshot of {source_path} failed: {e}") from e
    finally:
        if dest_conn is not None:
            dest_conn.close()
        if source_conn is not None:
            source_conn.close()

    logger.debug(
        f"Snapshot created: {snapshot_path} ({snapshot_path.stat().st_size} bytes)"
    )
    return snapshot_path
