"""
Database Vault - Retention Pruner

Deletes expired backup artifacts and their sidecars while always keeping the
most recent `keep_min` artifacts regardless of age.

Usage:
    summary = prune_backups(Path("backups/api"), retention_days=30, keep_min=10)
    print(summary)
"""

import logging
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from .backup import ARTIFACT_SUFFIX
from .fsutil import remove_if_exists
from .integrity import checksum_path_for
from .logger import log_event
from .models import PruneSummary, RetentionDecision, metadata_path_for

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def list_artifacts(backup_dir: Path) -> list[tuple[Path, float]]:
    """
    Encrypted artifacts in a directory (non-recursive), newest first.

    Returns:
        List of (path, mtime) pairs; empty if the directory does not exist
    """
    backup_dir = Path(backup_dir)
    if not backup_dir.is_dir():
        return []

    items = [
        (path, path.stat().st_mtime)
        for path in backup_dir.glob(f"*{ARTIFACT_SUFFIX}")
        if path.is_file()
    ]
    # Stable sort: equal mtimes keep glob order
    items.sort(key=lambda item: item[1], reverse=True)
    return items


def plan_retention(
    items: Iterable[tuple[Path, float]],
    retention_days: int,
    keep_min: int,
    now: Optional[float] = None,
) -> list[RetentionDecision]:
    """
    Decide keep/expire for artifacts already sorted newest first.

    An artifact ranked below keep_min is always kept; any other artifact is
    expired once its mtime is older than the retention cutoff.
    """
    now = time.time() if now is None else now
    cutoff = now - retention_days * SECONDS_PER_DAY

    decisions = []
    for rank, (path, mtime) in enumerate(items):
        if rank < keep_min:
            keep, reason = True, "keep-min"
        elif mtime < cutoff:
            keep, reason = False, "expired"
        else:
            keep, reason = True, "within retention"
        decisions.append(
            RetentionDecision(artifact_path=path, mtime=mtime, rank=rank, keep=keep, reason=reason)
        )
    return decisions


def artifact_files(artifact_path: Path) -> list[Path]:
    """The payload followed by its checksum and metadata sidecars."""
    return [artifact_path, checksum_path_for(artifact_path), metadata_path_for(artifact_path)]


def prune_backups(
    backup_dir: Union[str, Path],
    retention_days: int,
    keep_min: int,
    now: Optional[float] = None,
    on_removed: Optional[Callable[[Path], None]] = None,
) -> PruneSummary:
    """
    Apply the retention policy to a backup directory.

    Args:
        backup_dir: Directory holding *.sqlite.enc artifacts
        retention_days: Age in days after which an artifact expires
        keep_min: Number of newest artifacts always kept
        now: Reference time (default: current time)
        on_removed: Called with each artifact path right after it is deleted

    Returns:
        PruneSummary: Total, kept and removed counts

    Raises:
        OSError: Deleting an existing file failed; the pass stops there
    """
    backup_dir = Path(backup_dir)
    summary = PruneSummary(directory=backup_dir, retention_days=retention_days, keep_min=keep_min)

    items = list_artifacts(backup_dir)
    summary.total = len(items)
    if not items:
        logger.info(f"No encrypted backups to prune in {backup_dir}")
        return summary

    for decision in plan_retention(items, retention_days, keep_min, now=now):
        if decision.keep:
            summary.kept += 1
            continue

        for path in artifact_files(decision.artifact_path):
            if remove_if_exists(path):
                logger.debug(f"Deleted {path}")
        summary.removed += 1
        summary.removed_files.append(decision.artifact_path)
        log_event(logger, f"Removed {decision.artifact_path.name}",
                  artifact=decision.artifact_path.name, rank=decision.rank,
                  removed=summary.removed, kept=summary.kept)
        if on_removed is not None:
            on_removed(decision.artifact_path)

    log_event(logger, f"Prune complete. {summary}", total=summary.total, kept=summary.kept,
              removed=summary.removed, retention_days=retention_days, keep_min=keep_min)
    return summary
