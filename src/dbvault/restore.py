"""
Database Vault - Restore Orchestrator

Replaces a live SQLite database with the decrypted content of a backup
artifact. Stages, each aborting everything after it on failure:

1. Preconditions (passphrase, artifact present)
2. Checksum verification (skipped when no sidecar exists)
3. Decryption into a private working directory
4. Structural validation (header signature + PRAGMA quick_check)
5. Staging copy
6. Swap-in: the current database, -wal and -shm files are renamed to
   timestamped .bak siblings, then the staging copy is renamed into place
7. Restore log written beside the database

Nothing at the live path is touched before stage 6. The working directory is
created inside the database's directory so every rename stays on one volume.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from .cipher import Cipher, get_cipher
from .errors import ConfigurationError, NotFoundError
from .fsutil import file_timestamp, iso_timestamp, private_workdir, utc_now
from .integrity import checksum_path_for, ensure_valid_sqlite, verify_checksum
from .logger import log_error, log_event, track_duration
from .models import RestoreResult

logger = logging.getLogger(__name__)

WORKDIR_PREFIX = ".dbvault-restore-"
RESTORE_LOG_SUFFIX = ".restore-log.txt"


def rollback_paths(db_path: Path, timestamp: str) -> dict[str, tuple[Path, Path]]:
    """
    Map each live file to the rollback name it is moved to.

    Returns:
        Dict of kind -> (live path, rollback path) for "db", "wal" and "shm"
    """
    return {
        "db": (db_path, Path(f"{db_path}.{timestamp}.bak")),
        "wal": (Path(f"{db_path}-wal"), Path(f"{db_path}-wal.{timestamp}.bak")),
        "shm": (Path(f"{db_path}-shm"), Path(f"{db_path}-shm.{timestamp}.bak")),
    }


def restore_log_path_for(db_path: Path) -> Path:
    return Path(f"{db_path}{RESTORE_LOG_SUFFIX}")


def write_restore_log(
    db_path: Path,
    source_file: Path,
    restored_at: str,
    previous: dict[str, Optional[Path]],
) -> Path:
    """
    Write the key=value audit record next to the database.

    Missing rollback copies are recorded as "-".
    """
    lines = [
        f"restored_at={restored_at}",
        f"source_file={Path(source_file).name}",
        f"db_path={db_path}",
        f"previous_db_backup={previous.get('db') or '-'}",
        f"previous_wal_backup={previous.get('wal') or '-'}",
        f"previous_shm_backup={previous.get('shm') or '-'}",
    ]
    log_path = restore_log_path_for(db_path)
    log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return log_path


def swap_in(staging_path: Path, db_path: Path, timestamp: str) -> dict[str, Optional[Path]]:
    """
    Move the current database set aside, then rename staging into place.

    Every existing companion is relocated before the new file lands.

    Returns:
        Dict of kind -> rollback path (None where nothing existed)
    """
    moved: dict[str, Optional[Path]] = {}
    for kind, (live, rollback) in rollback_paths(db_path, timestamp).items():
        if live.exists():
            live.rename(rollback)
            moved[kind] = rollback
            logger.info(f"Moved {live.name} to {rollback.name}")
        else:
            moved[kind] = None

    staging_path.rename(db_path)
    return moved


def restore_backup(
    encrypted_path: Union[str, Path],
    db_path: Union[str, Path],
    passphrase: Optional[str],
    checksum_path: Optional[Union[str, Path]] = None,
    cipher: Optional[Cipher] = None,
) -> RestoreResult:
    """
    Restore a database from an encrypted backup artifact.

    Args:
        encrypted_path: The .sqlite.enc artifact
        db_path: Live database path to replace
        passphrase: Decryption secret
        checksum_path: Checksum sidecar (default: <artifact>.sha256)
        cipher: Cipher backend (default: OpenSSLCipher)

    Returns:
        RestoreResult: Rollback copies and restore log location

    Raises:
        ConfigurationError: Passphrase missing
        NotFoundError: Artifact missing
        FormatError: Malformed checksum sidecar
        IntegrityError: Checksum mismatch
        DecryptionError: Decryption failed
        ValidationError: Decrypted file is not a healthy SQLite database
    """
    if not passphrase:
        raise ConfigurationError("passphrase required")

    encrypted_path = Path(encrypted_path).resolve()
    db_path = Path(db_path).resolve()
    if not encrypted_path.is_file():
        raise NotFoundError(f"Backup file not found: {encrypted_path}")

    if checksum_path:
        checksum_path = Path(checksum_path).resolve()
    else:
        checksum_path = checksum_path_for(encrypted_path)
    cipher = cipher or get_cipher()

    log_event(logger, "Restore started", source_file=encrypted_path.name,
              db_path=str(db_path), cipher=cipher.name)

    with track_duration() as elapsed_ms:
        try:
            checksum_verified = False
            if checksum_path.exists():
                verify_checksum(encrypted_path, checksum_path)
                checksum_verified = True
            else:
                logger.warning(
                    f"Checksum sidecar not found, skipping verification: {checksum_path}"
                )

            db_path.parent.mkdir(parents=True, exist_ok=True)
            with private_workdir(WORKDIR_PREFIX, db_path.parent) as workdir:
                decrypted_path = workdir / "restored.sqlite"
                staging_path = workdir / "staging.sqlite"

                cipher.decrypt_file(encrypted_path, decrypted_path, passphrase)
                ensure_valid_sqlite(decrypted_path)
                shutil.copyfile(decrypted_path, staging_path)

                timestamp = file_timestamp()
                previous = swap_in(staging_path, db_path, timestamp)

            restored_at = iso_timestamp(utc_now())
            log_path = write_restore_log(db_path, encrypted_path, restored_at, previous)
        except Exception as e:
            log_error(logger, "restore", e, source_file=encrypted_path.name, db_path=str(db_path))
            raise

        log_event(logger, "Restore complete", db_path=str(db_path),
                  source_file=encrypted_path.name, checksum_verified=checksum_verified,
                  previous_db_backup=str(previous["db"] or "-"),
                  duration_ms=elapsed_ms())

    return RestoreResult(
        db_path=db_path,
        source_file=encrypted_path,
        restored_at=restored_at,
        checksum_verified=checksum_verified,
        previous_db_backup=previous["db"],
        previous_wal_backup=previous["wal"],
        previous_shm_backup=previous["shm"],
        restore_log_path=log_path,
    )
