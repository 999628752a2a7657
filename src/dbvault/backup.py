"""
Database Vault - Backup Orchestrator

Snapshot -> encrypt -> seal, producing one BackupArtifact:

    <prefix>-<timestamp>.sqlite.enc         encrypted payload
    <prefix>-<timestamp>.sqlite.enc.sha256  "<hex>  <name>\\n"
    <prefix>-<timestamp>.sqlite.enc.json    metadata sidecar

The plaintext snapshot only ever exists inside a private working directory
that is removed when the run ends, whether it succeeded or not.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from .cipher import Cipher, get_cipher
from .errors import ConfigurationError, NotFoundError
from .fsutil import file_timestamp, iso_timestamp, private_workdir, remove_if_exists, utc_now
from .integrity import checksum_path_for, sha256_file, write_checksum
from .logger import log_error, log_event, track_duration
from .models import BackupMetadata, BackupResult, metadata_path_for
from .snapshot import snapshot_database

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".sqlite.enc"
WORKDIR_PREFIX = "dbvault-backup-"

_UNSAFE_PREFIX_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")


def sanitize_prefix(prefix: str) -> str:
    """
    Reduce a filename prefix to letters, digits, '.', '_' and '-'.

    Each run of other characters collapses to a single '-'.

    Example:
        >>> sanitize_prefix("a/b c!d")
        'a-b-c-d'
    """
    return _UNSAFE_PREFIX_CHARS.sub("-", (prefix or "").strip())


def artifact_name(prefix: str, timestamp: str) -> str:
    return f"{prefix}-{timestamp}{ARTIFACT_SUFFIX}"


def create_backup(
    db_path: Union[str, Path],
    output_dir: Union[str, Path],
    prefix: str,
    passphrase: Optional[str],
    cipher: Optional[Cipher] = None,
    work_root: Optional[Union[str, Path]] = None,
) -> BackupResult:
    """
    Produce one encrypted, checksummed backup of a SQLite database.

    Args:
        db_path: Live database to back up (never modified)
        output_dir: Directory receiving the artifact and its sidecars
        prefix: Artifact name prefix (sanitized before use)
        passphrase: Encryption secret
        cipher: Cipher backend (default: OpenSSLCipher)
        work_root: Parent for the private working directory (default: system temp)

    Returns:
        BackupResult: Artifact, checksum and metadata paths

    Raises:
        ConfigurationError: Passphrase missing, or prefix empty after sanitizing
        NotFoundError: Source database missing
        SnapshotError: SQLite copy failed
        EncryptionError: Encryption transform failed
    """
    if not passphrase:
        raise ConfigurationError("passphrase required")

    db_path = Path(db_path).resolve()
    output_dir = Path(output_dir).resolve()
    if not db_path.exists():
        raise NotFoundError(f"Database not found: {db_path}")

    safe_prefix = sanitize_prefix(prefix)
    if not safe_prefix:
        raise ConfigurationError(f"Backup prefix is empty after sanitizing: {prefix!r}")

    cipher = cipher or get_cipher()
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = file_timestamp()
    name = artifact_name(safe_prefix, timestamp)
    # Same prefix within the same millisecond: add a counter rather than overwrite
    counter = 1
    while (output_dir / name).exists():
        name = artifact_name(safe_prefix, f"{timestamp}-{counter}")
        counter += 1
    artifact_path = output_dir / name
    checksum_path = checksum_path_for(artifact_path)
    metadata_path = metadata_path_for(artifact_path)

    log_event(logger, "Backup started", db_path=str(db_path), artifact=name,
              cipher=cipher.name)

    with track_duration() as elapsed_ms:
        try:
            with private_workdir(WORKDIR_PREFIX, work_root) as workdir:
                snapshot_path = snapshot_database(db_path, workdir / f"{safe_prefix}.sqlite")
                cipher.encrypt_file(snapshot_path, artifact_path, passphrase)

            digest = sha256_file(artifact_path)
            write_checksum(artifact_path, digest)

            metadata = BackupMetadata(
                created_at=iso_timestamp(utc_now()),
                db_path=str(db_path),
                encrypted_file=name,
                sha256=digest,
                bytes=artifact_path.stat().st_size,
                algorithm=cipher.ALGORITHM,
                kdf=cipher.KDF,
            )
            metadata.write(metadata_path)
        except Exception as e:
            # A failed run must not leave a usable-looking artifact behind
            for partial in (metadata_path, checksum_path, artifact_path):
                remove_if_exists(partial)
            log_error(logger, "backup", e, db_path=str(db_path), artifact=name)
            raise

        log_event(logger, "Backup complete", artifact=str(artifact_path),
                  sha256=digest, bytes=metadata.bytes, duration_ms=elapsed_ms())

    return BackupResult(
        artifact_path=artifact_path,
        checksum_path=checksum_path,
        metadata_path=metadata_path,
        metadata=metadata,
    )
