"""
Database Vault - Integrity Utilities

SHA-256 digests and checksum sidecars for encrypted artifacts, plus the
structural checks applied to a decrypted SQLite file before it is trusted.
"""

import hashlib
import logging
import re
import sqlite3
from pathlib import Path

from .errors import FormatError, IntegrityError, ValidationError

logger = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"
CHECKSUM_SUFFIX = ".sha256"
CHUNK_SIZE = 1024 * 1024

_HEX_DIGEST = re.compile(r"^[a-fA-F0-9]{64}$")


def sha256_file(path: Path) -> str:
    """Hex-encoded SHA-256 of a file's bytes."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def checksum_path_for(artifact_path: Path) -> Path:
    return Path(f"{artifact_path}{CHECKSUM_SUFFIX}")


def write_checksum(artifact_path: Path, digest: str) -> Path:
    """
    Write a sha256sum-compatible sidecar next to the artifact.

    Format: "<hex-digest>  <artifact-filename>\\n"

    Returns:
        Path: The checksum sidecar path
    """
    checksum_path = checksum_path_for(artifact_path)
    checksum_path.write_text(f"{digest}  {Path(artifact_path).name}\n", encoding="utf-8")
    return checksum_path


def parse_expected_checksum(raw: str) -> str:
    """
    Extract the digest from checksum sidecar text.

    Only the first whitespace-delimited token is considered.

    Raises:
        FormatError: If the token is not a 64 character hex string
    """
    tokens = raw.split()
    token = tokens[0] if tokens else ""
    if not _HEX_DIGEST.match(token):
        raise FormatError("Invalid checksum format: expected a 64 character hex digest")
    return token.lower()


def verify_checksum(artifact_path: Path, checksum_path: Path) -> str:
    """
    Compare an artifact against its checksum sidecar.

    Returns:
        str: The verified digest

    Raises:
        FormatError: Sidecar is malformed
        IntegrityError: Digest mismatch (carries expected and actual values)
    """
    expected = parse_expected_checksum(Path(checksum_path).read_text(encoding="utf-8"))
    actual = sha256_file(artifact_path)
    if actual != expected:
        raise IntegrityError(expected=expected, actual=actual)
    logger.debug(f"Checksum verified for {Path(artifact_path).name}")
    return actual


def has_sqlite_header(path: Path) -> bool:
    with open(path, "rb") as f:
        return f.read(len(SQLITE_HEADER)) == SQLITE_HEADER


def _read_only_uri(path: Path) -> str:
    return f"{Path(path).resolve().as_uri()}?mode=ro"


def open_read_only(path: Path) -> sqlite3.Connection:
    """Open a SQLite database without write access."""
    return sqlite3.connect(_read_only_uri(path), uri=True)


def run_quick_check(path: Path) -> str:
    """
    Run PRAGMA quick_check on a read-only handle.

    Returns:
        str: The first result row ("ok" for a healthy database)

    Raises:
        ValidationError: If the check produced no result or SQLite refused the file
    """
    try:
        conn = open_read_only(path)
        try:
            row = conn.execute("PRAGMA quick_check").fetchone()
        finally:
            conn.close()
    except sqlite3.DatabaseError as e:
        raise ValidationError(f"Database integrity check could not be read: {e}") from e

    if not row:
        raise ValidationError("Database integrity check could not be read")
    return row[0]


def ensure_valid_sqlite(path: Path) -> None:
    """
    Validate that a file is a consistent SQLite database.

    Raises:
        ValidationError: Bad header signature or failed quick_check
    """
    if not has_sqlite_header(path):
        raise ValidationError("Decrypted file is not a valid database file")

    result = run_quick_check(path)
    if result != "ok":
        raise ValidationError(f"Database integrity check failed: {result}")
