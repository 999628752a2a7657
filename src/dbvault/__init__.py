"""
Database Vault - Python Package

Encrypted backup, verification, retention and rollback-safe restore for a
single SQLite database file.

Usage:
    from dbvault import create_backup, restore_backup, prune_backups

    result = create_backup("data.sqlite", "backups/api", "users", passphrase)
    restore_backup(result.artifact_path, "data.sqlite", passphrase)
    prune_backups("backups/api", retention_days=30, keep_min=10)
"""

__version__ = "0.1.0"

# Public API
from .backup import create_backup, sanitize_prefix
from .cipher import Cipher, NativeCipher, OpenSSLCipher, get_cipher
from .config import VaultConfig, resolve
from .errors import (
    BackupError,
    ConfigurationError,
    DecryptionError,
    EncryptionError,
    FormatError,
    IntegrityError,
    NotFoundError,
    SnapshotError,
    ValidationError,
)
from .models import BackupMetadata, BackupResult, PruneSummary, RestoreResult
from .prune import prune_backups
from .restore import restore_backup
from .verify import verify_backups

__all__ = [
    "create_backup",
    "sanitize_prefix",
    "restore_backup",
    "prune_backups",
    "verify_backups",
    "Cipher",
    "NativeCipher",
    "OpenSSLCipher",
    "get_cipher",
    "VaultConfig",
    "resolve",
    "BackupMetadata",
    "BackupResult",
    "RestoreResult",
    "PruneSummary",
    "BackupError",
    "ConfigurationError",
    "NotFoundError",
    "SnapshotError",
    "EncryptionError",
    "DecryptionError",
    "FormatError",
    "IntegrityError",
    "ValidationError",
]
