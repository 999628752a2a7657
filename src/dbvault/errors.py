"""
Database Vault - Error Types

Every failure raised by the backup, restore, prune and verify operations is a
BackupError subclass. Filesystem failures during pruning propagate as the
builtin OSError.
"""

from typing import Optional


class BackupError(Exception):
    """Base class for all dbvault errors."""


class ConfigurationError(BackupError):
    """Missing passphrase, missing required argument, or bad config value."""


class NotFoundError(BackupError):
    """Source database or backup artifact does not exist."""


class SnapshotError(BackupError):
    """SQLite reported an error while copying the live database."""


class CipherError(BackupError):
    """
    Encryption transform failed.

    Attributes:
        diagnostics: Diagnostic text reported by the cipher (e.g. OpenSSL stderr)
    """

    def __init__(self, message: str, diagnostics: Optional[str] = None):
        self.diagnostics = diagnostics or ""
        if self.diagnostics:
            message = f"{message} {self.diagnostics}"
        super().__init__(message)


class EncryptionError(CipherError):
    pass


class DecryptionError(CipherError):
    pass


class FormatError(BackupError):
    """Checksum sidecar is not a 64 character hex digest."""


class IntegrityError(BackupError):
    """
    Artifact digest does not match its checksum sidecar.

    Attributes:
        expected: Digest recorded in the sidecar
        actual: Digest computed from the artifact bytes
    """

    def __init__(self, expected: str, actual: str, message: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Checksum mismatch. expected={expected} actual={actual}"
        )


class ValidationError(BackupError):
    """Decrypted file is not a valid, consistent SQLite database."""
