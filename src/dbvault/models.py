"""
Database Vault - Data Models

Metadata sidecar schema and the result records returned by each operation.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .cipher import ALGORITHM, KDF

METADATA_SUFFIX = ".json"


class BackupMetadata(BaseModel):
    """
    Contents of the `<artifact>.json` metadata sidecar.

    Field order matches the on-disk document.
    """

    created_at: str = Field(..., description="ISO-8601 UTC creation time")
    db_path: str = Field(..., description="Absolute path of the source database")
    encrypted_file: str = Field(..., description="Artifact file name")
    sha256: str = Field(..., description="Hex SHA-256 of the encrypted payload")
    bytes: int = Field(..., ge=0, description="Encrypted payload size")
    algorithm: str = Field(default=ALGORITHM)
    kdf: str = Field(default=KDF)

    def to_json(self) -> str:
        return self.model_dump_json(indent=2) + "\n"

    def write(self, path: Path) -> Path:
        Path(path).write_text(self.to_json(), encoding="utf-8")
        return Path(path)

    @classmethod
    def read(cls, path: Path) -> "BackupMetadata":
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


def metadata_path_for(artifact_path: Path) -> Path:
    return Path(f"{artifact_path}{METADATA_SUFFIX}")


@dataclass(frozen=True)
class BackupResult:
    """Paths of one completed BackupArtifact."""

    artifact_path: Path
    checksum_path: Path
    metadata_path: Path
    metadata: BackupMetadata


@dataclass(frozen=True)
class RestoreResult:
    """
    Outcome of a restore.

    Rollback paths are None when the corresponding file did not exist.
    """

    db_path: Path
    source_file: Path
    restored_at: str
    checksum_verified: bool
    previous_db_backup: Optional[Path] = None
    previous_wal_backup: Optional[Path] = None
    previous_shm_backup: Optional[Path] = None
    restore_log_path: Optional[Path] = None


@dataclass(frozen=True)
class RetentionDecision:
    """Keep/expire verdict for one artifact (derived, never stored)."""

    artifact_path: Path
    mtime: float
    rank: int
    keep: bool
    reason: str


@dataclass
class PruneSummary:
    """Counters reported at the end of a prune pass."""

    directory: Path
    retention_days: int
    keep_min: int
    total: int = 0
    kept: int = 0
    removed: int = 0
    removed_files: list[Path] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"Total={self.total}, kept={self.kept}, removed={self.removed}, "
            f"retentionDays={self.retention_days}, keepMin={self.keep_min}"
        )


@dataclass(frozen=True)
class VerifyResult:
    """Verification outcome for one artifact."""

    artifact_path: Path
    ok: bool
    mode: str
    reason: Optional[str] = None


@dataclass
class VerifyReport:
    results: list[VerifyResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def ok_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failures(self) -> list[VerifyResult]:
        return [r for r in self.results if not r.ok]

    @property
    def all_ok(self) -> bool:
        return self.total > 0 and not self.failures
