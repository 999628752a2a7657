"""
Database Vault - Backup Verifier

Checks artifacts without touching any live database:
- checksum sidecar present and matching (strict mode requires the sidecar)
- when a passphrase is available, decrypts into a private working directory
  and runs the same structural validation as a restore

One failing artifact does not stop the others from being checked.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from .backup import ARTIFACT_SUFFIX
from .cipher import Cipher, get_cipher
from .errors import BackupError, ConfigurationError, NotFoundError
from .fsutil import private_workdir
from .integrity import checksum_path_for, ensure_valid_sqlite, verify_checksum
from .logger import log_event
from .models import VerifyReport, VerifyResult
from .prune import list_artifacts

logger = logging.getLogger(__name__)

WORKDIR_PREFIX = "dbvault-verify-"
MODE_FULL = "checksum+decrypt"
MODE_CHECKSUM = "checksum-only"


def find_targets(
    file_path: Optional[Union[str, Path]] = None,
    backup_dir: Optional[Union[str, Path]] = None,
    limit: Optional[int] = None,
) -> list[Path]:
    """
    Select artifacts to verify: one explicit file, or a directory newest first.

    Raises:
        ConfigurationError: Explicit file does not end in .enc
        NotFoundError: Explicit file missing, or no artifacts found
    """
    if file_path:
        single = Path(file_path).resolve()
        if not single.name.endswith(".enc"):
            raise ConfigurationError(f"Backup file must end with .enc: {single}")
        if not single.exists():
            raise NotFoundError(f"Backup file not found: {single}")
        targets = [single]
    else:
        if backup_dir is None:
            raise ConfigurationError("Either a backup file or a backup directory is required")
        targets = [path for path, _ in list_artifacts(Path(backup_dir).resolve())]

    if limit is not None and limit > 0:
        targets = targets[:limit]

    if not targets:
        raise NotFoundError(f"No {ARTIFACT_SUFFIX} backups found")
    return targets


def verify_artifact(
    artifact_path: Path,
    passphrase: Optional[str] = None,
    strict_checksum: bool = True,
    cipher: Optional[Cipher] = None,
    work_root: Optional[Union[str, Path]] = None,
) -> str:
    """
    Verify one artifact.

    Returns:
        str: The verification mode that was applied

    Raises:
        IntegrityError: Checksum mismatch
        NotFoundError: Checksum sidecar missing in strict mode
        FormatError, DecryptionError, ValidationError: As for restore
    """
    checksum_path = checksum_path_for(artifact_path)
    if checksum_path.exists():
        verify_checksum(artifact_path, checksum_path)
    elif strict_checksum:
        raise NotFoundError(f"Checksum not found: {checksum_path}")

    if not passphrase:
        return MODE_CHECKSUM

    cipher = cipher or get_cipher()
    with private_workdir(WORKDIR_PREFIX, work_root) as workdir:
        decrypted_path = workdir / "verify.sqlite"
        cipher.decrypt_file(artifact_path, decrypted_path, passphrase)
        ensure_valid_sqlite(decrypted_path)
    return MODE_FULL


def verify_backups(
    targets: Iterable[Path],
    passphrase: Optional[str] = None,
    strict_checksum: bool = True,
    cipher: Optional[Cipher] = None,
    work_root: Optional[Union[str, Path]] = None,
) -> VerifyReport:
    """Verify each artifact, collecting failures instead of stopping."""
    report = VerifyReport()
    mode = MODE_FULL if passphrase else MODE_CHECKSUM
    if passphrase:
        cipher = cipher or get_cipher()

    for artifact_path in targets:
        try:
            mode = verify_artifact(artifact_path, passphrase, strict_checksum, cipher, work_root)
            report.results.append(VerifyResult(artifact_path=artifact_path, ok=True, mode=mode))
            log_event(logger, f"Verified {artifact_path.name}", artifact=artifact_path.name, mode=mode)
        except (BackupError, OSError) as e:
            report.results.append(
                VerifyResult(artifact_path=artifact_path, ok=False, mode=mode, reason=str(e))
            )
            log_event(logger, f"Verification failed for {artifact_path.name}: {e}",
                      level=logging.ERROR, artifact=artifact_path.name,
                      error_type=type(e).__name__)

    log_event(logger, f"Verification result: {report.ok_count}/{report.total} passed",
              ok=report.ok_count, total=report.total)
    return report
