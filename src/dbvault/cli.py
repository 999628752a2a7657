"""
Database Vault - Command Line Entry Points

    dbvault-backup  [--db=PATH] [--out=DIR] [--prefix=NAME]
    dbvault-restore --file=PATH [--db=PATH] [--checksum=PATH]
    dbvault-prune   [--dir=DIR] [--days=N] [--keep-min=N]
    dbvault-verify  [--file=PATH | --dir=DIR] [--limit=N] [--allow-missing-checksum]

Every flag can also be supplied through its environment variable (see
dbvault.config). The passphrase is read from BACKUP_PASSPHRASE only.

Exit codes:
    0 - Success (including "nothing to prune")
    1 - Operation failed
    2 - Invalid command line
"""

import argparse
import sys
from typing import Mapping, Optional, Sequence

from . import __version__
from .backup import create_backup
from .cipher import get_cipher
from .config import VaultConfig
from .errors import BackupError, ConfigurationError
from .logger import configure_logging
from .prune import prune_backups
from .restore import restore_backup
from .verify import find_targets, verify_backups


def _base_parser(description: str, epilog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    parser.add_argument("--config", help="YAML config file (env: BACKUP_CONFIG)")
    parser.add_argument(
        "--cipher",
        choices=["openssl", "native"],
        help="Cipher backend (env: BACKUP_CIPHER, default: openssl)",
    )
    parser.add_argument(
        "--timeout",
        dest="subprocess_timeout",
        help="Timeout in seconds for the openssl subprocess (env: BACKUP_TIMEOUT, default: none)",
    )
    parser.add_argument("--log-level", help="Log level (env: BACKUP_LOG_LEVEL, default: INFO)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _load_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]]) -> VaultConfig:
    config = VaultConfig.from_sources(vars(args), environ)
    configure_logging(config.log_level)
    return config


def _fail(error: Exception) -> int:
    print(f"[FAIL] {error}", file=sys.stderr)
    return 1


def _header(title: str):
    print("=" * 60)
    print(title)
    print("=" * 60)


def backup_main(argv: Optional[Sequence[str]] = None,
                environ: Optional[Mapping[str, str]] = None) -> int:
    """Create one encrypted backup artifact."""
    parser = _base_parser(
        "Create an encrypted, checksummed backup of the SQLite database",
        """
Examples:
    BACKUP_PASSPHRASE=... %(prog)s
    BACKUP_PASSPHRASE=... %(prog)s --db=./data.sqlite --out=../backups/api --prefix=users
""",
    )
    parser.add_argument("--db", dest="db_path", help="Database path (env: DB_PATH)")
    parser.add_argument("--out", dest="backup_dir", help="Output directory (env: BACKUP_DIR)")
    parser.add_argument("--prefix", help="Artifact name prefix (env: BACKUP_PREFIX, default: users)")
    parser.add_argument("--work-dir", dest="work_dir",
                        help="Parent for the temporary snapshot directory (env: BACKUP_WORK_DIR)")
    args = parser.parse_args(argv)

    try:
        config = _load_config(args, environ)
        passphrase = config.require_passphrase()

        _header("DATABASE BACKUP")
        print(f"Database:   {config.db_path}")
        print(f"Output dir: {config.backup_dir}")

        result = create_backup(
            config.db_path,
            config.backup_dir,
            config.prefix,
            passphrase,
            cipher=get_cipher(config.cipher, config.subprocess_timeout),
            work_root=config.work_dir,
        )
    except (BackupError, OSError) as e:
        return _fail(e)

    print(f"[OK] Encrypted backup saved: {result.artifact_path}")
    print(f"[OK] SHA-256 checksum: {result.checksum_path}")
    return 0


def restore_main(argv: Optional[Sequence[str]] = None,
                 environ: Optional[Mapping[str, str]] = None) -> int:
    """Restore the database from an encrypted backup artifact."""
    parser = _base_parser(
        "Restore the SQLite database from an encrypted backup",
        """
The current database and its -wal/-shm files are renamed to
<name>.<timestamp>.bak before the restored file is moved into place.

Examples:
    BACKUP_PASSPHRASE=... %(prog)s --file=../backups/api/users-2026-10-19T08-06-00-123Z.sqlite.enc
""",
    )
    parser.add_argument("--file", dest="backup_file", help="Encrypted backup (env: BACKUP_FILE)")
    parser.add_argument("--db", dest="db_path", help="Database to replace (env: DB_PATH)")
    parser.add_argument("--checksum", dest="checksum_path",
                        help="Checksum sidecar (env: BACKUP_CHECKSUM, default: <file>.sha256)")
    args = parser.parse_args(argv)

    try:
        config = _load_config(args, environ)
        if config.backup_file is None:
            raise ConfigurationError("Backup path required. Use --file=<path>.")
        passphrase = config.require_passphrase()

        _header("DATABASE RESTORE")
        print(f"Backup:   {config.backup_file}")
        print(f"Database: {config.db_path}")

        result = restore_backup(
            config.backup_file,
            config.db_path,
            passphrase,
            checksum_path=config.checksum_path,
            cipher=get_cipher(config.cipher, config.subprocess_timeout),
        )
    except (BackupError, OSError) as e:
        return _fail(e)

    if not result.checksum_verified:
        print("[SKIP] No checksum sidecar found, checksum not verified")
    print(f"[OK] Restore complete: {result.db_path}")
    if result.previous_db_backup:
        print(f"[OK] Previous database kept at: {result.previous_db_backup}")
    print(f"[OK] Restore log: {result.restore_log_path}")
    return 0


def prune_main(argv: Optional[Sequence[str]] = None,
               environ: Optional[Mapping[str, str]] = None) -> int:
    """Delete expired backups, keeping at least --keep-min of the newest."""
    parser = _base_parser(
        "Prune encrypted backups older than the retention period",
        """
Examples:
    %(prog)s --dir=../backups/api --days=30 --keep-min=10
""",
    )
    parser.add_argument("--dir", dest="backup_dir", help="Backup directory (env: BACKUP_DIR)")
    parser.add_argument("--days", dest="retention_days", type=int,
                        help="Retention period in days (env: BACKUP_RETENTION_DAYS, default: 30)")
    parser.add_argument("--keep-min", dest="keep_min", type=int,
                        help="Newest backups always kept (env: BACKUP_KEEP_MIN, default: 10)")
    args = parser.parse_args(argv)

    try:
        config = _load_config(args, environ)
        summary = prune_backups(
            config.backup_dir,
            config.retention_days,
            config.keep_min,
            on_removed=lambda path: print(f"[REMOVED] {path.name}", flush=True),
        )
    except (BackupError, OSError) as e:
        return _fail(e)

    if summary.total == 0:
        print(f"No .enc backups to prune in {config.backup_dir}")
        return 0

    print(f"Prune complete. {summary}.")
    return 0


def verify_main(argv: Optional[Sequence[str]] = None,
                environ: Optional[Mapping[str, str]] = None) -> int:
    """Verify checksums and, with a passphrase, decryptability of backups."""
    parser = _base_parser(
        "Verify encrypted backups without restoring them",
        """
Without BACKUP_PASSPHRASE only checksums are verified.

Examples:
    %(prog)s --dir=../backups/api --limit=3
    BACKUP_PASSPHRASE=... %(prog)s --file=../backups/api/users-2026-10-19T08-06-00-123Z.sqlite.enc
""",
    )
    parser.add_argument("--file", dest="backup_file", help="Single encrypted backup to verify")
    parser.add_argument("--dir", dest="backup_dir", help="Backup directory (env: BACKUP_DIR)")
    parser.add_argument("--limit", type=int, help="Verify only the N newest backups")
    parser.add_argument("--allow-missing-checksum", action="store_true",
                        help="Do not fail backups that have no .sha256 sidecar")
    parser.add_argument("--work-dir", dest="work_dir",
                        help="Parent for temporary decrypted copies (env: BACKUP_WORK_DIR)")
    args = parser.parse_args(argv)

    try:
        config = _load_config(args, environ)
        # Only --file selects a single artifact; BACKUP_FILE belongs to restore
        targets = find_targets(args.backup_file, config.backup_dir, args.limit)
        cipher = get_cipher(config.cipher, config.subprocess_timeout) if config.passphrase else None
        report = verify_backups(
            targets,
            passphrase=config.passphrase,
            strict_checksum=not args.allow_missing_checksum,
            cipher=cipher,
            work_root=config.work_dir,
        )
    except (BackupError, OSError) as e:
        return _fail(e)

    for result in report.results:
        if result.ok:
            print(f"[OK] {result.artifact_path.name} ({result.mode})")
        else:
            print(f"[FAIL] {result.artifact_path.name}: {result.reason}", file=sys.stderr)

    print(f"\nVerification result: {report.ok_count}/{report.total} passed.")
    return 0 if report.all_ok else 1

