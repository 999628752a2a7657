"""
Database Vault - Configuration

Every setting is resolved once at startup, in priority order:

    CLI flag > environment variable > YAML config file > default

The passphrase is the exception: it is read from BACKUP_PASSPHRASE only and
is never accepted from a flag or a config file.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Environment variables
ENV_DB_PATH = "DB_PATH"
ENV_BACKUP_DIR = "BACKUP_DIR"
ENV_PREFIX = "BACKUP_PREFIX"
ENV_BACKUP_FILE = "BACKUP_FILE"
ENV_CHECKSUM = "BACKUP_CHECKSUM"
ENV_RETENTION_DAYS = "BACKUP_RETENTION_DAYS"
ENV_KEEP_MIN = "BACKUP_KEEP_MIN"
ENV_PASSPHRASE = "BACKUP_PASSPHRASE"
ENV_CIPHER = "BACKUP_CIPHER"
ENV_TIMEOUT = "BACKUP_TIMEOUT"
ENV_WORK_DIR = "BACKUP_WORK_DIR"
ENV_CONFIG = "BACKUP_CONFIG"
ENV_LOG_LEVEL = "BACKUP_LOG_LEVEL"

# Defaults
DEFAULT_DB_NAME = "data.sqlite"
DEFAULT_BACKUP_SUBDIR = Path("backups") / "api"
DEFAULT_PREFIX = "users"
DEFAULT_RETENTION_DAYS = 30
DEFAULT_KEEP_MIN = 10
DEFAULT_CIPHER = "openssl"
DEFAULT_LOG_LEVEL = "INFO"

FILE_KEYS = {
    "db_path",
    "backup_dir",
    "prefix",
    "backup_file",
    "checksum_path",
    "retention_days",
    "keep_min",
    "cipher",
    "subprocess_timeout",
    "work_dir",
    "log_level",
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve(
    flag: Any,
    env_var: Optional[str],
    default: Any = None,
    environ: Optional[Mapping[str, str]] = None,
    file_values: Optional[Mapping[str, Any]] = None,
    key: Optional[str] = None,
) -> Any:
    """
    Resolve one setting from its layered sources.

    Args:
        flag: Value given on the command line (None if not given)
        env_var: Environment variable name to consult
        default: Fallback value
        environ: Environment mapping (default: os.environ)
        file_values: Values loaded from the YAML config file
        key: Key to look up in file_values

    Returns:
        The first non-blank value among flag, environment, file, default
    """
    if not _is_blank(flag):
        return flag

    environ = os.environ if environ is None else environ
    if env_var and not _is_blank(environ.get(env_var)):
        return environ[env_var]

    if file_values and key and not _is_blank(file_values.get(key)):
        return file_values[key]

    return default


def load_config_file(path: Optional[str]) -> dict:
    """
    Load settings from a YAML config file.

    Raises:
        ConfigurationError: File missing, unreadable, not a mapping,
            or containing a passphrase
    """
    if _is_blank(path):
        return {}

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    if "passphrase" in data:
        raise ConfigurationError(
            f"Config file {config_path} must not contain a passphrase; "
            f"set {ENV_PASSPHRASE} instead"
        )

    unknown = set(data) - FILE_KEYS
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

    return {k: v for k, v in data.items() if k in FILE_KEYS}


def _to_int(name: str, value: Any, minimum: int) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if number < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {number}")
    return number


def _to_timeout(value: Any) -> Optional[float]:
    if _is_blank(value):
        return None
    try:
        timeout = float(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"subprocess timeout must be a number, got {value!r}")
    if timeout <= 0:
        raise ConfigurationError(f"subprocess timeout must be positive, got {timeout}")
    return timeout


def read_passphrase(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Passphrase from the environment, stripped; None when absent or blank."""
    environ = os.environ if environ is None else environ
    value = environ.get(ENV_PASSPHRASE)
    if _is_blank(value):
        return None
    return value.strip()


@dataclass(frozen=True)
class VaultConfig:
    """
    Immutable settings for one dbvault invocation.

    Built once by from_sources(); operations receive explicit values from it
    rather than reading the environment themselves.
    """

    db_path: Path
    backup_dir: Path
    prefix: str = DEFAULT_PREFIX
    backup_file: Optional[Path] = None
    checksum_path: Optional[Path] = None
    retention_days: int = DEFAULT_RETENTION_DAYS
    keep_min: int = DEFAULT_KEEP_MIN
    cipher: str = DEFAULT_CIPHER
    subprocess_timeout: Optional[float] = None
    work_dir: Optional[Path] = None
    log_level: str = DEFAULT_LOG_LEVEL
    passphrase: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_sources(
        cls,
        cli: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
        project_root: Optional[Path] = None,
    ) -> "VaultConfig":
        """
        Resolve configuration from CLI values, environment and config file.

        Args:
            cli: Parsed command-line values keyed like the dataclass fields,
                plus an optional "config" entry naming a YAML file
            environ: Environment mapping (default: os.environ)
            project_root: Base for default paths (default: current directory)

        Returns:
            VaultConfig: Resolved configuration
        """
        cli = dict(cli or {})
        environ = os.environ if environ is None else environ
        root = Path(project_root) if project_root else Path.cwd()

        file_values = load_config_file(resolve(cli.get("config"), ENV_CONFIG, None, environ))

        def pick(name, env_var, default=None):
            return resolve(cli.get(name), env_var, default, environ, file_values, name)

        db_path = Path(pick("db_path", ENV_DB_PATH, root / DEFAULT_DB_NAME)).resolve()
        backup_dir = Path(pick("backup_dir", ENV_BACKUP_DIR, root / DEFAULT_BACKUP_SUBDIR)).resolve()

        backup_file = pick("backup_file", ENV_BACKUP_FILE)
        checksum_path = pick("checksum_path", ENV_CHECKSUM)
        work_dir = pick("work_dir", ENV_WORK_DIR)

        config = cls(
            db_path=db_path,
            backup_dir=backup_dir,
            prefix=str(pick("prefix", ENV_PREFIX, DEFAULT_PREFIX)),
            backup_file=Path(backup_file).resolve() if backup_file else None,
            checksum_path=Path(checksum_path).resolve() if checksum_path else None,
            retention_days=_to_int(
                "retention days", pick("retention_days", ENV_RETENTION_DAYS, DEFAULT_RETENTION_DAYS), 1
            ),
            keep_min=_to_int("keep-min", pick("keep_min", ENV_KEEP_MIN, DEFAULT_KEEP_MIN), 0),
            cipher=str(pick("cipher", ENV_CIPHER, DEFAULT_CIPHER)).strip().lower(),
            subprocess_timeout=_to_timeout(pick("subprocess_timeout", ENV_TIMEOUT)),
            work_dir=Path(work_dir).resolve() if work_dir else None,
            log_level=str(pick("log_level", ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper(),
            passphrase=read_passphrase(environ),
        )
        logger.debug(f"Resolved configuration: {config}")
        return config

    def require_passphrase(self) -> str:
        """
        Raises:
            ConfigurationError: No passphrase in the environment
        """
        if not self.passphrase:
            raise ConfigurationError(f"passphrase required: set {ENV_PASSPHRASE}")
        return self.passphrase

    def __str__(self) -> str:
        """String representation with masked passphrase."""
        masked = "***REDACTED***" if self.passphrase else None
        return (
            f"VaultConfig("
            f"db_path={self.db_path}, "
            f"backup_dir={self.backup_dir}, "
            f"prefix={self.prefix}, "
            f"backup_file={self.backup_file}, "
            f"checksum_path={self.checksum_path}, "
            f"retention_days={self.retention_days}, "
            f"keep_min={self.keep_min}, "
            f"cipher={self.cipher}, "
            f"subprocess_timeout={self.subprocess_timeout}, "
            f"work_dir={self.work_dir}, "
            f"passphrase={masked})"
        )

    __repr__ = __str__
