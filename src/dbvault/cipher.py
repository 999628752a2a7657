"""
Database Vault - Encryptor/Decryptor

AES-256-CBC with a PBKDF2-derived key and a random salt, in the container
format written by `openssl enc -aes-256-cbc -pbkdf2 -salt`:

    b"Salted__" | 8 byte salt | ciphertext (PKCS#7 padded)

Two interchangeable backends are provided:
- OpenSSLCipher shells out to the openssl binary, passing the passphrase
  through the child environment (never argv).
- NativeCipher implements the same format with the cryptography library.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher as _AESCipher
from cryptography.hazmat.primitives.ciphers import algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import ConfigurationError, DecryptionError, EncryptionError

logger = logging.getLogger(__name__)

ALGORITHM = "aes-256-cbc"
KDF = "pbkdf2"

PASSPHRASE_ENV = "BACKUP_PASSPHRASE"

SALT_MAGIC = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = 16
# openssl enc -pbkdf2 defaults
PBKDF2_ITERATIONS = 10000


class Cipher(ABC):
    """
    Symmetric encrypt/decrypt capability keyed by a passphrase.

    Subclasses implement the byte transforms; the file variants read and
    write whole files and may be overridden to stream instead.
    """

    name = "abstract"
    ALGORITHM = ALGORITHM
    KDF = KDF

    @abstractmethod
    def encrypt(self, data: bytes, passphrase: str) -> bytes:
        """Encrypt bytes. Raises EncryptionError."""

    @abstractmethod
    def decrypt(self, data: bytes, passphrase: str) -> bytes:
        """Decrypt bytes. Raises DecryptionError."""

    def encrypt_file(self, source: Path, destination: Path, passphrase: str) -> None:
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise EncryptionError(f"Failed to read {source}.", str(e)) from e
        Path(destination).write_bytes(self.encrypt(data, passphrase))

    def decrypt_file(self, source: Path, destination: Path, passphrase: str) -> None:
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise DecryptionError(f"Failed to read {source}.", str(e)) from e
        Path(destination).write_bytes(self.decrypt(data, passphrase))


class NativeCipher(Cipher):
    """OpenSSL-compatible AES-256-CBC/PBKDF2 using the cryptography library."""

    name = "native"

    def __init__(self, iterations: int = PBKDF2_ITERATIONS):
        self.iterations = iterations

    def _derive(self, passphrase: str, salt: bytes) -> tuple[bytes, bytes]:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE + IV_SIZE,
            salt=salt,
            iterations=self.iterations,
        )
        material = kdf.derive(passphrase.encode("utf-8"))
        return material[:KEY_SIZE], material[KEY_SIZE:]

    def encrypt(self, data: bytes, passphrase: str) -> bytes:
        salt = os.urandom(SALT_SIZE)
        key, iv = self._derive(passphrase, salt)

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()

        encryptor = _AESCipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        return SALT_MAGIC + salt + encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, data: bytes, passphrase: str) -> bytes:
        header_size = len(SALT_MAGIC) + SALT_SIZE
        if len(data) < header_size or not data.startswith(SALT_MAGIC):
            raise DecryptionError("Failed to decrypt backup.", "bad magic number")

        salt = data[len(SALT_MAGIC):header_size]
        body = data[header_size:]
        block_bytes = algorithms.AES.block_size // 8
        if not body or len(body) % block_bytes:
            raise DecryptionError("Failed to decrypt backup.", "bad decrypt (truncated ciphertext)")

        key, iv = self._derive(passphrase, salt)
        decryptor = _AESCipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionError("Failed to decrypt backup.", "bad decrypt") from e


class OpenSSLCipher(Cipher):
    """
    Runs `openssl enc` as a subprocess.

    The passphrase reaches the child only as an environment variable
    referenced by `-pass env:BACKUP_PASSPHRASE`.
    """

    name = "openssl"

    def __init__(self, binary: str = "openssl", timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    def _command(self, decrypt: bool, source: str, destination: str) -> list[str]:
        cmd = [self.binary, "enc"]
        if decrypt:
            cmd += ["-d", f"-{ALGORITHM}", f"-{KDF}"]
        else:
            cmd += [f"-{ALGORITHM}", f"-{KDF}", "-salt"]
        cmd += ["-in", source, "-out", destination, "-pass", f"env:{PASSPHRASE_ENV}"]
        return cmd

    def _run(self, cmd: list[str], passphrase: str, error_cls, action: str,
             input_bytes: Optional[bytes] = None) -> bytes:
        env = {**os.environ, PASSPHRASE_ENV: passphrase}
        try:
            result = subprocess.run(
                cmd,
                input=input_bytes,
                env=env,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise error_cls(f"Failed to {action} backup.", f"{self.binary} not found") from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(
                f"Failed to {action} backup.", f"{self.binary} timed out after {self.timeout}s"
            ) from e

        if result.returncode != 0:
            reason = result.stderr.decode("utf-8", errors="replace").strip()
            logger.debug(f"{self.binary} exited with {result.returncode}: {reason}")
            raise error_cls(f"Failed to {action} backup.", reason or "OpenSSL error.")
        return result.stdout

    def encrypt(self, data: bytes, passphrase: str) -> bytes:
        return self._run(self._command(False, "-", "-"), passphrase,
                         EncryptionError, "encrypt", input_bytes=data)

    def decrypt(self, data: bytes, passphrase: str) -> bytes:
        return self._run(self._command(True, "-", "-"), passphrase,
                         DecryptionError, "decrypt", input_bytes=data)

    def encrypt_file(self, source: Path, destination: Path, passphrase: str) -> None:
        self._run(self._command(False, str(source), str(destination)), passphrase,
                  EncryptionError, "encrypt")

    def decrypt_file(self, source: Path, destination: Path, passphrase: str) -> None:
        self._run(self._command(True, str(source), str(destination)), passphrase,
                  DecryptionError, "decrypt")


CIPHERS = {
    NativeCipher.name: NativeCipher,
    OpenSSLCipher.name: OpenSSLCipher,
}


def get_cipher(name: str = "openssl", timeout: Optional[float] = None) -> Cipher:
    """
    Build a cipher backend by name.

    Args:
        name: "openssl" or "native"
        timeout: Subprocess timeout in seconds (openssl backend only)

    Raises:
        ConfigurationError: Unknown backend name
    """
    key = (name or "").strip().lower()
    if key == OpenSSLCipher.name:
        return OpenSSLCipher(timeout=timeout)
    if key == NativeCipher.name:
        return NativeCipher()
    raise ConfigurationError(
        f"Unknown cipher backend: {name!r} (expected one of: {', '.join(sorted(CIPHERS))})"
    )
