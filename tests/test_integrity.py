"""
Tests for dbvault.integrity

Tests cover:
- SHA-256 digests and checksum sidecar format
- Checksum parsing (shape, case normalisation)
- Mismatch reporting with expected/actual values
- SQLite header and quick_check validation
"""

import hashlib
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from dbvault.errors import FormatError, IntegrityError, ValidationError
from dbvault.integrity import (
    SQLITE_HEADER,
    checksum_path_for,
    ensure_valid_sqlite,
    has_sqlite_header,
    parse_expected_checksum,
    run_quick_check,
    sha256_file,
    verify_checksum,
    write_checksum,
)

from helpers import make_database


class TestDigest:
    """Test digest computation and sidecar writing."""

    def test_sha256_matches_hashlib(self, tmp_path):
        payload = tmp_path / "payload.bin"
        payload.write_bytes(b"\x00\x01" * 100000)

        assert sha256_file(payload) == hashlib.sha256(payload.read_bytes()).hexdigest()

    def test_checksum_sidecar_format(self, tmp_path):
        artifact = tmp_path / "users-2026.sqlite.enc"
        artifact.write_bytes(b"ciphertext")
        digest = sha256_file(artifact)

        checksum_path = write_checksum(artifact, digest)

        assert checksum_path == checksum_path_for(artifact)
        assert checksum_path.name == "users-2026.sqlite.enc.sha256"
        assert checksum_path.read_text() == f"{digest}  users-2026.sqlite.enc\n"


class TestParseChecksum:
    """Test checksum sidecar parsing."""

    def test_first_token_is_used(self):
        digest = "a" * 64
        assert parse_expected_checksum(f"{digest}  file.enc\n") == digest

    def test_uppercase_is_normalised(self):
        assert parse_expected_checksum("AB" * 32) == "ab" * 32

    def test_leading_whitespace_is_ignored(self):
        digest = "0123456789abcdef" * 4
        assert parse_expected_checksum(f"\n   {digest}\tfile.enc") == digest

    @pytest.mark.parametrize("raw", ["", "   \n", "abc123  file.enc", "g" * 64, "a" * 65])
    def test_malformed_checksum_rejected(self, raw):
        with pytest.raises(FormatError):
            parse_expected_checksum(raw)


class TestVerifyChecksum:
    """Test comparing an artifact against its sidecar."""

    def test_matching_checksum(self, tmp_path):
        artifact = tmp_path / "a.sqlite.enc"
        artifact.write_bytes(b"encrypted bytes")
        checksum_path = write_checksum(artifact, sha256_file(artifact))

        assert verify_checksum(artifact, checksum_path) == sha256_file(artifact)

    def test_mismatch_reports_both_values(self, tmp_path):
        artifact = tmp_path / "a.sqlite.enc"
        artifact.write_bytes(b"encrypted bytes")
        expected = sha256_file(artifact)
        checksum_path = write_checksum(artifact, expected)

        artifact.write_bytes(b"encrypted bytez")
        actual = sha256_file(artifact)

        with pytest.raises(IntegrityError) as exc_info:
            verify_checksum(artifact, checksum_path)

        assert exc_info.value.expected == expected
        assert exc_info.value.actual == actual
        assert expected in str(exc_info.value)
        assert actual in str(exc_info.value)


class TestSqliteValidation:
    """Test structural validation of decrypted files."""

    def test_valid_database_passes(self, tmp_path):
        db = make_database(tmp_path / "ok.sqlite")

        assert has_sqlite_header(db)
        assert run_quick_check(db) == "ok"
        ensure_valid_sqlite(db)

    def test_wrong_header_rejected(self, tmp_path):
        bogus = tmp_path / "bogus.sqlite"
        bogus.write_bytes(b"not a database at all" * 100)

        with pytest.raises(ValidationError, match="not a valid database file"):
            ensure_valid_sqlite(bogus)

    def test_short_file_rejected(self, tmp_path):
        short = tmp_path / "short.sqlite"
        short.write_bytes(SQLITE_HEADER[:5])

        assert not has_sqlite_header(short)
        with pytest.raises(ValidationError):
            ensure_valid_sqlite(short)

    def test_corrupted_pages_rejected(self, tmp_path):
        db = make_database(tmp_path / "corrupt.sqlite", rows=500)
        data = bytearray(db.read_bytes())
        page_size = int.from_bytes(data[16:18], "big")

        # Overwrite the second page (table root) with garbage, keep the header intact
        data[page_size:page_size * 2] = b"\xff" * page_size
        db.write_bytes(bytes(data))

        with pytest.raises(ValidationError):
            ensure_valid_sqlite(db)
