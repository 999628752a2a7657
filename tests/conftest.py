"""
Shared fixtures for dbvault tests.

Real SQLite files in tmp_path; the native cipher backend so the suite does
not depend on an openssl binary being installed.
"""

import shutil
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dbvault.cipher import NativeCipher
from helpers import make_database

PASSPHRASE = "correct horse battery staple"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "openssl: tests that require the openssl binary")


@pytest.fixture
def passphrase():
    return PASSPHRASE


@pytest.fixture
def cipher():
    return NativeCipher()


@pytest.fixture
def sample_db(tmp_path):
    db_dir = tmp_path / "db"
    db_dir.mkdir()
    return make_database(db_dir / "data.sqlite")


@pytest.fixture
def backup_dir(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def work_root(tmp_path):
    root = tmp_path / "work"
    root.mkdir()
    return root


@pytest.fixture
def requires_openssl():
    if shutil.which("openssl") is None:
        pytest.skip("openssl binary not available")
