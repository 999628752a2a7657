"""Helpers shared by dbvault tests."""

import os
import sqlite3
from pathlib import Path


def make_database(path: Path, rows: int = 50, label: str = "user") -> Path:
    """Create a small SQLite database with one populated table."""
    conn = sqlite3.connect(str(path))
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, bio TEXT)")
    conn.executemany(
        "INSERT INTO users (name, bio) VALUES (?, ?)",
        [(f"{label}-{i}", "x" * 200) for i in range(rows)],
    )
    conn.commit()
    conn.close()
    return path


def dump_database(path: Path) -> list[str]:
    """Logical content of a database, for comparing copies."""
    conn = sqlite3.connect(str(path))
    try:
        return list(conn.iterdump())
    finally:
        conn.close()


def make_artifact(directory: Path, name: str, age_days: float, now: float,
                  sidecars: bool = True) -> Path:
    """Create a fake artifact (plus sidecars) with a given age."""
    directory.mkdir(parents=True, exist_ok=True)
    artifact = directory / name
    artifact.write_bytes(b"Salted__" + name.encode())
    files = [artifact]
    if sidecars:
        files.append(Path(f"{artifact}.sha256"))
        files.append(Path(f"{artifact}.json"))
        files[1].write_text("0" * 64 + f"  {name}\n")
        files[2].write_text("{}\n")

    mtime = now - age_days * 24 * 60 * 60
    for path in files:
        os.utime(path, (mtime, mtime))
    return artifact
