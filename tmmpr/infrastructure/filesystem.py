# tmmpr/infrastructure/filesystem.py

from __future__ import annotations

import os
import uuid
from datetime import datetime
from pathlib import Path

from tmmpr.paths import BACKUPS_DIR_NAME, MAP_FILE_SUFFIX

# ───────────────────────── public API ─────────────────────────

def atomic_write_text(
    path: Path,
    text: str,
    *,
    encoding: str = "utf-8",
) -> None:
    """
    Atomic-ish file write:
    - write to temp file in same directory
    - fsync
    - replace()

    A crash mid-write leaves the previous file intact.
    """
    path = Path(path)
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    tmp_name = f".{path.name}.tmp-{uuid.uuid4().hex}"
    tmp_path = parent / tmp_name

    f = None
    try:
        f = open(tmp_path, "w", encoding=encoding, newline="")
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
        f.close()
        f = None

        tmp_path.replace(path)

    finally:
        try:
            if f is not None:
                f.close()
        except OSError:
            pass

        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError:
            pass


def backups_dir_for(map_path: Path, backups_path: str | None) -> Path:
    """Configured backups directory, else `<map dir>/backups`."""
    if backups_path:
        return Path(backups_path).expanduser()
    return Path(map_path).parent / BACKUPS_DIR_NAME


def unique_path(path: Path) -> Path:
    """`path` itself if free, else the first free `<stem>-N<suffix>`."""
    path = Path(path)
    if not path.exists():
        return path
    n = 1
    while True:
        candidate = path.with_name(f"{path.stem}-{n}{path.suffix}")
        if not candidate.exists():
            return candidate
        n += 1


def load_backup_path(map_path: Path, backups_dir: Path, when: datetime) -> Path:
    """<stem>-load-backup-<yy-mm-dd>.json, never an existing file."""
    stem = Path(map_path).stem or "unknown"
    name = f"{stem}-load-backup-{when.strftime('%y-%m-%d')}{MAP_FILE_SUFFIX}"
    return unique_path(Path(backups_dir) / name)


def session_backup_path(map_path: Path, backups_dir: Path, when: datetime) -> Path:
    """<stem>-session-backup-<yy-mm-dd-HHMM>.json, never an existing file."""
    stem = Path(map_path).stem or "unknown"
    name = f"{stem}-session-backup-{when.strftime('%y-%m-%d-%H%M')}{MAP_FILE_SUFFIX}"
    return unique_path(Path(backups_dir) / name)
