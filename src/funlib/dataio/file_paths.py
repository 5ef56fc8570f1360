"""Helpers for locating script files and naming backup archives."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List

SCRIPT_GLOB = "*.funscript"
BACKUP_PREFIX = ".processed-"


def find_script_files(folder: str | Path) -> List[Path]:
    """Return every ``*.funscript`` below *folder*, sorted for stable output."""
    root = Path(folder)
    return sorted(path.resolve() for path in root.rglob(SCRIPT_GLOB) if path.is_file())


def backup_archive_path(folder: str | Path, now: datetime | None = None) -> Path:
    """
    Timestamped zip path for the originals replaced by a merge.

    Example: ``<folder>/.processed-2025-12-04T15-30-45.zip``
    """
    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    return Path(folder) / f"{BACKUP_PREFIX}{stamp}.zip"
