"""Load and save scripts on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.models import FileIdentity, Script
from .formats import DEFAULT_VERSION, parse_script, serialize_script

logger = logging.getLogger(__name__)


def load_script(path: str | Path) -> Script:
    """
    Read and parse one script file.

    The file name provides the script's identity, so ``video.roll.funscript``
    loads as a script whose root channel is ``roll``.
    """
    path = Path(path)
    data = path.read_bytes()
    script = parse_script(data, file=FileIdentity.from_path(path))
    logger.debug("Loaded %s (%d actions, %d channels)", path, len(script.actions), len(script.channels))
    return script


def load_scripts(paths: Iterable[str | Path]) -> List[Script]:
    """Load several script files, in the given order."""
    return [load_script(path) for path in paths]


def save_script(
    script: Script,
    path: Optional[str | Path] = None,
    *,
    version: str = DEFAULT_VERSION,
    line_length: int = 100,
) -> Path:
    """
    Write *script* to *path* (default: its own file identity's path).

    Raises
    ------
    ValueError
        If no path is given and the script has no file identity.
    """
    if path is None:
        if script.file is None:
            raise ValueError("script has no file identity; pass an explicit path")
        path = script.file.path
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(serialize_script(script, version, line_length=line_length), encoding="utf-8")
    logger.info("Wrote %s (version %s)", target, version)
    return target
