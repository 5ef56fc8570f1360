"""Tick timing for playback, switched on by setting ``FUNLIB_DEBUG``."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

_TRUTHY = ("1", "true", "yes", "on")
DEBUG_FUNLIB = os.getenv("FUNLIB_DEBUG", "").strip().lower() in _TRUTHY

logger = logging.getLogger(__name__)


def debug_enabled() -> bool:
    return DEBUG_FUNLIB


@contextmanager
def time_block(label: str, *, emitter: Optional[Callable[[str], None]] = None) -> Iterator[None]:
    """
    Log the wall time spent inside the ``with`` body.

    With ``FUNLIB_DEBUG`` unset nothing is measured. The message goes to
    *emitter* when given, otherwise to this module's logger at debug level.
    """
    if not debug_enabled():
        yield
        return

    began = time.perf_counter()
    try:
        yield
    finally:
        spent_ms = (time.perf_counter() - began) * 1000.0
        report = emitter if emitter is not None else logger.debug
        report(f"{label}: {spent_ms:.3f} ms")


__all__ = ["debug_enabled", "time_block"]
