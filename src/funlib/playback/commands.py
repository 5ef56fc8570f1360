"""Motion command tuples produced by playback and consumed by devices."""

from __future__ import annotations

from typing import NamedTuple, Optional

MODE_INTERVAL = "I"
MODE_SPEED = "S"


class TCodeCommand(NamedTuple):
    """
    Move ``axis`` to ``pos`` (0-100).

    Without a mode the device moves at its own pace. ``mode="I"`` asks it to
    arrive after ``arg`` milliseconds, ``mode="S"`` to move at ``arg`` speed.
    """

    axis: str
    pos: float
    mode: Optional[str] = None
    arg: Optional[float] = None


__all__ = ["MODE_INTERVAL", "MODE_SPEED", "TCodeCommand"]
