"""Speed statistics for action curves."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union

import numpy as np

from ..core.models import Action
from ..core.timespans import round_half_up, seconds_to_duration
from .peaks import peak_kinds

# Peaks slower than this do not count towards the average speed.
AVERAGE_SPEED_FLOOR = 30
# A required speed must be held at least this long (ms) to count.
REQUIRED_SPEED_MIN_SPAN = 50


def average_speed(actions: Sequence[Action]) -> float:
    """
    Time-weighted mean absolute speed between peaks.

    Parameters
    ----------
    actions:
        Ordered actions of one channel.

    Returns
    -------
    float
        Mean of ``|speed|`` into each peak faster than 30 units/s, weighted
        by the time to the following peak; 0 when there is nothing to weigh.
    """
    kinds = peak_kinds(actions)
    peaks = [a for a, kind in zip(actions, kinds) if kind != 0]
    if len(peaks) < 2:
        return 0.0
    at = np.array([p.at for p in peaks], dtype=float)
    pos = np.array([p.pos for p in peaks], dtype=float)
    dt = np.diff(at)
    v = np.zeros_like(dt)
    np.divide(np.diff(pos) * 1000.0, dt, out=v, where=dt != 0)

    speed_into = np.abs(np.concatenate(([0.0], v)))
    time_to_next = np.concatenate((dt, [0.0]))
    fast = speed_into > AVERAGE_SPEED_FLOOR
    weight = float(np.sum(time_to_next[fast]))
    return float(np.sum(speed_into[fast] * time_to_next[fast])) / (weight or 1.0)


def required_max_speed(actions: Sequence[Action]) -> float:
    """
    Fastest speed a device must reach to arrive at each next peak in time.

    Every action is paired with the next peak after it; the highest of those
    speeds that spans at least 50 ms is returned (0 if none does).
    """
    if len(actions) < 2:
        return 0.0
    kinds = peak_kinds(actions)
    peak_indices = np.flatnonzero(kinds)

    required = []
    cursor = 0
    for index, action in enumerate(actions):
        while cursor < len(peak_indices) and peak_indices[cursor] <= index:
            cursor += 1
        if cursor >= len(peak_indices):
            break
        target = actions[peak_indices[cursor]]
        span = target.at - action.at
        speed = abs((target.pos - action.pos) / span * 1000.0) if span else 0.0
        required.append((speed, span))

    for speed, span in sorted(required, key=lambda item: item[0], reverse=True):
        if span >= REQUIRED_SPEED_MIN_SPAN:
            return float(speed)
    return 0.0


@dataclass(slots=True)
class ChannelStats:
    """Summary numbers shown next to a channel."""

    duration: float
    action_count: int
    max_speed: float
    avg_speed: float

    def to_mapping(self) -> Dict[str, Union[str, int]]:
        return {
            "Duration": seconds_to_duration(self.duration),
            "ActionCount": self.action_count,
            "MaxSpeed": round_half_up(self.max_speed),
            "AvgSpeed": round_half_up(self.avg_speed),
        }


def channel_stats(actions: Sequence[Action], duration: Optional[float] = None) -> ChannelStats:
    """
    Stats for one channel. ``action_count`` counts peaks, not raw points.

    *duration* is in seconds and defaults to the last action's time.
    """
    if duration is None:
        duration = actions[-1].at / 1000 if actions else 0.0
    return ChannelStats(
        duration=float(duration),
        action_count=int(np.count_nonzero(peak_kinds(actions))),
        max_speed=required_max_speed(actions),
        avg_speed=average_speed(actions),
    )


__all__ = ["ChannelStats", "average_speed", "channel_stats", "required_max_speed"]
