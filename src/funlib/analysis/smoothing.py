"""Device-constrained smoothing and peak speed limiting."""

from __future__ import annotations

import logging
import math
from typing import List, NamedTuple, Sequence

import numpy as np

from ..core.models import Action, clone_actions, lerp, speed_between, unlerp
from ..core.timespans import round_half_up
from .peaks import connect_segments, peak_kind_at, peak_kinds, split_to_segments
from .simplify import line_deviation, simplify_linear_curve

logger = logging.getLogger(__name__)

DEVICE_MAX_SPEED = 550
DEVICE_MIN_INTERVAL = 60
DEVICE_STRAIGHT_THRESHOLD = 3
MAX_PEAK_PASSES = 10
# Neighbouring points slower than this (units/s) are merged into one.
SLOW_MERGE_SPEED = 10
SMOOTH_NEIGHBOURS = 5


class PeakSpeedLimit(NamedTuple):
    actions: List[Action]
    converged: bool
    passes: int


def _pair_speeds(at: np.ndarray, pos: np.ndarray) -> np.ndarray:
    dt = np.diff(at)
    out = np.zeros_like(dt)
    np.divide(np.diff(pos) * 1000.0, dt, out=out, where=dt != 0)
    return out


def limit_peak_speed(actions: Sequence[Action], max_speed: float, max_passes: int = MAX_PEAK_PASSES) -> PeakSpeedLimit:
    """
    Pull peaks together until no peak-to-peak speed exceeds *max_speed*.

    Each pass computes, for every adjacent peak pair over the limit, the
    position change that would bring it to the limit and splits it half onto
    each peak. A peak receiving two changes of the same sign takes the larger
    one; opposite signs are summed. All changes are applied at once. After
    the last pass interior points are re-interpolated between their
    segment's (moved) peaks.

    Parameters
    ----------
    actions:
        Ordered actions; not modified.
    max_speed:
        Limit in position units per second.
    max_passes:
        Upper bound on the number of passes.

    Returns
    -------
    PeakSpeedLimit
        New actions, whether the limit was reached, and passes used.
    """
    work = clone_actions(actions)
    if len(work) < 2:
        return PeakSpeedLimit(work, True, 0)

    kinds = peak_kinds(work)
    peaks = [a for a, kind in zip(work, kinds) if kind != 0]
    at = np.array([p.at for p in peaks], dtype=float)
    pos = np.array([p.pos for p in peaks], dtype=float)

    passes = 0
    converged = bool(np.max(np.abs(_pair_speeds(at, pos)), initial=0.0) <= max_speed)
    while not converged and passes < max_passes:
        passes += 1
        v = _pair_speeds(at, pos)
        magnitude = np.abs(v)
        over = magnitude > max_speed
        fraction = np.zeros_like(v)
        np.divide(magnitude - max_speed, magnitude, out=fraction, where=over)
        change = np.diff(pos) * fraction

        left = np.zeros_like(pos)
        right = np.zeros_like(pos)
        left[:-1] += change / 2
        right[1:] -= change / 2
        larger = np.where(np.abs(left) > np.abs(right), left, right)
        pos = pos + np.where(np.sign(left) == np.sign(right), larger, left + right)

        converged = bool(np.max(np.abs(_pair_speeds(at, pos)), initial=0.0) <= max_speed)

    if not converged:
        logger.debug("Peak speed still above %s after %d passes", max_speed, passes)

    segments = split_to_segments(work)
    for index, segment in enumerate(segments):
        new_left, new_right = pos[index], pos[index + 1]
        left_at, right_at = segment[0].at, segment[-1].at
        for action in segment:
            action.pos = float(lerp(new_left, new_right, unlerp(left_at, right_at, action.at)))
    return PeakSpeedLimit(connect_segments(segments), converged, passes)


def _straighten(segment: List[Action], threshold: float) -> List[Action]:
    if len(segment) > 2 and line_deviation(segment) <= threshold:
        return [segment[0], segment[-1]]
    return segment


def _thin_segment(segment: List[Action], max_speed: float, min_interval: float, threshold: float) -> List[Action]:
    if len(segment) <= 2:
        return segment
    first, last = segment[0], segment[-1]
    if line_deviation(segment) <= threshold:
        return [first, last]
    if abs(speed_between(first, last)) > max_speed:
        return [first, last]

    middle = [
        a
        for a in segment[1:-1]
        if abs(speed_between(first, a)) < max_speed
        and abs(speed_between(a, last)) < max_speed
        and a.at - first.at >= min_interval
        and last.at - a.at >= min_interval
    ]
    if not middle:
        return [first, last]
    if len(middle) == 1:
        return _straighten([first, middle[0], last], threshold)

    if middle[-1].at - middle[0].at < min_interval:
        # room for a single point: take the one nearest the segment midpoint
        midpoint = (first.at + last.at) / 2
        chosen = min(middle, key=lambda a: abs(a.at - midpoint))
        return _straighten([first, chosen, last], threshold)

    return [first, *_thin_segment(middle, max_speed, min_interval, threshold), last]


def _merge_slow_neighbours(actions: List[Action], slow_speed: float) -> List[Action]:
    index = 1
    while index < len(actions):
        prev, current = actions[index - 1], actions[index]
        if not (peak_kind_at(actions, index) or peak_kind_at(actions, index - 1)):
            index += 1
            continue
        if abs(speed_between(prev, current)) > slow_speed:
            index += 1
            continue
        prev.pos = lerp(prev.pos, current.pos, 0.5)
        prev.at = lerp(prev.at, current.at, 0.5)
        del actions[index]
    return actions


def device_smooth(
    actions: Sequence[Action],
    max_speed: float = DEVICE_MAX_SPEED,
    min_interval: float = DEVICE_MIN_INTERVAL,
    straight_threshold: float = DEVICE_STRAIGHT_THRESHOLD,
) -> List[Action]:
    """
    Reshape a curve so a stroker with limited speed and update rate can follow it.

    Actions with a non-finite time or position are dropped and logged.
    Steps: round positions; split at peaks; inside each segment drop points
    too close to its ends or that would force a half above *max_speed*;
    merge slow neighbouring points; limit peak speed; simplify straight runs;
    round times and positions.
    """
    work = [a for a in clone_actions(actions) if math.isfinite(a.at) and math.isfinite(a.pos)]
    if len(work) != len(actions):
        logger.warning("Dropped %d action(s) with non-finite time or position", len(actions) - len(work))
    if len(work) < 2:
        return work

    for action in work:
        action.pos = round_half_up(action.pos)

    thinned = [
        _thin_segment(segment, max_speed, min_interval, straight_threshold)
        for segment in split_to_segments(work)
    ]
    merged = _merge_slow_neighbours(connect_segments(thinned), SLOW_MERGE_SPEED)

    limited = limit_peak_speed(merged, max_speed)
    simplified = simplify_linear_curve(limited.actions, straight_threshold)

    for action in simplified:
        action.at = round_half_up(action.at)
        action.pos = round_half_up(action.pos)
    return simplified


def smooth_curve(
    actions: Sequence[Action],
    time_radius: float = 50,
    iterations: int = 1,
    preserve_ends: bool = False,
) -> List[Action]:
    """
    Weighted moving average over up to five neighbours on each side.

    Weights fall off linearly with time distance and reach zero at
    *time_radius* milliseconds.
    """
    work = clone_actions(actions)
    if len(work) < 2 or time_radius <= 0:
        return work
    positions = [a.pos for a in work]
    last = len(work) - 1
    for _ in range(iterations):
        for i, action in enumerate(work):
            if preserve_ends and i in (0, last):
                continue
            total = 0.0
            weights = 0.0
            for j in range(max(0, i - SMOOTH_NEIGHBOURS), min(last, i + SMOOTH_NEIGHBOURS) + 1):
                weight = max(0.0, time_radius - abs(work[j].at - action.at))
                total += positions[j] * weight
                weights += weight
            positions[i] = total / weights
            action.pos = positions[i]
    return work


def moving_average(actions: Sequence[Action], window: int = 3) -> List[Action]:
    """Plain moving average of positions over *window* consecutive actions."""
    work = clone_actions(actions)
    if window < 2 or len(work) < 2:
        return work
    pos = np.array([a.pos for a in actions], dtype=float)
    for i, action in enumerate(work):
        start = max(0, i - window // 2)
        end = min(len(pos), start + window)
        action.pos = float(np.mean(pos[start:end]))
    return work


__all__ = [
    "DEVICE_MAX_SPEED",
    "DEVICE_MIN_INTERVAL",
    "DEVICE_STRAIGHT_THRESHOLD",
    "PeakSpeedLimit",
    "device_smooth",
    "limit_peak_speed",
    "moving_average",
    "smooth_curve",
]
