"""Drop points that lie on (nearly) straight lines."""

from __future__ import annotations

from typing import List, Sequence

from ..core.models import Action, clone_actions
from .peaks import connect_segments, split_to_segments


def line_deviation(actions: Sequence[Action]) -> float:
    """Largest vertical distance of an interior point from the first-to-last line."""
    if len(actions) <= 2:
        return 0.0
    first, last = actions[0], actions[-1]
    span = last.at - first.at
    worst = 0.0
    for action in actions[1:-1]:
        t = (action.at - first.at) / span if span else 0.5
        expected = first.pos + (last.pos - first.pos) * t
        worst = max(worst, abs(action.pos - expected))
    return worst


def _simplify_segment(segment: List[Action], threshold: float) -> List[Action]:
    if line_deviation(segment) <= threshold:
        return [segment[0], segment[-1]]

    result = [segment[0]]
    start = 0
    last_index = len(segment) - 1
    while start < last_index:
        end = start + 2
        while end <= last_index and line_deviation(segment[start : end + 1]) <= threshold:
            end += 1
        end = max(start + 1, end - 1)
        result.append(segment[end])
        start = end
    return result


def simplify_linear_curve(actions: Sequence[Action], threshold: float) -> List[Action]:
    """
    Remove interior points that deviate less than *threshold* from a line.

    Peaks are never removed. Each segment between peaks is greedily covered
    by the longest runs whose deviation stays within *threshold*.
    """
    work = clone_actions(actions)
    if len(work) <= 2:
        return work
    segments = [_simplify_segment(segment, threshold) for segment in split_to_segments(work)]
    return connect_segments(segments)


__all__ = ["line_deviation", "simplify_linear_curve"]
