"""Speed, peak classification and segmentation of action curves."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from ..core.models import Action, clone_actions


def _columns(actions: Sequence[Action]) -> tuple[np.ndarray, np.ndarray]:
    at = np.fromiter((a.at for a in actions), dtype=float, count=len(actions))
    pos = np.fromiter((a.pos for a in actions), dtype=float, count=len(actions))
    return at, pos


def speeds(actions: Sequence[Action]) -> np.ndarray:
    """
    Signed speed between consecutive actions.

    Parameters
    ----------
    actions:
        Action list ordered by time.

    Returns
    -------
    numpy.ndarray
        ``len(actions) - 1`` values in position units per second; pairs
        sharing a timestamp have speed 0.
    """
    if len(actions) < 2:
        return np.zeros(0)
    at, pos = _columns(actions)
    dt = np.diff(at)
    dp = np.diff(pos)
    out = np.zeros_like(dt)
    np.divide(dp * 1000.0, dt, out=out, where=dt != 0)
    return out


def peak_kinds(actions: Sequence[Action]) -> np.ndarray:
    """
    Classify every action as crest (+1), trough (-1) or interior (0).

    The first action is always +1 and the last always -1, so curve ends
    stay anchored. An interior action is a peak when the sign of its
    incoming speed differs from that of its outgoing speed.
    """
    n = len(actions)
    if n == 0:
        return np.zeros(0, dtype=int)
    if n == 1:
        return np.ones(1, dtype=int)
    v = speeds(actions)
    speed_to = np.concatenate(([0.0], v))
    speed_from = np.concatenate((v, [0.0]))
    kinds = np.where(speed_to > speed_from, 1, np.where(speed_to < speed_from, -1, 0))
    kinds[np.sign(speed_to) == np.sign(speed_from)] = 0
    kinds[0] = 1
    kinds[-1] = -1
    return kinds.astype(int)


def peak_kind_at(actions: Sequence[Action], index: int) -> int:
    """Peak kind of one action, judged against its current neighbours."""
    lo = max(0, index - 1)
    return int(peak_kinds(actions[lo : index + 2])[index - lo])


def actions_to_zigzag(actions: Sequence[Action]) -> List[Action]:
    """Copies of the peaks only."""
    kinds = peak_kinds(actions)
    return clone_actions(a for a, kind in zip(actions, kinds) if kind != 0)


def split_to_segments(actions: Sequence[Action]) -> List[List[Action]]:
    """
    Runs of actions from one peak to the next, both ends included.

    Neighbouring segments share their boundary action object.
    """
    kinds = peak_kinds(actions)
    segments: List[List[Action]] = []
    previous = -1
    for index, kind in enumerate(kinds):
        if kind == 0:
            continue
        if previous != -1:
            segments.append(list(actions[previous : index + 1]))
        previous = index
    return segments


def connect_segments(segments: Sequence[Sequence[Action]]) -> List[Action]:
    """Flatten segments, dropping the shared boundary objects."""
    joined: List[Action] = []
    for segment in segments:
        for action in segment:
            if joined and joined[-1] is action:
                continue
            joined.append(action)
    return joined


__all__ = [
    "actions_to_zigzag",
    "connect_segments",
    "peak_kind_at",
    "peak_kinds",
    "speeds",
    "split_to_segments",
]
