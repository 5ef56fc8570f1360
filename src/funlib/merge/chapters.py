"""Cut scripts into chapters."""

from __future__ import annotations

from typing import Dict, List, Sequence

from ..core.models import Action, Chapter, Script, clerp_at, make_channel

SLICE_MODES = ("lerp", "empty")


def slice_actions(actions: Sequence[Action], start_at: float, end_at: float, mode: str = "lerp") -> List[Action]:
    """
    Copy the actions inside ``[start_at, end_at]``.

    With ``mode="lerp"`` interpolated actions are added on both borders when
    no action sits exactly there; ``mode="empty"`` keeps only what is inside.
    """
    if mode not in SLICE_MODES:
        raise ValueError(f"mode must be one of {SLICE_MODES}, got {mode!r}")
    if not actions:
        return []
    inside = [Action(a.at, a.pos) for a in actions if start_at <= a.at <= end_at]
    if mode == "lerp":
        if not inside or inside[0].at != start_at:
            inside.insert(0, Action(start_at, clerp_at(actions, start_at)))
        if inside[-1].at != end_at:
            inside.append(Action(end_at, clerp_at(actions, end_at)))
    return inside


def extract_chapter(script: Script, chapter: Chapter, mode: str = "lerp") -> Script:
    """Return a new script holding only *chapter*, shifted to start at 0."""
    start, end = chapter.start_at, chapter.end_at

    def _cut(actions: Sequence[Action]) -> List[Action]:
        sliced = slice_actions(actions, start, end, mode)
        for action in sliced:
            action.at -= start
        return sliced

    local = Chapter(name=chapter.name)
    local.start_at = 0
    local.end_at = end - start

    metadata = script.metadata.clone()
    metadata.chapters = [local]
    metadata.duration = (end - start) / 1000

    result = Script(actions=_cut(script.actions), metadata=metadata, channel=script.channel)
    for name, channel in script.channels.items():
        channel_meta = channel.metadata.clone() if channel.metadata is not None else None
        result.channels[name] = make_channel(name, _cut(channel.actions), channel_meta)
    return result


def split_by_chapters(script: Script, mode: str = "lerp") -> Dict[str, Script]:
    """One extracted script per chapter in ``script.metadata.chapters``, keyed by name."""
    return {chapter.name: extract_chapter(script, chapter, mode) for chapter in script.metadata.chapters}


__all__ = ["SLICE_MODES", "extract_chapter", "slice_actions", "split_by_chapters"]
