"""Timeline reconstruction from reusable chapter clips.

A timeline script keeps its source material in ``script.clips`` (clip name ->
:class:`~funlib.core.ChapterClip`, actions relative to the clip start) and
its arrangement in ``script.metadata.chapters`` as
:class:`~funlib.core.TimelineChapter` entries. Each timeline chapter replays
the clip with the same name from ``offset``, optionally looped, at
``speed``, inside the half-open window ``[start_at, end_at)``.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence, Set, Union

from ..core.channels import channel_sort_key
from ..core.models import (
    Action,
    Chapter,
    ChapterClip,
    Script,
    TimelineChapter,
    make_channel,
)
from ..errors import TimelineError
from .chapters import slice_actions

logger = logging.getLogger(__name__)


def as_timeline_chapter(chapter: Chapter) -> TimelineChapter:
    """Copy *chapter* as a timeline chapter (default offset, loop and speed)."""
    if isinstance(chapter, TimelineChapter):
        return TimelineChapter(
            start_time=chapter.start_time,
            end_time=chapter.end_time,
            name=chapter.name,
            offset=chapter.offset,
            loop=chapter.loop,
            speed=chapter.speed,
        )
    return TimelineChapter(start_time=chapter.start_time, end_time=chapter.end_time, name=chapter.name)


def render_clip(clip: ChapterClip, placement: TimelineChapter, channel: Optional[str] = None) -> List[Action]:
    """
    Actions produced by replaying *clip* at *placement*.

    Clip time ``t`` lands at ``start_at + (t - offset + k * clip_duration) / speed``
    for loop ``k``; only results inside ``[start_at, end_at)`` are kept.
    """
    actions = clip.channel_actions(channel)
    if not actions:
        return []
    start, end = placement.start_at, placement.end_at
    speed = placement.speed or 1
    clip_duration = clip.duration_ms

    loops = 1
    if placement.loop and clip_duration > 0:
        covered = (end - start) * speed + max(placement.offset, 0)
        loops = 1 + math.ceil(covered / clip_duration)

    rendered: List[Action] = []
    for loop in range(loops):
        for action in actions:
            at = start + (action.at - placement.offset + loop * clip_duration) / speed
            if start <= at < end:
                rendered.append(Action(at, action.pos))
    return rendered


def _clip_for(script: Script, chapter: Chapter) -> ChapterClip:
    clip = script.clips.get(chapter.name)
    if clip is None:
        raise TimelineError(f"timeline chapter {chapter.name!r} has no clip")
    return clip


def _timeline_channels(script: Script) -> List[str]:
    names: Set[str] = set(script.channels)
    for clip in script.clips.values():
        names.update(name for name, actions in clip.channels.items() if actions)
    names.discard(script.channel)
    return sorted(names, key=channel_sort_key)


def _unique_times(actions: List[Action]) -> List[Action]:
    # clip seams can land two actions on the same time; the later one wins
    unique: List[Action] = []
    for action in actions:
        if unique and unique[-1].at == action.at:
            unique[-1] = action
        else:
            unique.append(action)
    return unique


def rebuild_actions(script: Script) -> Script:
    """
    Return a clone whose action lists are rendered from the timeline.

    Raises
    ------
    TimelineError
        If a timeline chapter names a clip that does not exist.
    """
    placements = [(as_timeline_chapter(c), _clip_for(script, c)) for c in script.metadata.chapters]
    result = script.clone()

    def _render(channel: Optional[str]) -> List[Action]:
        rendered: List[Action] = []
        for placement, clip in placements:
            rendered.extend(render_clip(clip, placement, channel))
        return _unique_times(sorted(rendered, key=lambda a: a.at))

    result.actions = _render(None)
    for name in _timeline_channels(script):
        existing = script.channels.get(name)
        metadata = existing.metadata.clone() if existing is not None and existing.metadata is not None else None
        result.set_channel(make_channel(name, _render(name), metadata))
    logger.debug("Rebuilt %d timeline chapter(s) into %d channel(s)", len(placements), 1 + len(result.channels))
    return result


def _sort_chapters(script: Script) -> None:
    script.metadata.chapters.sort(key=lambda c: c.start_at)


def add_timeline_chapter(script: Script, chapter: Chapter) -> TimelineChapter:
    """Insert a timeline chapter, keeping chapters ordered by start time."""
    placement = as_timeline_chapter(chapter)
    script.metadata.chapters.append(placement)
    _sort_chapters(script)
    return placement


def remove_timeline_chapter(script: Script, chapter: Union[str, Chapter]) -> Script:
    """Drop the first timeline chapter with the given name (no-op if absent)."""
    name = chapter if isinstance(chapter, str) else chapter.name
    for index, existing in enumerate(script.metadata.chapters):
        if existing.name == name:
            del script.metadata.chapters[index]
            break
    return script


def clear_timeline(script: Script, start_at: float, end_at: float) -> Script:
    """
    Remove ``[start_at, end_at)`` from the chapter timeline, in place.

    Chapters fully inside the range are dropped. A chapter straddling a
    border is cut; the part after ``end_at`` keeps playing from where it
    would have been, so its offset advances by ``(end_at - start) * speed``
    and wraps around the clip length for looping chapters. Remainders of zero
    length are discarded.
    """
    kept: List[TimelineChapter] = []
    for chapter in script.metadata.chapters:
        placement = as_timeline_chapter(chapter)
        if placement.end_at <= start_at or placement.start_at >= end_at:
            kept.append(placement)
            continue
        if start_at <= placement.start_at and placement.end_at <= end_at:
            continue

        if placement.start_at < start_at:
            head = as_timeline_chapter(placement)
            head.end_at = start_at
            kept.append(head)
        if placement.end_at > end_at:
            tail = as_timeline_chapter(placement)
            tail.offset += (end_at - placement.start_at) * (placement.speed or 1)
            tail.start_at = end_at
            clip = script.clips.get(placement.name)
            if placement.loop and clip is not None and clip.duration_ms > 0 and tail.offset > clip.duration_ms:
                tail.offset %= clip.duration_ms
            kept.append(tail)

    script.metadata.chapters = [c for c in kept if c.end_at > c.start_at]
    _sort_chapters(script)
    return script


def script_to_timeline(script: Script, chapters: Optional[Sequence[Chapter]] = None, mode: str = "lerp") -> Script:
    """
    Build a timeline script whose clips are *chapters* cut from *script*.

    Chapters default to ``script.metadata.chapters``. Each becomes a clip
    (actions shifted to start at 0) plus a timeline chapter at its original
    position.
    """
    chapters = list(chapters if chapters is not None else script.metadata.chapters)
    result = script.clone()
    result.clips = {}
    for chapter in chapters:
        start, end = chapter.start_at, chapter.end_at
        clip = ChapterClip(start_time=chapter.start_time, end_time=chapter.end_time, name=chapter.name)
        clip.actions = _shifted(slice_actions(script.actions, start, end, mode), start)
        for name, channel in script.channels.items():
            sliced = _shifted(slice_actions(channel.actions, start, end, mode), start)
            if sliced:
                clip.channels[name] = sliced
        result.clips[chapter.name] = clip
    result.metadata.chapters = [as_timeline_chapter(c) for c in chapters]
    _sort_chapters(result)
    return result


def _shifted(actions: Iterable[Action], start: float) -> List[Action]:
    return [Action(a.at - start, a.pos) for a in actions]


__all__ = [
    "add_timeline_chapter",
    "as_timeline_chapter",
    "clear_timeline",
    "rebuild_actions",
    "remove_timeline_chapter",
    "render_clip",
    "script_to_timeline",
]
