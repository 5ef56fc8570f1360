"""In-memory model of a multi-channel stroke script.

A :class:`Script` owns one root action list (normally the ``stroke`` channel)
plus at most one :class:`Channel` per secondary channel name. Secondary
channels carry no channel map of their own, so nesting never goes deeper than
one level. Wire-format mapping lives in :mod:`funlib.dataio.formats`; this
module only holds the data and the operations that keep it consistent.
"""

from __future__ import annotations

import bisect
import copy
import logging
import math
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .channels import (
    PRIMARY_CHANNEL,
    canonical_channel,
    channel_sort_key,
    channel_to_axis,
    is_axis_like,
)
from .timespans import ms_to_timespan, round_half_up, timespan_to_ms

if TYPE_CHECKING:
    from ..analysis.features import ChannelStats

logger = logging.getLogger(__name__)

FUNSCRIPT_EXTENSION = ".funscript"
DEFAULT_POS = 50.0

# A metadata duration this many times longer than the actions is taken to be in ms.
DURATION_UNIT_RATIO = 500
# Metadata durations over this factor of the actions are not trusted.
DURATION_TRUST_RATIO = 3


@dataclass(slots=True)
class Action:
    """Single waypoint: ``at`` in milliseconds, ``pos`` in percent."""

    at: float
    pos: float

    def copy(self) -> Action:
        return Action(self.at, self.pos)


def clone_actions(actions: Iterable[Action]) -> List[Action]:
    return [Action(a.at, a.pos) for a in actions]


def speed_between(a: Optional[Action], b: Optional[Action]) -> float:
    """Signed speed from *a* to *b* in position units per second."""
    if a is None or b is None or a.at == b.at:
        return 0.0
    return (b.pos - a.pos) / (b.at - a.at) * 1000.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def lerp(left: float, right: float, t: float) -> float:
    return left * (1 - t) + right * t


def unlerp(left: float, right: float, value: float) -> float:
    if left == right:
        return 0.5
    return (value - left) / (right - left)


def clerp_at(actions: Sequence[Action], at: float) -> float:
    """
    Position at time *at*, linearly interpolated between neighbours.

    Times before the first or after the last action hold that action's
    position; an empty list yields the neutral position 50.
    """
    if not actions:
        return DEFAULT_POS
    times = [a.at for a in actions]
    index = bisect.bisect_right(times, at)
    if index == 0:
        return actions[0].pos
    if index >= len(actions):
        return actions[-1].pos
    left, right = actions[index - 1], actions[index]
    return lerp(left.pos, right.pos, clamp(unlerp(left.at, right.at, at), 0.0, 1.0))


# ---------------------------------------------------------------- chapters
@dataclass
class Chapter:
    """Named time range stored as ``HH:MM:SS.mmm`` timespans."""

    start_time: str = "00:00:00.000"
    end_time: str = "00:00:00.000"
    name: str = ""

    @property
    def start_at(self) -> int:
        return timespan_to_ms(self.start_time)

    @start_at.setter
    def start_at(self, value: float) -> None:
        self.start_time = ms_to_timespan(value)

    @property
    def end_at(self) -> int:
        return timespan_to_ms(self.end_time)

    @end_at.setter
    def end_at(self, value: float) -> None:
        self.end_time = ms_to_timespan(value)

    @property
    def duration_ms(self) -> int:
        return self.end_at - self.start_at

    def clone(self) -> Chapter:
        return copy.deepcopy(self)


@dataclass
class TimelineChapter(Chapter):
    """Chapter placed on a timeline that replays the clip of the same name."""

    offset: float = 0
    loop: bool = True
    speed: float = 1


@dataclass
class ChapterClip(Chapter):
    """Reusable clip: actions relative to the clip start, per channel."""

    actions: List[Action] = field(default_factory=list)
    channels: Dict[str, List[Action]] = field(default_factory=dict)

    def channel_actions(self, channel: Optional[str] = None) -> List[Action]:
        if channel is None or canonical_channel(channel) == PRIMARY_CHANNEL:
            return self.actions
        return self.channels.get(canonical_channel(channel), [])

    def clone(self) -> ChapterClip:
        return ChapterClip(
            start_time=self.start_time,
            end_time=self.end_time,
            name=self.name,
            actions=clone_actions(self.actions),
            channels={name: clone_actions(acts) for name, acts in self.channels.items()},
        )


@dataclass
class Bookmark:
    name: str = ""
    time: str = "00:00:00.000"

    @property
    def at(self) -> int:
        return timespan_to_ms(self.time)

    @at.setter
    def at(self, value: float) -> None:
        self.time = ms_to_timespan(value)


# ---------------------------------------------------------------- metadata
@dataclass
class Metadata:
    """Descriptive fields plus chapters and bookmarks; unknown keys go to ``extra``."""

    title: str = ""
    creator: str = ""
    description: str = ""
    duration: float = 0
    chapters: List[Chapter] = field(default_factory=list)
    bookmarks: List[Bookmark] = field(default_factory=list)
    license: str = ""
    notes: str = ""
    performers: List[Any] = field(default_factory=list)
    script_url: str = ""
    tags: List[Any] = field(default_factory=list)
    type: str = "basic"
    video_url: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def rescale_duration(self, actions_duration: float) -> None:
        """Convert a duration that was evidently written in milliseconds to seconds."""
        if (
            self.duration > 3600
            and actions_duration > 0
            and self.duration > DURATION_UNIT_RATIO * actions_duration
        ):
            logger.debug(
                "Metadata duration %s looks like milliseconds (actions end at %ss); rescaling",
                self.duration,
                actions_duration,
            )
            self.duration /= 1000

    def is_empty(self) -> bool:
        return self == Metadata()

    def clone(self) -> Metadata:
        return copy.deepcopy(self)


# ---------------------------------------------------------------- file identity
@dataclass
class FileIdentity:
    """
    ``dir/title[.channel_suffix].ext`` split into parts.

    ``merged_files`` records the source files a merged script was built from.
    """

    directory: str
    title: str
    channel_suffix: Optional[str] = None
    extension: str = FUNSCRIPT_EXTENSION
    merged_files: List[FileIdentity] = field(default_factory=list)

    @classmethod
    def from_path(cls, path: str | Path) -> FileIdentity:
        directory, basename = os.path.split(str(path))
        parts = basename.split(".")
        extension = ""
        if len(parts) > 1 and parts[-1].lower() == FUNSCRIPT_EXTENSION[1:]:
            extension = "." + parts.pop()
        suffix = None
        if len(parts) > 1 and (is_axis_like(parts[-1]) or parts[-1] == "singleaxis"):
            suffix = parts.pop()
        return cls(directory=directory, title=".".join(parts), channel_suffix=suffix, extension=extension)

    @property
    def path(self) -> str:
        name = self.title
        if self.channel_suffix:
            name = f"{name}.{self.channel_suffix}"
        return os.path.join(self.directory, f"{name}{self.extension}")

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def group_key(self) -> Tuple[str, str]:
        return (self.directory, self.title)

    @property
    def channel(self) -> Optional[str]:
        """Canonical channel for suffixed files, ``None`` for primary files."""
        if not self.channel_suffix or canonical_channel(self.channel_suffix) == PRIMARY_CHANNEL:
            return None
        return canonical_channel(self.channel_suffix)

    def primary(self) -> FileIdentity:
        """Identity of the un-suffixed file in the same group."""
        return FileIdentity(self.directory, self.title, None, self.extension or FUNSCRIPT_EXTENSION)

    def clone(self) -> FileIdentity:
        return FileIdentity(
            directory=self.directory,
            title=self.title,
            channel_suffix=self.channel_suffix,
            extension=self.extension,
            merged_files=list(self.merged_files),
        )


# ---------------------------------------------------------------- channels
class ChannelKind(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass
class Channel:
    """One named action list. Built through :func:`make_channel`."""

    name: str
    actions: List[Action] = field(default_factory=list)
    metadata: Optional[Metadata] = None
    kind: ChannelKind = ChannelKind.SECONDARY

    @property
    def axis(self) -> Optional[str]:
        return channel_to_axis(self.name)

    @property
    def is_primary(self) -> bool:
        return self.kind is ChannelKind.PRIMARY

    def clone(self) -> Channel:
        return Channel(
            name=self.name,
            actions=clone_actions(self.actions),
            metadata=self.metadata.clone() if self.metadata is not None else None,
            kind=self.kind,
        )


def make_channel(
    name: Optional[str],
    actions: Iterable[Action] = (),
    metadata: Optional[Metadata] = None,
) -> Channel:
    """Create a channel record with a canonical name and the matching kind."""
    key = canonical_channel(name)
    kind = ChannelKind.PRIMARY if key == PRIMARY_CHANNEL else ChannelKind.SECONDARY
    return Channel(name=key, actions=list(actions), metadata=metadata, kind=kind)


# ---------------------------------------------------------------- defects
@dataclass(frozen=True)
class DataDefect:
    """A value normalisation could not faithfully repair (or a scan found)."""

    channel: str
    index: int
    field: str
    value: Any
    kind: str


def _scan_defects(channel: str, actions: Sequence[Action]) -> List[DataDefect]:
    found: List[DataDefect] = []
    prev_at: Optional[float] = None
    for index, action in enumerate(actions):
        for name in ("at", "pos"):
            value = getattr(action, name)
            if not math.isfinite(value):
                found.append(DataDefect(channel, index, name, value, "non-finite"))
        if math.isfinite(action.at):
            if action.at < 0:
                found.append(DataDefect(channel, index, "at", action.at, "negative-time"))
            if prev_at is not None and action.at <= prev_at:
                found.append(DataDefect(channel, index, "at", action.at, "out-of-order"))
            prev_at = action.at
        if math.isfinite(action.pos) and not 0 <= action.pos <= 100:
            found.append(DataDefect(channel, index, "pos", action.pos, "out-of-range"))
    return found


def _normalize_actions(channel: str, actions: List[Action], defects: List[DataDefect]) -> List[Action]:
    for index, action in enumerate(actions):
        if not math.isfinite(action.at):
            defects.append(DataDefect(channel, index, "at", action.at, "non-finite"))
            logger.warning("Channel %s action %d has non-finite time %r; using 0", channel, index, action.at)
            action.at = 0
        if not math.isfinite(action.pos):
            defects.append(DataDefect(channel, index, "pos", action.pos, "non-finite"))
            logger.warning("Channel %s action %d has non-finite position %r; using 0", channel, index, action.pos)
            action.pos = 0
        action.at = round_half_up(action.at)
        action.pos = clamp(round_half_up(action.pos), 0, 100)

    ordered = sorted(actions, key=lambda a: a.at)
    unique: List[Action] = []
    for action in ordered:
        if unique and unique[-1].at == action.at:
            unique[-1] = action
        else:
            unique.append(action)

    negative = [a for a in unique if a.at < 0]
    if not negative:
        return unique
    kept = [a for a in unique if a.at >= 0]
    if not kept or kept[0].at > 0:
        anchor = negative[-1]
        anchor.at = 0
        kept.insert(0, anchor)
    logger.debug("Channel %s: dropped %d negative-time action(s)", channel, len(unique) - len(kept))
    return kept


# ---------------------------------------------------------------- script
@dataclass
class Script:
    """
    A complete script: root actions, secondary channels, metadata, file identity.

    ``channel`` names the root action list. It is ``stroke`` for ordinary
    scripts and the suffix channel for a lone secondary file such as
    ``video.roll.funscript``.
    """

    actions: List[Action] = field(default_factory=list)
    channels: Dict[str, Channel] = field(default_factory=dict)
    metadata: Metadata = field(default_factory=Metadata)
    file: Optional[FileIdentity] = None
    channel: str = PRIMARY_CHANNEL
    clips: Dict[str, ChapterClip] = field(default_factory=dict)
    inverted: Optional[bool] = None
    range: Optional[float] = None
    defects: List[DataDefect] = field(default_factory=list)

    # ------------------------------------------------------------ identity
    @property
    def is_primary(self) -> bool:
        return canonical_channel(self.channel) == PRIMARY_CHANNEL

    @property
    def is_multi_channel(self) -> bool:
        return bool(self.channels)

    def root_channel(self) -> Channel:
        """The root list as a channel record (shares the action list)."""
        record = make_channel(self.channel, metadata=None)
        record.actions = self.actions
        return record

    def all_channels(self) -> List[Channel]:
        """Root plus secondary channels, in axis order. Action lists are shared."""
        records = [self.root_channel(), *self.channels.values()]
        return sorted(records, key=lambda ch: channel_sort_key(ch.name))

    def get_channel(self, name: Optional[str]) -> Optional[Channel]:
        key = canonical_channel(name)
        if key == canonical_channel(self.channel):
            return self.root_channel()
        return self.channels.get(key)

    def set_channel(self, channel: Channel) -> None:
        """Attach or replace a secondary channel."""
        key = canonical_channel(channel.name)
        if key == canonical_channel(self.channel):
            self.actions = channel.actions
            return
        channel.name = key
        self.channels[key] = channel
        self.channels = {k: self.channels[k] for k in sorted(self.channels, key=channel_sort_key)}

    # ------------------------------------------------------------ durations
    @property
    def actions_duration(self) -> float:
        """Seconds until the last action over every channel."""
        last = [acts[-1].at for acts in self._action_lists() if acts]
        return max(last, default=0) / 1000

    @property
    def duration(self) -> float:
        if self.metadata.duration:
            return self.metadata.duration
        return self.actions_duration

    @property
    def actual_duration(self) -> float:
        """
        Best-guess length in seconds.

        The metadata duration is used only when it is present, not shorter than
        the actions, and not more than three times longer than them.
        """
        metadata_duration = self.metadata.duration
        actions_duration = self.actions_duration
        if not metadata_duration:
            return actions_duration
        if actions_duration > metadata_duration:
            return actions_duration
        if actions_duration * DURATION_TRUST_RATIO < metadata_duration:
            return actions_duration
        return metadata_duration

    def _action_lists(self) -> List[List[Action]]:
        return [self.actions, *(ch.actions for ch in self.channels.values())]

    # ------------------------------------------------------------ normalisation
    def normalize(self) -> Script:
        """
        Make every channel well-formed, in place.

        Times and positions are rounded, positions clamped to ``[0, 100]``,
        actions sorted with the later of two equal-time actions kept, and
        negative times dropped (the last one is pulled to 0 when nothing sits
        there). Non-finite values become 0 and are listed in ``defects``.
        """
        defects: List[DataDefect] = []
        self.actions = _normalize_actions(self.channel, self.actions, defects)
        for name, channel in self.channels.items():
            channel.actions = _normalize_actions(name, channel.actions, defects)
        self.defects = defects

        duration = math.ceil(self.actual_duration)
        self.metadata.duration = duration
        for channel in self.channels.values():
            if channel.metadata is not None:
                channel.metadata.duration = duration
        return self

    def find_defects(self) -> List[DataDefect]:
        """Report integrity problems without changing anything."""
        found = _scan_defects(self.channel, self.actions)
        for name, channel in self.channels.items():
            found.extend(_scan_defects(name, channel.actions))
        return found

    # ------------------------------------------------------------ lookups
    def pos_at(self, at: float, channel: Optional[str] = None) -> float:
        record = self.get_channel(channel or self.channel)
        return clerp_at(record.actions if record else [], at)

    # ------------------------------------------------------------ derived
    def to_stats(self) -> ChannelStats:
        """Stats of the root channel over the script's actual duration."""
        from ..analysis.features import channel_stats

        return channel_stats(self.actions, self.actual_duration)

    def channel_stats(self, name: str) -> ChannelStats:
        from ..analysis.features import channel_stats

        record = self.get_channel(name)
        if record is None:
            raise KeyError(f"no channel {name!r}")
        return channel_stats(record.actions, self.actual_duration)

    def to_text(self, version: str = "2.0", **options: Any) -> str:
        from ..dataio.formats import serialize_script

        return serialize_script(self, version, **options)

    # ------------------------------------------------------------ copying
    def clone(self) -> Script:
        return Script(
            actions=clone_actions(self.actions),
            channels={name: ch.clone() for name, ch in self.channels.items()},
            metadata=self.metadata.clone(),
            file=self.file.clone() if self.file is not None else None,
            channel=self.channel,
            clips={name: clip.clone() for name, clip in self.clips.items()},
            inverted=self.inverted,
            range=self.range,
            defects=list(self.defects),
        )


__all__ = [
    "Action",
    "Bookmark",
    "Channel",
    "ChannelKind",
    "Chapter",
    "ChapterClip",
    "DataDefect",
    "FileIdentity",
    "Metadata",
    "Script",
    "TimelineChapter",
    "clamp",
    "clerp_at",
    "clone_actions",
    "lerp",
    "make_channel",
    "speed_between",
    "unlerp",
]
