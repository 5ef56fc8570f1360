"""Channel identity: TCode axis ids and their semantic names."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

PRIMARY_CHANNEL = "stroke"
PRIMARY_AXIS = "L0"

# Fixed pair table; its order is also the canonical channel order.
AXIS_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("L0", "stroke"),
    ("L1", "surge"),
    ("L2", "sway"),
    ("R0", "twist"),
    ("R1", "roll"),
    ("R2", "pitch"),
    ("A0", "valve"),
    ("A1", "suck"),
    ("A2", "lube"),
    ("V0", "vibe"),
)

AXIS_IDS: Tuple[str, ...] = (
    "L0", "L1", "L2",
    "R0", "R1", "R2",
    "A0", "A1", "A2",
    "V0", "V1", "V2",
)

AXIS_TO_NAME: Dict[str, str] = dict(AXIS_PAIRS)
NAME_TO_AXIS: Dict[str, str] = {name: axis for axis, name in AXIS_PAIRS}

_TCODE_AXIS_RE = re.compile(r"^[LRVA]\d$")
_SINGLE_AXIS = "singleaxis"


def is_tcode_axis(value: Optional[str]) -> bool:
    """Return True for two-character TCode axis ids such as ``L0`` or ``V2``."""
    return bool(value) and _TCODE_AXIS_RE.match(value) is not None


def is_axis_like(value: Optional[str]) -> bool:
    """Return True when *value* names a known axis id or semantic channel."""
    return bool(value) and (value in AXIS_IDS or value in NAME_TO_AXIS)


def axis_to_name(axis: str) -> str:
    if axis in AXIS_TO_NAME:
        return AXIS_TO_NAME[axis]
    raise ValueError(f"axis {axis!r} has no channel name")


def name_to_axis(name: str) -> str:
    if name in NAME_TO_AXIS:
        return NAME_TO_AXIS[name]
    raise ValueError(f"channel {name!r} is not a known axis")


def channel_to_axis(channel: Optional[str]) -> Optional[str]:
    """
    Resolve a channel name or axis id to a TCode axis id.

    Empty input and ``singleaxis`` mean the primary axis. Names that do not
    correspond to a TCode axis return ``None``.
    """
    if not channel or channel == _SINGLE_AXIS:
        return PRIMARY_AXIS
    if is_tcode_axis(channel):
        return channel
    return NAME_TO_AXIS.get(channel)


def canonical_channel(channel: Optional[str]) -> str:
    """
    Return the key a channel is stored under inside a script.

    Axis ids with a semantic name collapse onto that name (``R1`` -> ``roll``);
    other ids and free-form names are kept as given.
    """
    if not channel or channel == _SINGLE_AXIS:
        return PRIMARY_CHANNEL
    if channel in AXIS_TO_NAME:
        return AXIS_TO_NAME[channel]
    return channel


def is_primary(channel: Optional[str]) -> bool:
    return canonical_channel(channel) == PRIMARY_CHANNEL


def channel_sort_key(channel: Optional[str]) -> Tuple[int, str]:
    """Order channels by axis table position; unknown names sort after, alphabetically."""
    axis = channel_to_axis(channel) if channel else None
    if axis in AXIS_IDS:
        return (AXIS_IDS.index(axis), "")
    if channel:
        return (len(AXIS_IDS), channel)
    return (len(AXIS_IDS) + 1, "")


def sort_channels(channels: List[str]) -> List[str]:
    return sorted(channels, key=channel_sort_key)


__all__ = [
    "PRIMARY_CHANNEL",
    "PRIMARY_AXIS",
    "AXIS_PAIRS",
    "AXIS_IDS",
    "AXIS_TO_NAME",
    "NAME_TO_AXIS",
    "is_tcode_axis",
    "is_axis_like",
    "axis_to_name",
    "name_to_axis",
    "channel_to_axis",
    "canonical_channel",
    "is_primary",
    "channel_sort_key",
    "sort_channels",
]
