"""Combine per-channel script files into multi-channel scripts.

Files are grouped by ``(directory, title)`` of their file identity, so
``video.funscript``, ``video.roll.funscript`` and ``video.pitch.funscript``
become one script with ``roll`` and ``pitch`` channels.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..core.channels import PRIMARY_CHANNEL, canonical_channel, channel_sort_key
from ..core.models import Script, clone_actions, make_channel
from ..errors import MergeError

logger = logging.getLogger(__name__)

GroupKey = Optional[Tuple[str, str]]


class MissingPrimaryPolicy(str, Enum):
    """What to do with a group of secondary files that has no stroke file."""

    ERROR = "error"
    EMPTY_BASE = "empty-base"
    LEAVE = "leave"


@dataclass(slots=True)
class MergeOptions:
    missing_primary: MissingPrimaryPolicy = MissingPrimaryPolicy.ERROR
    combine_single_secondary_channel: bool = False

    def __post_init__(self) -> None:
        self.missing_primary = MissingPrimaryPolicy(self.missing_primary)


def _group_label(key: GroupKey) -> str:
    if key is None:
        return "<unnamed>"
    directory, title = key
    return f"{directory}/{title}" if directory else title


def _group_key(script: Script) -> GroupKey:
    return script.file.group_key if script.file is not None else None


def _check_unique(key: GroupKey, members: List[Script]) -> None:
    seen: Dict[str, Script] = {}
    for script in members:
        channel = canonical_channel(script.channel)
        if channel in seen:
            label = _group_label(key)
            raise MergeError(
                f"merge group {label!r} has more than one script for channel {channel!r}",
                group=label,
                channel=channel,
            )
        seen[channel] = script


def _attach(base: Script, secondaries: Iterable[Script]) -> Script:
    for script in sorted(secondaries, key=lambda s: channel_sort_key(s.channel)):
        metadata = None
        if not script.metadata.is_empty() and script.metadata != base.metadata:
            metadata = script.metadata.clone()
        base.set_channel(make_channel(script.channel, clone_actions(script.actions), metadata))
    return base


def _empty_base(first: Script) -> Script:
    file = first.file.primary() if first.file is not None else None
    return Script(actions=[], metadata=first.metadata.clone(), file=file, channel=PRIMARY_CHANNEL)


def _record_sources(base: Script, members: List[Script]) -> None:
    if base.file is None:
        return
    ordered = sorted(members, key=lambda s: channel_sort_key(s.channel))
    base.file.merged_files = [s.file.clone() for s in ordered if s.file is not None]


def _merge_group(key: GroupKey, members: List[Script], options: MergeOptions) -> List[Script]:
    _check_unique(key, members)
    primary = next((s for s in members if s.is_primary), None)

    if len(members) == 1:
        script = members[0]
        if primary is not None or not options.combine_single_secondary_channel:
            return [script]
        base = _attach(_empty_base(script), members)
        _record_sources(base, members)
        return [base]

    secondaries = [s for s in members if s is not primary]
    if primary is not None:
        base = _attach(primary.clone(), secondaries)
    elif options.missing_primary is MissingPrimaryPolicy.EMPTY_BASE:
        logger.info("Group %s has no stroke script; merging onto an empty base", _group_label(key))
        base = _attach(_empty_base(secondaries[0]), secondaries)
    elif options.missing_primary is MissingPrimaryPolicy.LEAVE:
        logger.info("Group %s has no stroke script; leaving %d file(s) unmerged", _group_label(key), len(members))
        return list(members)
    else:
        label = _group_label(key)
        raise MergeError(
            f"merge group {label!r} has no base script (no {PRIMARY_CHANNEL} channel)",
            group=label,
            channel=PRIMARY_CHANNEL,
        )

    _record_sources(base, members)
    logger.info(
        "Merged %s: %s",
        _group_label(key),
        ", ".join(canonical_channel(s.channel) for s in sorted(members, key=lambda s: channel_sort_key(s.channel))),
    )
    return [base]


def merge_multi_axis(scripts: Iterable[Script], options: Optional[MergeOptions] = None) -> List[Script]:
    """
    Merge single-channel scripts that share a file group.

    Scripts that already have secondary channels pass through untouched.
    The output keeps the order in which scripts (or their groups) first
    appear, so merging an already merged list returns it unchanged.

    Raises
    ------
    MergeError
        When two scripts in a group resolve to the same channel, or a group
        has no stroke script and the policy is ``error``.
    """
    options = options or MergeOptions()
    groups: "OrderedDict[GroupKey, List[Script]]" = OrderedDict()
    order: List[Union[Script, Tuple[str, GroupKey]]] = []

    for script in scripts:
        if script.is_multi_channel:
            order.append(script)
            continue
        key = _group_key(script)
        if key not in groups:
            groups[key] = []
            order.append(("group", key))
        groups[key].append(script)

    merged: List[Script] = []
    for entry in order:
        if isinstance(entry, Script):
            merged.append(entry)
        else:
            key = entry[1]
            merged.extend(_merge_group(key, groups[key], options))
    return merged


__all__ = ["MergeOptions", "MissingPrimaryPolicy", "merge_multi_axis"]
