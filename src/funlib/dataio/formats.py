"""Parse and serialise the funscript wire formats.

Four shapes exist on disk:

``1.0``
    ``{metadata?, actions, inverted?, range?}`` with a single channel.
``1.1``
    1.0 plus ``axes: [{id, actions}]`` holding secondary channels by axis id.
``2.0``
    ``channels: {name: {actions, metadata?}}`` next to the root ``actions``.
``1.0-list``
    A JSON array of 1.0 documents; secondary entries name their ``channel``
    and the list is merged back into one script on parse.

Serialisation is byte-stable: parsing the output and serialising it again at
the same version produces identical text.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence

from ..core.channels import (
    PRIMARY_CHANNEL,
    canonical_channel,
    channel_sort_key,
    channel_to_axis,
    is_tcode_axis,
)
from ..core.models import (
    Action,
    Bookmark,
    Channel,
    Chapter,
    ChapterClip,
    FileIdentity,
    Metadata,
    Script,
    TimelineChapter,
    make_channel,
)
from ..errors import FormatError
from .json_text import DEFAULT_LINE_LENGTH, DEFAULT_MAX_PRECISION, dumps, format_json, round_number

logger = logging.getLogger(__name__)

VERSIONS = ("1.0", "1.1", "2.0", "1.0-list")
DEFAULT_VERSION = "2.0"

_METADATA_ORDER = (
    "title",
    "creator",
    "description",
    "duration",
    "chapters",
    "bookmarks",
    "license",
    "notes",
    "performers",
    "script_url",
    "tags",
    "type",
    "video_url",
)
_TIMELINE_KEYS = {"offset", "loop", "speed", "startAt", "endAt"}


# ====================================================================== parsing
def _decode(data: bytes | str | Any) -> Any:
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FormatError(f"script is not valid UTF-8: {exc}") from exc
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError as exc:
            raise FormatError(f"script is not valid JSON: {exc}") from exc
    return data


def _number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormatError(f"{what} must be a number, got {value!r}")
    return value


def _parse_actions(raw: Any, where: str) -> List[Action]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise FormatError(f"{where}: actions must be a list")
    actions = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping) or "at" not in item or "pos" not in item:
            raise FormatError(f"{where}: action {index} must be an object with 'at' and 'pos'")
        actions.append(Action(_number(item["at"], "at"), _number(item["pos"], "pos")))
    return actions


def _parse_chapter(raw: Any, timeline: bool = False) -> Chapter:
    if not isinstance(raw, Mapping):
        raise FormatError(f"chapter must be an object, got {raw!r}")
    timeline = timeline or bool(_TIMELINE_KEYS & raw.keys())
    chapter: Chapter = TimelineChapter() if timeline else Chapter()
    chapter.name = str(raw.get("name") or "")
    chapter.start_time = raw.get("startTime", chapter.start_time)
    chapter.end_time = raw.get("endTime", chapter.end_time)
    if "startAt" in raw:
        chapter.start_at = _number(raw["startAt"], "startAt")
    if "endAt" in raw:
        chapter.end_at = _number(raw["endAt"], "endAt")
    if isinstance(chapter, TimelineChapter):
        chapter.offset = _number(raw.get("offset", 0), "offset")
        chapter.loop = bool(raw.get("loop", True))
        chapter.speed = _number(raw.get("speed", 1), "speed")
    return chapter


def _parse_bookmark(raw: Any) -> Bookmark:
    if not isinstance(raw, Mapping):
        raise FormatError(f"bookmark must be an object, got {raw!r}")
    return Bookmark(name=str(raw.get("name") or ""), time=raw.get("time", "00:00:00.000"))


def parse_metadata(raw: Any, *, timeline: bool = False) -> Metadata:
    """Build :class:`Metadata` from a decoded ``metadata`` object."""
    if raw is None:
        return Metadata()
    if not isinstance(raw, Mapping):
        raise FormatError(f"metadata must be an object, got {type(raw).__name__}")
    meta = Metadata()
    for key, value in raw.items():
        if key == "chapters":
            meta.chapters = [_parse_chapter(c, timeline) for c in (value or [])]
        elif key == "bookmarks":
            meta.bookmarks = [_parse_bookmark(b) for b in (value or [])]
        elif key == "duration":
            meta.duration = _number(value or 0, "duration")
        elif key in _METADATA_ORDER:
            setattr(meta, key, value)
        else:
            meta.extra[key] = value
    return meta


def _parse_clip(name: str, raw: Any) -> ChapterClip:
    if not isinstance(raw, Mapping):
        raise FormatError(f"clip {name!r} must be an object")
    base = _parse_chapter({k: v for k, v in raw.items() if k in ("startTime", "endTime", "name")})
    clip = ChapterClip(
        start_time=base.start_time,
        end_time=base.end_time,
        name=base.name or name,
        actions=_parse_actions(raw.get("actions"), f"clip {name!r}"),
    )
    for channel_name, entry in (raw.get("channels") or {}).items():
        if not isinstance(entry, Mapping):
            raise FormatError(f"clip {name!r}: channel {channel_name!r} must be an object")
        clip.channels[canonical_channel(channel_name)] = _parse_actions(
            entry.get("actions"), f"clip {name!r} channel {channel_name!r}"
        )
    return clip


def _parse_secondary(name: Optional[str], raw: Any, where: str) -> Channel:
    if not isinstance(raw, Mapping):
        raise FormatError(f"{where} must be an object")
    if "channels" in raw or "axes" in raw:
        raise FormatError(f"{where} declares nested channels")
    if not name:
        raise FormatError(f"{where} has no channel identity")
    metadata = parse_metadata(raw["metadata"]) if "metadata" in raw else None
    return make_channel(name, _parse_actions(raw.get("actions"), where), metadata)


def _root_identity(data: Mapping[str, Any], file: Optional[FileIdentity]) -> str:
    declared = data.get("channel") or data.get("id")
    if declared:
        return canonical_channel(str(declared))
    if file is not None and file.channel:
        return file.channel
    return PRIMARY_CHANNEL


def script_from_mapping(data: Any, *, file: Optional[FileIdentity] = None) -> Script:
    """Build a script from one decoded 1.0, 1.1 or 2.0 document."""
    if not isinstance(data, Mapping):
        raise FormatError(f"script must be a JSON object, got {type(data).__name__}")
    if "channels" in data and "axes" in data:
        raise FormatError("script declares both 'channels' and 'axes'")

    clips_raw = data.get("chapters")
    if clips_raw is not None and not isinstance(clips_raw, Mapping):
        raise FormatError("'chapters' must map clip names to clips")

    script = Script(
        actions=_parse_actions(data.get("actions"), "actions"),
        metadata=parse_metadata(data.get("metadata"), timeline=bool(clips_raw)),
        file=file,
        channel=_root_identity(data, file),
        inverted=data.get("inverted"),
        range=data.get("range"),
    )

    secondaries: List[Channel] = []
    if "channels" in data:
        raw_channels = data["channels"]
        if not isinstance(raw_channels, Mapping):
            raise FormatError("'channels' must be an object")
        for name, entry in raw_channels.items():
            secondaries.append(_parse_secondary(name, entry, f"channel {name!r}"))
    elif "axes" in data:
        raw_axes = data["axes"]
        if not isinstance(raw_axes, list):
            raise FormatError("'axes' must be a list")
        for index, entry in enumerate(raw_axes):
            axis = entry.get("id") if isinstance(entry, Mapping) else None
            if axis and not is_tcode_axis(axis):
                raise FormatError(f"axes[{index}] has unknown axis id {axis!r}")
            secondaries.append(_parse_secondary(axis, entry, f"axes[{index}]"))

    for channel in secondaries:
        if channel.name == script.channel or channel.name in script.channels:
            raise FormatError(f"channel {channel.name!r} appears more than once")
        script.channels[channel.name] = channel
    script.channels = {k: script.channels[k] for k in sorted(script.channels, key=channel_sort_key)}

    for name, raw_clip in (clips_raw or {}).items():
        script.clips[name] = _parse_clip(name, raw_clip)

    script.metadata.rescale_duration(script.actions_duration)
    return script


def parse_scripts(data: bytes | str | Any, *, merge_options: Any = None) -> List[Script]:
    """Parse a 1.0-list document into merged scripts."""
    from ..merge.multi_axis import merge_multi_axis

    decoded = _decode(data)
    if not isinstance(decoded, list):
        return [script_from_mapping(decoded)]
    scripts = [script_from_mapping(entry) for entry in decoded]
    if merge_options is None:
        return merge_multi_axis(scripts)
    return merge_multi_axis(scripts, merge_options)


def parse_script(
    data: bytes | str | Any,
    *,
    file: Optional[FileIdentity] = None,
    merge_options: Any = None,
) -> Script:
    """
    Parse any supported version into a :class:`Script`.

    Parameters
    ----------
    data:
        Raw bytes, JSON text, or an already decoded object/list.
    file:
        Identity of the file the data came from, if any.
    merge_options:
        :class:`~funlib.merge.MergeOptions` used for 1.0-list input.

    Raises
    ------
    FormatError
        On invalid JSON, wrong shapes, nested or duplicated channels, and
        1.0-list input that does not merge into exactly one script.
    """
    decoded = _decode(data)
    if isinstance(decoded, list):
        merged = parse_scripts(decoded, merge_options=merge_options)
        if len(merged) != 1:
            raise FormatError(f"script list merged into {len(merged)} scripts, expected 1")
        script = merged[0]
        if file is not None:
            script.file = file
        return script
    return script_from_mapping(decoded, file=file)


# ====================================================================== serialising
def _is_empty(value: Any) -> bool:
    return value == "" or value is None or (isinstance(value, (list, dict)) and not value)


def _actions_payload(actions: Sequence[Action], precision: int) -> List[Dict[str, Any]]:
    return [
        {"at": round_number(a.at, precision), "pos": round_number(a.pos, precision)}
        for a in actions
    ]


def _chapter_payload(chapter: Chapter) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"startTime": chapter.start_time, "endTime": chapter.end_time}
    if chapter.name:
        payload["name"] = chapter.name
    if isinstance(chapter, TimelineChapter):
        if chapter.offset:
            payload["offset"] = round_number(chapter.offset, 3)
        if not chapter.loop:
            payload["loop"] = False
        if chapter.speed != 1:
            payload["speed"] = round_number(chapter.speed, 6)
    return payload


def _bookmark_payload(bookmark: Bookmark) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"time": bookmark.time}
    if bookmark.name:
        payload["name"] = bookmark.name
    return payload


def metadata_payload(meta: Metadata, duration: Optional[float] = None) -> Dict[str, Any]:
    """Ordered, trimmed ``metadata`` object. *duration* overrides ``meta.duration``."""
    payload: Dict[str, Any] = {}
    for key in _METADATA_ORDER:
        if key == "duration":
            value = round_number(meta.duration if duration is None else duration, 3)
            if value:
                payload[key] = value
        elif key == "chapters":
            payload[key] = [_chapter_payload(c) for c in meta.chapters]
        elif key == "bookmarks":
            payload[key] = [_bookmark_payload(b) for b in meta.bookmarks]
        elif key == "type":
            if meta.type != "basic":
                payload[key] = meta.type
        else:
            payload[key] = getattr(meta, key)
    payload = {k: v for k, v in payload.items() if not _is_empty(v)}
    for key, value in meta.extra.items():
        payload.setdefault(key, value)
    return payload


def _clip_payload(clip: ChapterClip, precision: int) -> Dict[str, Any]:
    payload = _chapter_payload(clip)
    if clip.actions:
        payload["actions"] = _actions_payload(clip.actions, precision)
    channels = {
        name: {"actions": _actions_payload(acts, precision)}
        for name, acts in sorted(clip.channels.items(), key=lambda kv: channel_sort_key(kv[0]))
        if acts
    }
    if channels:
        payload["channels"] = channels
    return payload


def _legacy_flags(script: Script, payload: Dict[str, Any]) -> None:
    if script.inverted:
        payload["inverted"] = True
    if script.range is not None and script.range != 100:
        payload["range"] = script.range


def script_payload(script: Script, version: str = DEFAULT_VERSION, *, max_precision: int = DEFAULT_MAX_PRECISION) -> Any:
    """Decoded (dict or list) form of *script* at *version*."""
    if version not in VERSIONS:
        raise ValueError(f"unsupported version {version!r}; expected one of {', '.join(VERSIONS)}")
    if version == "1.0-list":
        return _list_payload(script, max_precision)

    payload: Dict[str, Any] = {}
    if not script.is_primary:
        payload["channel"] = script.channel
    metadata = metadata_payload(script.metadata, script.duration)
    if metadata:
        payload["metadata"] = metadata
    payload["actions"] = _actions_payload(script.actions, max_precision)

    if version == "1.1":
        axes = []
        for name, channel in script.channels.items():
            axis = channel_to_axis(name)
            if axis is None:
                logger.warning("Channel %r has no axis id and cannot be written as 1.1", name)
                continue
            axes.append({"id": axis, "actions": _actions_payload(channel.actions, max_precision)})
        if axes:
            payload["axes"] = axes
    elif version == "2.0":
        channels: Dict[str, Any] = {}
        for name, channel in script.channels.items():
            entry: Dict[str, Any] = {}
            if channel.metadata is not None:
                channel_meta = metadata_payload(channel.metadata)
                if channel_meta:
                    entry["metadata"] = channel_meta
            entry["actions"] = _actions_payload(channel.actions, max_precision)
            channels[name] = entry
        if channels:
            payload["channels"] = channels
        if script.clips:
            payload["chapters"] = {name: _clip_payload(clip, max_precision) for name, clip in script.clips.items()}
    elif script.channels:
        logger.debug("Version 1.0 drops %d secondary channel(s)", len(script.channels))

    _legacy_flags(script, payload)
    if version != "1.0":
        payload["version"] = version
    return payload


def _list_payload(script: Script, max_precision: int) -> List[Dict[str, Any]]:
    root = script_payload(script, "1.0", max_precision=max_precision)
    documents = [root]
    for name, channel in script.channels.items():
        entry: Dict[str, Any] = {"channel": name}
        if channel.metadata is not None:
            channel_meta = metadata_payload(channel.metadata)
            if channel_meta:
                entry["metadata"] = channel_meta
        entry["actions"] = _actions_payload(channel.actions, max_precision)
        documents.append(entry)
    return documents


def serialize_script(
    script: Script,
    version: str = DEFAULT_VERSION,
    *,
    pretty: bool = True,
    line_length: int = DEFAULT_LINE_LENGTH,
    max_precision: int = DEFAULT_MAX_PRECISION,
) -> str:
    """
    Render *script* as JSON text at *version*.

    Optional fields holding their default value and empty arrays/objects are
    left out. ``at``/``pos`` carry at most *max_precision* decimals. With
    *pretty* the action arrays use the aligned column layout of
    :func:`~funlib.dataio.json_text.format_json`.
    """
    text = dumps(script_payload(script, version, max_precision=max_precision), pretty=pretty)
    if not pretty:
        return text
    return format_json(text, line_length=line_length, max_precision=max_precision)


__all__ = [
    "DEFAULT_VERSION",
    "VERSIONS",
    "metadata_payload",
    "parse_metadata",
    "parse_script",
    "parse_scripts",
    "script_from_mapping",
    "script_payload",
    "serialize_script",
]
