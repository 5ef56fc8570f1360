"""Core data model: actions, channels, metadata and scripts.

Everything else in funlib reads and produces these records. The modules here
have no I/O and no third-party dependencies.
"""

from .channels import (
    AXIS_IDS,
    PRIMARY_CHANNEL,
    canonical_channel,
    channel_sort_key,
    channel_to_axis,
    is_tcode_axis,
)
from .models import (
    Action,
    Bookmark,
    Channel,
    ChannelKind,
    Chapter,
    ChapterClip,
    DataDefect,
    FileIdentity,
    Metadata,
    Script,
    TimelineChapter,
    clerp_at,
    make_channel,
    speed_between,
)
from .timespans import ms_to_timespan, seconds_to_duration, timespan_to_ms

__all__ = [
    "AXIS_IDS",
    "PRIMARY_CHANNEL",
    "canonical_channel",
    "channel_sort_key",
    "channel_to_axis",
    "is_tcode_axis",
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
    "clerp_at",
    "make_channel",
    "speed_between",
    "ms_to_timespan",
    "seconds_to_duration",
    "timespan_to_ms",
]
