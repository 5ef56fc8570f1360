"""Merge engine: multi-file grouping, chapter slicing and timeline rebuilds."""

from .chapters import extract_chapter, slice_actions, split_by_chapters
from .multi_axis import MergeOptions, MissingPrimaryPolicy, merge_multi_axis
from .timeline import (
    add_timeline_chapter,
    clear_timeline,
    rebuild_actions,
    remove_timeline_chapter,
    render_clip,
    script_to_timeline,
)

__all__ = [
    "MergeOptions",
    "MissingPrimaryPolicy",
    "merge_multi_axis",
    "extract_chapter",
    "slice_actions",
    "split_by_chapters",
    "add_timeline_chapter",
    "clear_timeline",
    "rebuild_actions",
    "remove_timeline_chapter",
    "render_clip",
    "script_to_timeline",
]
