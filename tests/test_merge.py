from __future__ import annotations

import json

import pytest

from funlib.core.models import Metadata
from funlib.dataio.formats import parse_script
from funlib.errors import MergeError
from funlib.merge.multi_axis import MergeOptions, MissingPrimaryPolicy, merge_multi_axis

from _factories import file_script, line, multi_axis_script


def test_groups_by_directory_and_title() -> None:
    scripts = [
        file_script("lib/video.roll.funscript", line()),
        file_script("lib/other.funscript"),
        file_script("lib/video.funscript"),
        file_script("lib/video.pitch.funscript"),
    ]
    merged = merge_multi_axis(scripts)

    assert len(merged) == 2
    video, other = merged
    assert video.channel == "stroke"
    assert list(video.channels) == ["roll", "pitch"]
    assert [f.name for f in video.file.merged_files] == [
        "video.funscript",
        "video.roll.funscript",
        "video.pitch.funscript",
    ]
    assert other is scripts[1]


def test_merge_copies_secondary_actions() -> None:
    roll = file_script("video.roll.funscript", line())
    merged = merge_multi_axis([file_script("video.funscript"), roll])[0]
    merged.channels["roll"].actions[0].pos = 77
    assert roll.actions[0].pos == 0


def test_merging_twice_is_a_no_op() -> None:
    scripts = [
        file_script("video.funscript"),
        file_script("video.roll.funscript"),
        file_script("solo.funscript"),
    ]
    merged = merge_multi_axis(scripts)
    again = merge_multi_axis(merged)
    assert len(again) == len(merged)
    assert all(a is b for a, b in zip(again, merged))


def test_duplicate_channel_in_group_is_rejected() -> None:
    scripts = [
        file_script("video.funscript"),
        file_script("video.roll.funscript"),
        file_script("video.R1.funscript"),
    ]
    with pytest.raises(MergeError) as info:
        merge_multi_axis(scripts)
    assert info.value.channel == "roll"
    assert "video" in info.value.group


def test_missing_stroke_errors_by_default() -> None:
    scripts = [file_script("video.roll.funscript"), file_script("video.pitch.funscript")]
    with pytest.raises(MergeError, match="no base script"):
        merge_multi_axis(scripts)


def test_missing_stroke_empty_base() -> None:
    scripts = [file_script("clips/video.roll.funscript"), file_script("clips/video.pitch.funscript")]
    merged = merge_multi_axis(scripts, MergeOptions(missing_primary="empty-base"))
    assert len(merged) == 1
    base = merged[0]
    assert base.actions == []
    assert base.is_primary
    assert list(base.channels) == ["roll", "pitch"]
    assert base.file.name == "video.funscript"


def test_missing_stroke_leave() -> None:
    scripts = [file_script("video.roll.funscript"), file_script("video.pitch.funscript")]
    merged = merge_multi_axis(scripts, MergeOptions(missing_primary=MissingPrimaryPolicy.LEAVE))
    assert merged == scripts


def test_single_secondary_is_combined_on_request() -> None:
    scripts = [file_script("video.twist.funscript")]
    assert merge_multi_axis(scripts)[0] is scripts[0]

    merged = merge_multi_axis(scripts, MergeOptions(combine_single_secondary_channel=True))
    assert merged[0].is_primary
    assert list(merged[0].channels) == ["twist"]


def test_secondary_metadata_kept_only_when_distinct() -> None:
    base = file_script("video.funscript")
    base.metadata = Metadata(title="video")
    same = file_script("video.roll.funscript")
    same.metadata = Metadata(title="video")
    distinct = file_script("video.pitch.funscript")
    distinct.metadata = Metadata(title="pitch pass", creator="someone")

    merged = merge_multi_axis([base, same, distinct])[0]
    assert merged.channels["roll"].metadata is None
    assert merged.channels["pitch"].metadata.creator == "someone"


def test_multi_channel_scripts_pass_through() -> None:
    script = multi_axis_script()
    loose = file_script("video.funscript")
    merged = merge_multi_axis([script, loose])
    assert merged[0] is script
    assert merged[1] is loose


def test_list_document_with_duplicate_channels_is_rejected() -> None:
    text = json.dumps(
        [
            {"actions": [{"at": 0, "pos": 0}]},
            {"channel": "roll", "actions": []},
            {"channel": "R1", "actions": []},
        ]
    )
    with pytest.raises(MergeError):
        parse_script(text)


def test_list_document_without_stroke_follows_policy() -> None:
    text = json.dumps([{"channel": "roll", "actions": [{"at": 0, "pos": 5}]}, {"channel": "pitch", "actions": []}])
    with pytest.raises(MergeError):
        parse_script(text)
    script = parse_script(text, merge_options=MergeOptions(missing_primary="empty-base"))
    assert list(script.channels) == ["roll", "pitch"]
    assert [(a.at, a.pos) for a in script.channels["roll"].actions] == [(0, 5)]
    assert script.actions == []
