from __future__ import annotations

import json
import zipfile
from pathlib import Path

import pytest

from funlib.core.models import Script, speed_between
from funlib.dataio.formats import serialize_script
from funlib.dataio.script_loader import load_script
from funlib.tools.merge_cli import main

from _factories import line, zigzag


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FUNLIB_CONFIG", raising=False)


def _write(path: Path, actions) -> None:
    path.write_text(serialize_script(Script(actions=actions), "1.0"), encoding="utf-8")


def _populate(folder: Path) -> None:
    _write(folder / "video.funscript", zigzag())
    _write(folder / "video.roll.funscript", line())
    _write(folder / "video.pitch.funscript", line(100, 0))
    _write(folder / "other.funscript", zigzag(3))


def test_merge_replaces_files_and_writes_backup(tmp_path: Path) -> None:
    _populate(tmp_path)

    assert main(["merge", str(tmp_path)]) == 0

    names = sorted(p.name for p in tmp_path.iterdir() if p.suffix == ".funscript")
    assert names == ["other.funscript", "video.funscript"]

    merged = load_script(tmp_path / "video.funscript")
    assert list(merged.channels) == ["roll", "pitch"]
    assert json.loads((tmp_path / "video.funscript").read_text(encoding="utf-8"))["version"] == "2.0"

    backups = list(tmp_path.glob(".processed-*.zip"))
    assert len(backups) == 1
    with zipfile.ZipFile(backups[0]) as zf:
        assert sorted(zf.namelist()) == [
            "other.funscript",
            "video.funscript",
            "video.pitch.funscript",
            "video.roll.funscript",
        ]


def test_dry_run_changes_nothing(tmp_path: Path) -> None:
    _populate(tmp_path)
    before = {p.name: p.read_bytes() for p in tmp_path.iterdir()}

    assert main(["merge", str(tmp_path), "--dry-run"]) == 0

    after = {p.name: p.read_bytes() for p in tmp_path.iterdir()}
    assert after == before


def test_missing_stroke_fails_unless_policy_given(tmp_path: Path) -> None:
    _write(tmp_path / "clip.roll.funscript", line())
    _write(tmp_path / "clip.twist.funscript", zigzag())

    assert main(["merge", str(tmp_path)]) == 1
    assert (tmp_path / "clip.roll.funscript").exists()

    assert main(["merge", str(tmp_path), "--missing-stroke", "empty-base", "--version", "1.1"]) == 0
    merged = load_script(tmp_path / "clip.funscript")
    assert merged.actions == []
    assert list(merged.channels) == ["twist", "roll"]
    assert not (tmp_path / "clip.roll.funscript").exists()


def test_nothing_to_merge(tmp_path: Path) -> None:
    _write(tmp_path / "solo.funscript", zigzag())
    assert main(["merge", str(tmp_path)]) == 0
    assert not list(tmp_path.glob(".processed-*.zip"))


def test_lone_secondary_is_wrapped_when_configured(tmp_path: Path) -> None:
    _write(tmp_path / "solo.roll.funscript", line())
    config = tmp_path / "funlib.yaml"
    config.write_text("merge:\n  combine_single_secondary_channel: true\n", encoding="utf-8")

    assert main(["--config", str(config), "merge", str(tmp_path)]) == 0
    assert not (tmp_path / "solo.roll.funscript").exists()
    merged = load_script(tmp_path / "solo.funscript")
    assert merged.actions == []
    assert list(merged.channels) == ["roll"]
    assert len(list(tmp_path.glob(".processed-*.zip"))) == 1


def test_config_file_sets_output_version(tmp_path: Path) -> None:
    _populate(tmp_path)
    config = tmp_path / "funlib.yaml"
    config.write_text("output:\n  version: '1.0-list'\n", encoding="utf-8")

    assert main(["--config", str(config), "merge", str(tmp_path)]) == 0
    data = json.loads((tmp_path / "video.funscript").read_text(encoding="utf-8"))
    assert isinstance(data, list)
    assert [doc.get("channel") for doc in data] == [None, "roll", "pitch"]


def test_stats_prints_every_channel(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    _populate(tmp_path)
    main(["merge", str(tmp_path)])
    capsys.readouterr()

    assert main(["stats", str(tmp_path / "video.funscript")]) == 0
    out = capsys.readouterr().out.splitlines()
    assert [row.split()[0] for row in out] == ["stroke", "roll", "pitch"]
    assert "ActionCount=9" in out[0]


def test_smooth_writes_output(tmp_path: Path) -> None:
    source = tmp_path / "fast.funscript"
    _write(source, zigzag(21, 100))
    target = tmp_path / "fast.smooth.funscript"

    assert main(["smooth", str(source), "-o", str(target)]) == 0
    smoothed = load_script(target)
    assert smoothed.actions
    assert all(abs(speed_between(a, b)) <= 560 for a, b in zip(smoothed.actions, smoothed.actions[1:]))
    assert source.read_bytes() != target.read_bytes()


def test_invalid_folder_exits_with_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main(["merge", str(tmp_path / "missing")])


def test_smooth_skips_non_finite_positions(tmp_path: Path) -> None:
    source = tmp_path / "broken.funscript"
    source.write_text(
        '{"actions": [{"at": 0, "pos": 0}, {"at": 100, "pos": NaN}, {"at": 200, "pos": 100}, {"at": 300, "pos": 0}]}',
        encoding="utf-8",
    )
    target = tmp_path / "broken.smooth.funscript"

    assert main(["smooth", str(source), "-o", str(target)]) == 0
    smoothed = load_script(target)
    assert smoothed.actions
    assert 100 not in [a.at for a in smoothed.actions]
