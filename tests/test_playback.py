from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import List

from funlib.core.models import Action, Script, make_channel
from funlib.playback.commands import TCodeCommand
from funlib.playback.player import TCodePlayer, Ticker
from funlib.playback.session import ActionCursor, PlaybackSession, PlaybackState


def _script() -> Script:
    script = Script(actions=[Action(0, 0), Action(1000, 100), Action(2000, 0)])
    script.set_channel(make_channel("roll", [Action(0, 40), Action(2000, 80)]))
    script.set_channel(make_channel("custom", [Action(0, 10)]))
    return script


def test_session_skips_non_tcode_channels() -> None:
    session = PlaybackSession(_script())
    assert session.axes == ["L0", "R1"]


def test_commands_at_interpolates() -> None:
    session = PlaybackSession(_script())
    assert session.commands_at(500) == [TCodeCommand("L0", 50), TCodeCommand("R1", 50)]
    assert session.pos_at("L0", 5000) == 0


def test_commands_from_targets_next_action() -> None:
    session = PlaybackSession(_script())
    assert session.commands_from(250.7) == [
        TCodeCommand("L0", 100, "I", 750),
        TCodeCommand("R1", 80, "I", 1750),
    ]
    # past the end: plain position
    assert session.commands_from(2500) == [TCodeCommand("L0", 0), TCodeCommand("R1", 80)]


def test_tick_transitions() -> None:
    session = PlaybackSession(_script())

    # paused -> playing
    assert session.tick(PlaybackState(paused=False, current_time_ms=0)) == [
        TCodeCommand("L0", 100, "I", 1000),
        TCodeCommand("R1", 80, "I", 2000),
    ]
    # playing inside the same interval: nothing new
    assert session.tick(PlaybackState(paused=False, current_time_ms=4)) == []
    # stroke crosses into its next interval
    assert session.tick(PlaybackState(paused=False, current_time_ms=1002)) == [TCodeCommand("L0", 0, "I", 998)]
    # playing -> paused holds the current position
    assert session.tick(PlaybackState(paused=True, current_time_ms=1500)) == [
        TCodeCommand("L0", 50),
        TCodeCommand("R1", 70),
    ]
    # paused and idle
    assert session.tick(PlaybackState(paused=True, current_time_ms=1500)) == []


def test_playing_past_the_last_action_holds_final_position() -> None:
    session = PlaybackSession(_script())
    session.tick(PlaybackState(paused=False, current_time_ms=0))

    assert session.tick(PlaybackState(paused=False, current_time_ms=1990)) == [TCodeCommand("L0", 0, "I", 10)]
    assert session.tick(PlaybackState(paused=False, current_time_ms=2010)) == [
        TCodeCommand("L0", 0),
        TCodeCommand("R1", 80),
    ]
    assert session.tick(PlaybackState(paused=False, current_time_ms=2030)) == []


def test_seek_sends_absolute_then_timed_when_playing() -> None:
    session = PlaybackSession(_script(), initial=PlaybackState(paused=False, current_time_ms=0))
    commands = session.tick(PlaybackState(paused=False, current_time_ms=500, seeking=True))
    assert commands == [
        TCodeCommand("L0", 50),
        TCodeCommand("R1", 50),
        TCodeCommand("L0", 100, "I", 500),
        TCodeCommand("R1", 80, "I", 1500),
    ]
    paused_seek = session.tick(PlaybackState(paused=True, current_time_ms=500, seeking=True))
    assert paused_seek == [TCodeCommand("L0", 50), TCodeCommand("R1", 50)]


def test_cursor_searches_near_cached_index() -> None:
    cursor = ActionCursor([Action(i * 100, i % 2 * 100) for i in range(100)])
    for at in range(0, 5000, 10):
        cursor.index_after(at)
    assert cursor.full_scans == 0

    assert cursor.index_after(9050) == 91
    assert cursor.full_scans == 1
    assert cursor.index_after(20000) == 99
    assert cursor.index_after(-5) == 0


def test_cursor_on_empty_channel() -> None:
    cursor = ActionCursor([])
    assert cursor.index_after(10) is None
    assert cursor.pos_at(10) == 50


@dataclass
class _Clock:
    paused: bool = False
    current_time: float = 0.0
    seeking: bool = False


class _Sink:
    def __init__(self) -> None:
        self.writes: List[List[TCodeCommand]] = []
        self.event = threading.Event()

    def write(self, commands) -> None:
        self.writes.append(list(commands))
        self.event.set()


def test_player_writes_only_non_empty_ticks() -> None:
    clock = _Clock(paused=True)
    sink = _Sink()
    player = TCodePlayer(clock, _script(), sink)

    assert player.tick() == []
    clock.paused = False
    clock.current_time = 0.25
    player.tick()
    assert sink.writes == [[TCodeCommand("L0", 100, "I", 750), TCodeCommand("R1", 80, "I", 1750)]]


def test_player_runs_on_background_thread() -> None:
    sink = _Sink()
    player = TCodePlayer(_Clock(paused=False), _script(), sink, interval_s=0.002)
    player.run()
    try:
        assert sink.event.wait(2.0)
    finally:
        player.stop()
    assert not player.ticker.is_running()


def test_ticker_survives_tick_errors(caplog) -> None:
    calls = []

    def on_tick():
        calls.append(time.perf_counter())
        if len(calls) == 1:
            raise RuntimeError("boom")

    ticker = Ticker(on_tick, interval_s=0.001, resync_every=3)
    ticker.start()
    deadline = time.monotonic() + 2.0
    while len(calls) < 5 and time.monotonic() < deadline:
        time.sleep(0.005)
    ticker.stop()

    assert len(calls) >= 5
    assert "Playback tick failed" in caplog.text


def test_time_block_reports_only_when_enabled(monkeypatch) -> None:
    from funlib.tools import debug

    messages: List[str] = []
    monkeypatch.setattr(debug, "DEBUG_FUNLIB", False)
    with debug.time_block("tick", emitter=messages.append):
        pass
    monkeypatch.setattr(debug, "DEBUG_FUNLIB", True)
    with debug.time_block("tick", emitter=messages.append):
        pass

    assert len(messages) == 1
    assert messages[0].startswith("tick: ")
