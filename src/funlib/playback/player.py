"""Background ticker that streams playback commands to a device."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from ..config.runtime import PlaybackConfig
from ..core.models import Script
from ..tools.debug import time_block
from .commands import TCodeCommand
from .session import PlaybackSession, PlaybackState

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_S = 0.004
DEFAULT_RESYNC_EVERY = 250


class VideoClock(Protocol):
    """What the player reads from the video element each tick."""

    paused: bool
    current_time: float  # seconds
    seeking: bool


class CommandSink(Protocol):
    def write(self, commands: Sequence[TCodeCommand]) -> None: ...


@dataclass
class Ticker:
    """
    Call ``on_tick`` every ``interval_s`` seconds on a daemon thread.

    Deadlines advance by a fixed step; every ``resync_every`` ticks (or when
    a tick overruns) the schedule is re-anchored to the current time so that
    small errors do not accumulate. Exceptions from ``on_tick`` are logged
    and the ticker keeps running.
    """

    on_tick: Callable[[], object]
    interval_s: float = DEFAULT_TICK_INTERVAL_S
    resync_every: int = DEFAULT_RESYNC_EVERY
    thread_name: str = "FunlibTicker"

    def __post_init__(self) -> None:
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    def _run(self) -> None:
        deadline = time.perf_counter()
        while not self._stop_event.is_set():
            try:
                self.on_tick()
            except Exception:
                logger.exception("Playback tick failed")
            self.ticks += 1

            now = time.perf_counter()
            if self.resync_every and self.ticks % self.resync_every == 0:
                deadline = now
            deadline += self.interval_s
            delay = deadline - now
            if delay < 0:
                deadline = now
                delay = 0.0
            self._stop_event.wait(delay)

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.thread_name, daemon=True)
        self._thread.start()

    def stop(self, *, join: bool = True, timeout: Optional[float] = 1.0) -> None:
        self._stop_event.set()
        if join and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


class TCodePlayer:
    """Follow a :class:`VideoClock` and write the resulting commands to a device."""

    def __init__(
        self,
        clock: VideoClock,
        script: Script,
        device: CommandSink,
        *,
        interval_s: float = DEFAULT_TICK_INTERVAL_S,
        resync_every: int = DEFAULT_RESYNC_EVERY,
    ) -> None:
        self.clock = clock
        self.device = device
        self.session = PlaybackSession(script)
        self.ticker = Ticker(self.tick, interval_s=interval_s, resync_every=resync_every, thread_name="TCodePlayer")

    @classmethod
    def from_config(cls, clock: VideoClock, script: Script, device: CommandSink, config: PlaybackConfig) -> TCodePlayer:
        return cls(clock, script, device, interval_s=config.tick_interval_s, resync_every=config.resync_every)

    def read_state(self) -> PlaybackState:
        return PlaybackState(
            paused=bool(self.clock.paused),
            current_time_ms=float(self.clock.current_time) * 1000.0,
            seeking=bool(self.clock.seeking),
        )

    def tick(self) -> List[TCodeCommand]:
        with time_block("playback tick", emitter=logger.debug):
            commands = self.session.tick(self.read_state())
        if commands:
            logger.debug("Writing %s", commands)
            self.device.write(commands)
        return commands

    def run(self) -> None:
        self.ticker.start()

    def stop(self) -> None:
        self.ticker.stop()


__all__ = ["CommandSink", "TCodePlayer", "Ticker", "VideoClock"]
