"""Turn a script plus a video clock state into motion commands.

:class:`PlaybackSession` is pure: it performs no I/O and keeps only the
lookup cursors and the previous :class:`PlaybackState` between ticks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.channels import channel_to_axis
from ..core.models import DEFAULT_POS, Action, Script, clamp, lerp, unlerp
from .commands import MODE_INTERVAL, TCodeCommand


@dataclass(frozen=True)
class PlaybackState:
    paused: bool = True
    current_time_ms: float = 0.0
    seeking: bool = False


class ActionCursor:
    """
    Finds "the action after T" in one channel.

    The last resolved index is cached and searched within ``WINDOW`` positions
    first, so monotonically advancing times resolve in constant time. A miss
    falls back to a linear scan.
    """

    WINDOW = 5

    def __init__(self, actions: Sequence[Action]) -> None:
        self.actions = actions
        self.index = -1
        self.full_scans = 0

    def _is_target(self, index: int, at: float) -> bool:
        actions = self.actions
        if index < len(actions) - 1 and actions[index].at <= at:
            return False
        return index == 0 or actions[index - 1].at <= at

    def index_after(self, at: float) -> Optional[int]:
        """Index of the first action later than *at*, else of the last action."""
        count = len(self.actions)
        if count == 0:
            return None
        for delta in range(-self.WINDOW, self.WINDOW + 1):
            index = self.index + delta
            if 0 <= index < count and self._is_target(index, at):
                self.index = index
                return index
        self.full_scans += 1
        for index in range(count):
            if self._is_target(index, at):
                self.index = index
                return index
        return None

    def action_after(self, at: float) -> Optional[Action]:
        index = self.index_after(at)
        return None if index is None else self.actions[index]

    def pos_at(self, at: float) -> float:
        index = self.index_after(at)
        if index is None:
            return DEFAULT_POS
        action = self.actions[index]
        if at >= action.at or index == 0:
            return action.pos
        prev = self.actions[index - 1]
        return lerp(prev.pos, action.pos, clamp(unlerp(prev.at, action.at, at), 0.0, 1.0))


class PlaybackSession:
    """
    Per-script playback state machine.

    Feed it one :class:`PlaybackState` per tick via :meth:`tick`; it returns
    the commands needed for that tick:

    - seeking: absolute position per channel, plus a timed move when playing;
    - playing -> paused: absolute position (hold);
    - paused -> playing: timed move to each channel's next action;
    - playing: a timed move only for channels that entered a new interval
      since the previous tick.
    """

    def __init__(self, script: Script, *, initial: Optional[PlaybackState] = None) -> None:
        self.script = script
        self.previous = initial or PlaybackState()
        self._cursors: Dict[str, ActionCursor] = {}
        self._order: List[Tuple[str, ActionCursor]] = []
        for channel in script.all_channels():
            axis = channel_to_axis(channel.name)
            if axis is None or axis in self._cursors:
                continue
            cursor = ActionCursor(channel.actions)
            self._cursors[axis] = cursor
            self._order.append((axis, cursor))

    @property
    def axes(self) -> List[str]:
        return [axis for axis, _ in self._order]

    def cursor(self, axis: str) -> ActionCursor:
        return self._cursors[axis]

    def pos_at(self, axis: str, at: float) -> float:
        return self._cursors[axis].pos_at(at)

    def commands_at(self, at: float) -> List[TCodeCommand]:
        """Absolute position of every channel at *at* ms."""
        return [TCodeCommand(axis, cursor.pos_at(at)) for axis, cursor in self._order]

    def commands_from(self, at: float, since: Optional[float] = None) -> List[TCodeCommand]:
        """
        Timed moves towards each channel's next action.

        Without *since* every channel gets a command. With *since* (the
        previous tick's time) a channel is only included when the interval
        it is in started after *since*, or when its last action was passed
        since then, in which case it is held at that final position.
        """
        at = int(at)
        if since is not None:
            since = int(since)
        commands: List[TCodeCommand] = []
        for axis, cursor in self._order:
            index = cursor.index_after(at)
            if index is None:
                continue
            target = cursor.actions[index]
            if since is None:
                if target.at <= at:
                    commands.append(TCodeCommand(axis, target.pos))
                else:
                    commands.append(TCodeCommand(axis, target.pos, MODE_INTERVAL, target.at - at))
                continue
            if target.at <= at:
                if since < target.at:
                    commands.append(TCodeCommand(axis, target.pos))
                continue
            prev_at = cursor.actions[index - 1].at if index > 0 else 0
            if prev_at <= since:
                continue
            commands.append(TCodeCommand(axis, target.pos, MODE_INTERVAL, target.at - at))
        return commands

    def tick(self, state: PlaybackState) -> List[TCodeCommand]:
        previous = self.previous
        at = state.current_time_ms
        if state.seeking:
            commands = self.commands_at(at)
            if not state.paused:
                commands.extend(self.commands_from(at))
        elif not previous.paused and state.paused:
            commands = self.commands_at(at)
        elif previous.paused and not state.paused:
            commands = self.commands_from(at)
        elif not state.paused:
            commands = self.commands_from(at, previous.current_time_ms)
        else:
            commands = []
        self.previous = state
        return commands


__all__ = ["ActionCursor", "PlaybackSession", "PlaybackState"]
