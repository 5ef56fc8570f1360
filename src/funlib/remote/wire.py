"""TCode text encoding and per-axis device limits."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from ..core.channels import channel_to_axis, is_tcode_axis
from ..core.models import clamp
from ..core.timespans import round_half_up
from ..playback.commands import MODE_INTERVAL, MODE_SPEED, TCodeCommand

DEVICE_RANGE_MAX = 9999
MANTISSA_DIGITS = 4
MAX_FRACTION = 0.9999

RESPECT_CLAMP = "clamp"
RESPECT_SCALE = "scale"
RESPECT_IGNORE = "ignore"


def to_mantissa(pos: float) -> str:
    """
    Four-digit mantissa of ``pos / 100``, truncated.

    ``37.5`` gives ``"3750"``; values are clamped to ``[0, 0.9999]`` first.
    """
    if not math.isfinite(pos):
        raise ValueError(f"position must be finite, got {pos!r}")
    fraction = clamp(pos / 100.0, 0.0, MAX_FRACTION)
    # round() first so binary noise like 3749.9999999 does not truncate down
    digits = math.floor(round(fraction * 10 ** MANTISSA_DIGITS, 6))
    return f"{digits:0{MANTISSA_DIGITS}d}"


@dataclass(frozen=True)
class AxisLimit:
    """
    Range a device accepts on one axis, in position units (0-100).

    ``respect="scale"`` remaps positions affinely into ``[min, max]`` and
    scales speed arguments by the same factor; ``"clamp"`` cuts positions to
    the range.
    """

    axis: str
    min: float = 0.0
    max: float = 100.0
    label: str = ""
    respect: str = RESPECT_CLAMP

    @classmethod
    def from_device(cls, axis: str, low: int, high: int, label: str = "") -> AxisLimit:
        """Build a limit from a raw ``0..9999`` device range."""
        respect = RESPECT_CLAMP if (low, high) == (0, DEVICE_RANGE_MAX) else RESPECT_SCALE
        return cls(
            axis=axis,
            min=low * 100.0 / DEVICE_RANGE_MAX,
            max=high * 100.0 / DEVICE_RANGE_MAX,
            label=label,
            respect=respect,
        )

    def apply(self, command: TCodeCommand) -> TCodeCommand:
        if self.respect == RESPECT_CLAMP:
            return command._replace(pos=clamp(command.pos, self.min, self.max))
        if self.respect == RESPECT_SCALE:
            factor = (self.max - self.min) / 100.0
            arg = command.arg
            if command.mode == MODE_SPEED and arg is not None:
                arg = arg * factor
            return command._replace(pos=self.min + command.pos * factor, arg=arg)
        return command


def encode_command(command: TCodeCommand, limits: Optional[Mapping[str, AxisLimit]] = None) -> str:
    """Encode one command as ``<axis><mantissa>[<mode><arg>]``."""
    axis = channel_to_axis(command.axis)
    if not is_tcode_axis(axis):
        raise ValueError(f"not a TCode axis: {command.axis!r}")
    command = command._replace(axis=axis)
    if limits and axis in limits:
        command = limits[axis].apply(command)

    text = f"{axis}{to_mantissa(command.pos)}"
    if command.mode in (MODE_INTERVAL, MODE_SPEED):
        if command.arg is None:
            raise ValueError(f"{command.mode} command for {axis} needs an argument")
        text += f"{command.mode}{max(0, round_half_up(command.arg))}"
    return text


def encode_commands(commands: Iterable[TCodeCommand], limits: Optional[Mapping[str, AxisLimit]] = None) -> str:
    """Space-joined, newline-terminated command line ('' for no commands)."""
    parts = [encode_command(command, limits) for command in commands]
    if not parts:
        return ""
    return " ".join(parts) + "\n"


__all__ = [
    "AxisLimit",
    "DEVICE_RANGE_MAX",
    "RESPECT_CLAMP",
    "RESPECT_IGNORE",
    "RESPECT_SCALE",
    "encode_command",
    "encode_commands",
    "to_mantissa",
]
