"""Small builders for scripts used across the test modules."""

from __future__ import annotations

import math
from typing import List, Optional

from funlib.core.models import Action, FileIdentity, Metadata, Script, make_channel


def zigzag(count: int = 9, step: float = 1000, low: float = 0, high: float = 100) -> List[Action]:
    return [Action(i * step, low if i % 2 == 0 else high) for i in range(count)]


def sine(count: int = 40, step: float = 100, period: float = 2000) -> List[Action]:
    return [
        Action(i * step, round(50 + 50 * math.sin(2 * math.pi * i * step / period), 1))
        for i in range(count)
    ]


def line(start: float = 0, end: float = 100, count: int = 11, step: float = 100) -> List[Action]:
    return [Action(i * step, start + (end - start) * i / (count - 1)) for i in range(count)]


def multi_axis_script(title: str = "demo") -> Script:
    script = Script(actions=zigzag(), metadata=Metadata(title=title, creator="tester"))
    script.set_channel(make_channel("R1", sine()))
    script.set_channel(make_channel("twist", zigzag(5, 2000, 20, 80)))
    return script


def file_script(path: str, actions: Optional[List[Action]] = None) -> Script:
    """Script as if parsed from *path* (channel taken from the suffix)."""
    identity = FileIdentity.from_path(path)
    return Script(
        actions=actions if actions is not None else zigzag(),
        file=identity,
        channel=identity.channel or "stroke",
    )
