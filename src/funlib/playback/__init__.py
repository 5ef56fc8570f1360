"""Playback: map a video clock onto per-channel motion commands."""

from .commands import MODE_INTERVAL, MODE_SPEED, TCodeCommand
from .player import TCodePlayer, Ticker
from .session import ActionCursor, PlaybackSession, PlaybackState

__all__ = [
    "MODE_INTERVAL",
    "MODE_SPEED",
    "TCodeCommand",
    "TCodePlayer",
    "Ticker",
    "ActionCursor",
    "PlaybackSession",
    "PlaybackState",
]
