"""Exception types raised across funlib.

Format problems (bad input, ambiguous merges, missing timeline clips) are
fatal and raised to the caller. Transport problems wrap the underlying serial
exception so the device diagnostic stays attached via ``__cause__``.
"""

from __future__ import annotations


class FunlibError(Exception):
    """Base class for every error raised by funlib."""


class FormatError(FunlibError, ValueError):
    """Input that cannot be mapped onto the script model."""


class MergeError(FormatError):
    """A merge group is ambiguous (duplicate channel, missing primary)."""

    def __init__(self, message: str, *, group: str | None = None, channel: str | None = None) -> None:
        super().__init__(message)
        self.group = group
        self.channel = channel


class TimelineError(FormatError):
    """Timeline chapters reference a clip that does not exist."""


class TransportError(FunlibError, RuntimeError):
    """Opening, writing to or reading from the device failed."""


class TransportClosed(TransportError):
    """The transport was closed while an operation was waiting on it."""


class HandshakeTimeout(TransportError):
    """A device query did not receive its terminating blank line in time."""


__all__ = [
    "FunlibError",
    "FormatError",
    "MergeError",
    "TimelineError",
    "TransportError",
    "TransportClosed",
    "HandshakeTimeout",
]
