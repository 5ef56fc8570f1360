"""TCode device session: handshake, request/response and command streaming."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..config.runtime import DeviceConfig
from ..core.channels import is_tcode_axis
from ..errors import HandshakeTimeout, TransportClosed, TransportError
from ..playback.commands import TCodeCommand
from .serial_transport import SerialTransport, TransportState
from .wire import AxisLimit, encode_commands

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 0.05


@dataclass
class DeviceInfo:
    name: str = ""
    version: str = ""
    limits: Dict[str, AxisLimit] = field(default_factory=dict)


def parse_limit_line(line: str) -> Optional[AxisLimit]:
    """
    Parse one ``D2`` reply line of the form ``<axis> <min> <max> [label]``.

    Returns ``None`` for lines that do not describe a TCode axis.
    """
    parts = line.split(None, 3)
    if len(parts) < 3 or not is_tcode_axis(parts[0]):
        return None
    try:
        low, high = int(parts[1]), int(parts[2])
    except ValueError:
        return None
    label = parts[3].strip() if len(parts) > 3 else ""
    return AxisLimit.from_device(parts[0], low, high, label)


class TCodeDevice:
    """
    A TCode speaking device behind a :class:`SerialTransport`.

    Parameters
    ----------
    transport:
        An unopened transport; :meth:`open` connects it.
    poll_interval:
        Seconds between checks of the reply buffer in :meth:`run_command`.
    handshake_timeout:
        Per-request timeout used during :meth:`open`. ``None`` waits forever,
        so a silent device blocks ``open()`` until :meth:`close` is called
        from another thread.
    """

    def __init__(
        self,
        transport: SerialTransport,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        handshake_timeout: Optional[float] = None,
    ) -> None:
        self.transport = transport
        self.poll_interval = poll_interval
        self.handshake_timeout = handshake_timeout
        self.info = DeviceInfo()
        self.state = TransportState.CLOSED
        self._closing = threading.Event()
        self._command_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: DeviceConfig, **transport_options) -> TCodeDevice:
        """Build an unopened device from the ``device`` config section."""
        if not config.port:
            raise ValueError("device.port is not configured")
        transport = SerialTransport(config.port, config.baudrate, **transport_options)
        return cls(
            transport,
            poll_interval=config.poll_interval_s,
            handshake_timeout=config.handshake_timeout_s,
        )

    @property
    def limits(self) -> Dict[str, AxisLimit]:
        return self.info.limits

    @property
    def is_open(self) -> bool:
        return self.state is TransportState.OPEN

    # ------------------------------------------------------------------ lifecycle
    def open(self) -> DeviceInfo:
        """Connect and run the ``D0``/``D1``/``D2`` handshake."""
        if self.is_open:
            return self.info
        self._closing.clear()
        self.state = TransportState.OPENING
        try:
            self.transport.connect()
            name = self.run_command("D0", timeout=self.handshake_timeout)
            version = self.run_command("D1", timeout=self.handshake_timeout)
            limit_lines = self.run_command("D2", timeout=self.handshake_timeout)
        except TransportError:
            self.close()
            raise

        limits: Dict[str, AxisLimit] = {}
        for line in limit_lines:
            limit = parse_limit_line(line)
            if limit is None:
                logger.debug("Ignoring D2 line %r", line)
                continue
            limits[limit.axis] = limit

        self.info = DeviceInfo(name=" ".join(name), version=" ".join(version), limits=limits)
        self.state = TransportState.OPEN
        logger.info(
            "Connected to %r (%s) on %s with axes %s",
            self.info.name,
            self.info.version,
            self.transport.url,
            ", ".join(sorted(limits)) or "-",
        )
        return self.info

    def close(self) -> None:
        """Abort any pending request and close the transport. Idempotent."""
        self._closing.set()
        if self.state is not TransportState.CLOSED:
            logger.info("Closing device on %s", self.transport.url)
        self.state = TransportState.CLOSED
        self.transport.close()

    def __enter__(self) -> TCodeDevice:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ requests
    def run_command(self, command: str, timeout: Optional[float] = None) -> List[str]:
        """
        Send *command* and collect reply lines up to the first blank line.

        The reply buffer is polled every ``poll_interval`` seconds. With
        ``timeout=None`` this waits indefinitely.

        Raises
        ------
        HandshakeTimeout
            No complete reply arrived within *timeout* seconds.
        TransportClosed
            :meth:`close` was called while waiting.
        """
        with self._command_lock:
            if self._closing.is_set():
                raise TransportClosed(f"device on {self.transport.url} is closed")
            self.transport.lines.clear()
            self.transport.write_line(command)

            deadline = None if timeout is None else time.monotonic() + timeout
            reply: List[str] = []
            while True:
                line = self.transport.lines.pop_line()
                while line is not None:
                    if not line.strip():
                        logger.debug("%s -> %s", command, reply)
                        return reply
                    reply.append(line.strip())
                    line = self.transport.lines.pop_line()

                if self.transport.pump_error is not None:
                    raise TransportError(
                        f"read from {self.transport.url} failed during {command}"
                    ) from self.transport.pump_error
                if deadline is not None and time.monotonic() >= deadline:
                    raise HandshakeTimeout(f"no reply to {command!r} within {timeout}s")
                if self._closing.wait(self.poll_interval):
                    raise TransportClosed(f"device on {self.transport.url} closed while waiting for {command!r}")

    # ------------------------------------------------------------------ streaming
    def write(self, commands: Sequence[TCodeCommand]) -> None:
        """Encode *commands* against the device's axis limits and send them."""
        if not self.is_open:
            raise TransportClosed(f"device on {self.transport.url} is not open")
        line = encode_commands(commands, self.info.limits)
        if line:
            self.transport.write_line(line)

    def write_raw(self, line: str) -> None:
        if not self.is_open:
            raise TransportClosed(f"device on {self.transport.url} is not open")
        self.transport.write_line(line)


__all__ = ["DeviceInfo", "TCodeDevice", "parse_limit_line"]
