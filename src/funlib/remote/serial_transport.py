"""Line-oriented serial transport with a background read pump."""

from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, List, Optional

import serial

from ..errors import TransportClosed, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200
DEFAULT_READ_TIMEOUT_S = 0.05

PortFactory = Callable[..., Any]


class TransportState(Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


class LineBuffer:
    """Thread-safe splitter turning received text into complete lines.

    The read pump feeds raw chunks; any number of readers pop finished lines.
    A trailing partial line is held back until its newline arrives.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._partial = ""
        self._lines: Deque[str] = deque()

    def feed(self, text: str) -> None:
        with self._lock:
            parts = (self._partial + text).split("\n")
            self._partial = parts.pop()
            self._lines.extend(part.rstrip("\r") for part in parts)

    def pop_line(self) -> Optional[str]:
        with self._lock:
            return self._lines.popleft() if self._lines else None

    def drain(self) -> List[str]:
        with self._lock:
            lines = list(self._lines)
            self._lines.clear()
            return lines

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()
            self._partial = ""

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)


class SerialTransport:
    """
    Duplex text stream over a pyserial port.

    ``url`` is anything :func:`serial.serial_for_url` accepts (``/dev/ttyUSB0``,
    ``COM3``, ``loop://``, ``socket://host:port``). A daemon thread reads
    continuously into :attr:`lines`, independent of who is waiting for what.
    """

    def __init__(
        self,
        url: str,
        baudrate: int = DEFAULT_BAUDRATE,
        *,
        read_timeout: float = DEFAULT_READ_TIMEOUT_S,
        encoding: str = "ascii",
        port_factory: Optional[PortFactory] = None,
    ) -> None:
        self.url = url
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self.encoding = encoding
        self.lines = LineBuffer()
        self._factory = port_factory or serial.serial_for_url
        self._port: Any = None
        self.state = TransportState.CLOSED
        self._stop_event = threading.Event()
        self._pump: Optional[threading.Thread] = None
        self._write_lock = threading.Lock()
        self.pump_error: Optional[BaseException] = None

    # ------------------------------------------------------------------ state
    @property
    def is_connected(self) -> bool:
        return self._port is not None

    # ------------------------------------------------------------------ lifecycle
    def connect(self) -> None:
        if self._port is not None:
            return
        logger.info("Opening serial port %s at %d baud", self.url, self.baudrate)
        self.state = TransportState.OPENING
        try:
            port = self._factory(self.url, baudrate=self.baudrate, timeout=self.read_timeout)
        except (serial.SerialException, OSError, ValueError) as exc:
            self.state = TransportState.CLOSED
            raise TransportError(f"could not open {self.url}: {exc}") from exc

        self._port = port
        self.state = TransportState.OPEN
        self.pump_error = None
        self.lines.clear()
        self._stop_event.clear()
        self._pump = threading.Thread(target=self._read_loop, args=(port,), name="FunlibSerialPump", daemon=True)
        self._pump.start()

    def _read_loop(self, port: Any) -> None:
        while not self._stop_event.is_set():
            try:
                chunk = port.read(port.in_waiting or 1)
            except (serial.SerialException, OSError, TypeError, AttributeError) as exc:
                if not self._stop_event.is_set():
                    logger.warning("Serial read from %s failed: %s", self.url, exc)
                    self.pump_error = exc
                break
            if chunk:
                text = chunk.decode(self.encoding, errors="replace")
                logger.debug("<< %r", text)
                self.lines.feed(text)

    def write_line(self, line: str) -> None:
        """Send *line*, appending a newline if it has none."""
        port = self._port
        if port is None:
            raise TransportClosed(f"serial port {self.url} is not open")
        if not line.endswith("\n"):
            line += "\n"
        logger.debug(">> %r", line)
        try:
            with self._write_lock:
                port.write(line.encode(self.encoding))
                port.flush()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"write to {self.url} failed: {exc}") from exc

    def close(self) -> None:
        """
        Stop the pump and release the port. Safe to call repeatedly.

        Errors raised while tearing down are logged, not propagated.
        """
        self._stop_event.set()
        self.state = TransportState.CLOSED
        port, self._port = self._port, None
        if port is not None:
            cancel = getattr(port, "cancel_read", None)
            if cancel is not None:
                try:
                    cancel()
                except Exception:
                    logger.debug("cancel_read on %s failed", self.url, exc_info=True)
            try:
                port.close()
            except Exception:
                logger.warning("Closing serial port %s failed", self.url, exc_info=True)
            else:
                logger.info("Closed serial port %s", self.url)

        pump, self._pump = self._pump, None
        if pump is not None and pump is not threading.current_thread():
            pump.join(timeout=1.0)
            if pump.is_alive():
                logger.warning("Serial read pump for %s did not stop", self.url)


__all__ = ["DEFAULT_BAUDRATE", "LineBuffer", "SerialTransport", "TransportState"]
