"""Device transport: TCode wire encoding and serial sessions."""

from .device import DeviceInfo, TCodeDevice, parse_limit_line
from .serial_transport import LineBuffer, SerialTransport, TransportState
from .wire import AxisLimit, encode_command, encode_commands, to_mantissa

__all__ = [
    "AxisLimit",
    "DeviceInfo",
    "LineBuffer",
    "SerialTransport",
    "TCodeDevice",
    "TransportState",
    "encode_command",
    "encode_commands",
    "parse_limit_line",
    "to_mantissa",
]
