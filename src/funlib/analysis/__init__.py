"""Curve transforms and statistics (peaks, simplification, smoothing, speeds).

These helpers take plain lists of :class:`~funlib.core.Action`, never mutate
their input, and treat lists shorter than two points as a no-op. NumPy does
the per-pair speed arithmetic.
"""

from .features import ChannelStats, average_speed, channel_stats, required_max_speed
from .peaks import actions_to_zigzag, connect_segments, peak_kinds, speeds, split_to_segments
from .simplify import line_deviation, simplify_linear_curve
from .smoothing import PeakSpeedLimit, device_smooth, limit_peak_speed, moving_average, smooth_curve

__all__ = [
    "ChannelStats",
    "average_speed",
    "channel_stats",
    "required_max_speed",
    "actions_to_zigzag",
    "connect_segments",
    "peak_kinds",
    "speeds",
    "split_to_segments",
    "line_deviation",
    "simplify_linear_curve",
    "PeakSpeedLimit",
    "device_smooth",
    "limit_peak_speed",
    "moving_average",
    "smooth_curve",
]
