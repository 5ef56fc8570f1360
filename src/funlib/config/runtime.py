"""Runtime configuration for merging, smoothing, playback and device I/O."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Type, TypeVar

import yaml

from ..dataio.formats import DEFAULT_VERSION, VERSIONS
from ..merge.multi_axis import MissingPrimaryPolicy

CONFIG_ENV_VAR = "FUNLIB_CONFIG"

_T = TypeVar("_T")


def _finite(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


@dataclass(slots=True)
class DeviceConfig:
    """Serial port settings. ``port`` accepts any pyserial URL."""

    port: Optional[str] = None
    baudrate: int = 115200
    poll_interval_s: float = 0.05
    handshake_timeout_s: Optional[float] = None

    def sanitized(self) -> DeviceConfig:
        timeout = self.handshake_timeout_s
        if timeout is not None:
            timeout = _finite(timeout, 0.0)
            timeout = timeout if timeout > 0 else None
        return DeviceConfig(
            port=str(self.port) if self.port else None,
            baudrate=max(1, int(self.baudrate)),
            poll_interval_s=max(0.001, _finite(self.poll_interval_s, 0.05)),
            handshake_timeout_s=timeout,
        )


@dataclass(slots=True)
class SmoothingConfig:
    """Limits for device smoothing and peak speed limiting."""

    max_speed: float = 550.0
    min_interval_ms: float = 60.0
    straight_threshold: float = 3.0
    max_passes: int = 10

    def sanitized(self) -> SmoothingConfig:
        return SmoothingConfig(
            max_speed=max(1.0, _finite(self.max_speed, 550.0)),
            min_interval_ms=max(0.0, _finite(self.min_interval_ms, 60.0)),
            straight_threshold=max(0.0, _finite(self.straight_threshold, 3.0)),
            max_passes=max(1, int(self.max_passes)),
        )


@dataclass(slots=True)
class MergeConfig:
    missing_stroke: str = MissingPrimaryPolicy.ERROR.value
    combine_single_secondary_channel: bool = False

    def sanitized(self) -> MergeConfig:
        # raises ValueError for unknown policy names
        policy = MissingPrimaryPolicy(str(self.missing_stroke).strip().lower())
        return MergeConfig(
            missing_stroke=policy.value,
            combine_single_secondary_channel=bool(self.combine_single_secondary_channel),
        )


@dataclass(slots=True)
class PlaybackConfig:
    tick_interval_ms: float = 4.0
    resync_every: int = 250

    def sanitized(self) -> PlaybackConfig:
        return PlaybackConfig(
            tick_interval_ms=max(1.0, _finite(self.tick_interval_ms, 4.0)),
            resync_every=max(0, int(self.resync_every)),
        )

    @property
    def tick_interval_s(self) -> float:
        return self.tick_interval_ms / 1000.0


@dataclass(slots=True)
class OutputConfig:
    version: str = DEFAULT_VERSION
    line_length: int = 100

    def sanitized(self) -> OutputConfig:
        version = str(self.version)
        if version not in VERSIONS:
            raise ValueError(f"Unknown funscript version {version!r}; expected one of {', '.join(VERSIONS)}")
        return OutputConfig(version=version, line_length=max(20, int(self.line_length)))


@dataclass(slots=True)
class FunlibConfig:
    """All tunable settings, grouped by the component that reads them."""

    device: DeviceConfig = field(default_factory=DeviceConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    merge: MergeConfig = field(default_factory=MergeConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def sanitized(self) -> FunlibConfig:
        """Return a copy with every section clamped to usable values."""
        return FunlibConfig(
            device=self.device.sanitized(),
            smoothing=self.smoothing.sanitized(),
            merge=self.merge.sanitized(),
            playback=self.playback.sanitized(),
            output=self.output.sanitized(),
        )


def _section(cls: Type[_T], data: Any) -> _T:
    """Build one section dataclass from ``data`` (ignoring unknown keys)."""
    if not isinstance(data, Mapping):
        return cls()
    known = {f.name for f in fields(cls)}
    payload = {key: data[key] for key in data.keys() & known}
    return cls(**payload)


def config_from_mapping(data: Mapping[str, Any] | None) -> FunlibConfig:
    """Build :class:`FunlibConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return FunlibConfig()
    return FunlibConfig(
        device=_section(DeviceConfig, data.get("device")),
        smoothing=_section(SmoothingConfig, data.get("smoothing")),
        merge=_section(MergeConfig, data.get("merge")),
        playback=_section(PlaybackConfig, data.get("playback")),
        output=_section(OutputConfig, data.get("output")),
    ).sanitized()


def load_config(path: str | Path | None = None) -> FunlibConfig:
    """
    Load configuration from ``path`` (or ``$FUNLIB_CONFIG`` when omitted).

    Missing files fall back to default :class:`FunlibConfig`.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None
    if path is None:
        return FunlibConfig()
    cfg_path = Path(path).expanduser()
    if not cfg_path.exists():
        return FunlibConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


__all__ = [
    "CONFIG_ENV_VAR",
    "DeviceConfig",
    "FunlibConfig",
    "MergeConfig",
    "OutputConfig",
    "PlaybackConfig",
    "SmoothingConfig",
    "config_from_mapping",
    "load_config",
]
