"""Configuration objects for funlib.

Settings live in one YAML file with a block per component (``device``,
``smoothing``, ``merge``, ``playback``, ``output``). The typed dataclasses in
:mod:`runtime` are what the CLI and the device/playback wiring read.
"""

from .runtime import (
    CONFIG_ENV_VAR,
    DeviceConfig,
    FunlibConfig,
    MergeConfig,
    OutputConfig,
    PlaybackConfig,
    SmoothingConfig,
    config_from_mapping,
    load_config,
)

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
