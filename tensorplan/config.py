# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Planner Configuration

Process-wide settings for the simulated runtime and the selection models.
Defaults can be overridden through TENSORPLAN_* environment variables:

    TENSORPLAN_DEVICE_COUNT       number of enumerated devices
    TENSORPLAN_DEVICE_MEMORY_MB   memory per device
    TENSORPLAN_SUPPORTS_F64       "0"/"1", 64-bit float contraction support
    TENSORPLAN_COMPUTE_UNITS      compute units per device
    TENSORPLAN_DEFAULT_WARMUP     untimed runs per candidate (DEFAULT)
    TENSORPLAN_DEFAULT_REPEATS    timed runs per candidate (DEFAULT)
    TENSORPLAN_PATIENT_WARMUP     untimed runs per candidate (DEFAULT_PATIENT)
    TENSORPLAN_PATIENT_REPEATS    timed runs per candidate (DEFAULT_PATIENT)
    TENSORPLAN_SEED               seed for brute-force input data
"""

import os
import threading
from dataclasses import dataclass, fields, replace
from typing import Optional

from .errors import ConfigurationError


_ENV_PREFIX = "TENSORPLAN_"


@dataclass(frozen=True)
class PlannerConfig:
    """Settings for device simulation and kernel selection."""

    device_count: int = 1
    device_memory_mb: int = 4096
    supports_f64: bool = True
    compute_units: int = 104
    default_warmup: int = 0
    default_repeats: int = 1
    patient_warmup: int = 3
    patient_repeats: int = 10
    seed: int = 0

    def __post_init__(self):
        if self.device_count < 1:
            raise ConfigurationError(
                "at least one device is required",
                config_key="device_count",
                config_value=str(self.device_count),
            )
        for name in ("default_repeats", "patient_repeats"):
            if getattr(self, name) < 1:
                raise ConfigurationError(
                    "timed repeats must be positive",
                    config_key=name,
                    config_value=str(getattr(self, name)),
                )
        for name in ("default_warmup", "patient_warmup", "device_memory_mb"):
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    "value must be non-negative",
                    config_key=name,
                    config_value=str(getattr(self, name)),
                )

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "PlannerConfig":
        """Build a configuration from TENSORPLAN_* environment variables."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            overrides[f.name] = _parse(f.name, raw, f.type)
        return cls(**overrides)

    def with_overrides(self, **kwargs) -> "PlannerConfig":
        return replace(self, **kwargs)


def _parse(name: str, raw: str, annotation) -> object:
    if annotation in (bool, "bool"):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigurationError(
            "expected a boolean", config_key=name, config_value=raw
        )
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            "expected an integer", config_key=name, config_value=raw
        ) from None


_config: Optional[PlannerConfig] = None
_config_lock = threading.Lock()


def get_config() -> PlannerConfig:
    """Get the global configuration (lazy initialization from environment)."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = PlannerConfig.from_env()
    return _config


def set_config(config: PlannerConfig) -> None:
    """Replace the global configuration."""
    global _config
    with _config_lock:
        _config = config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    with _config_lock:
        _config = None
