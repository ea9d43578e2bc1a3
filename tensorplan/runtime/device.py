# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Device Runtime

Device enumeration, per-thread current device, streams and timing events.

Devices are simulated on the host: each one owns a DeviceMemoryManager and
reports the properties the planner queries (memory, compute units and
64-bit float support). Streams execute submitted work in order, at submit
time, and keep a bounded record of recent launches so callers can audit what ran.

Example:
    from tensorplan.runtime import get_device_manager, create_handle

    handle = create_handle()
    stream = get_device_manager().current().default_stream
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..config import PlannerConfig, get_config
from ..errors import InvalidValueError
from .memory import DeviceMemoryManager

logger = logging.getLogger("tensorplan.runtime.device")


@dataclass(frozen=True)
class DeviceProperties:
    """Static properties of one device."""

    device_id: int
    name: str
    arch: str
    total_memory: int
    compute_units: int
    supports_f64: bool = True
    warp_size: int = 64


class Event:
    """Timing event. Recorded on a stream, compared with elapsed_ms()."""

    def __init__(self):
        self.timestamp: Optional[float] = None

    def record(self, stream: Optional["Stream"] = None) -> None:
        if stream is not None:
            stream.synchronize()
        self.timestamp = time.perf_counter()

    @staticmethod
    def elapsed_ms(start: "Event", end: "Event") -> float:
        """Milliseconds between two recorded events."""
        if start.timestamp is None or end.timestamp is None:
            raise InvalidValueError(
                "event was never recorded", parameter="event"
            )
        return (end.timestamp - start.timestamp) * 1000.0


class Stream:
    """
    In-order work queue bound to one device.

    Only the most recent history_limit labels are kept; launch_count
    counts every launch since creation or the last clear_history().

    Attributes:
        device_id: Device the stream submits to
        history_limit: Number of launch labels retained
    """

    HISTORY_LIMIT = 1024

    def __init__(self, device_id: int, history_limit: int = HISTORY_LIMIT):
        self.device_id = device_id
        self.history_limit = history_limit
        self._history: deque[str] = deque(maxlen=history_limit)
        self._count = 0
        self._lock = threading.Lock()

    def launch(self, label: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Submit one unit of work and run it to completion."""
        with self._lock:
            self._history.append(label)
            self._count += 1
        return fn(*args, **kwargs)

    @property
    def launches(self) -> list[str]:
        """Retained launch labels, oldest first."""
        with self._lock:
            return list(self._history)

    @property
    def launch_count(self) -> int:
        return self._count

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
            self._count = 0

    def synchronize(self) -> None:
        """Wait for all submitted work. Work runs at submission, so this returns immediately."""

    def __repr__(self) -> str:
        return f"Stream(device={self.device_id}, launches={self.launch_count})"


class Device:
    """One enumerated device: properties, allocator and default stream."""

    def __init__(self, properties: DeviceProperties):
        self.properties = properties
        self.memory = DeviceMemoryManager(properties.device_id, properties.total_memory)
        self.default_stream = Stream(properties.device_id)

    @property
    def device_id(self) -> int:
        return self.properties.device_id

    def create_stream(self) -> Stream:
        return Stream(self.device_id)

    def __repr__(self) -> str:
        return f"Device({self.device_id}, {self.properties.name})"


class DeviceManager:
    """
    Enumerates devices and tracks the calling thread's current device.

    Thread Safety: the current device is thread-local; enumeration is
    fixed at construction.
    """

    def __init__(self, config: Optional[PlannerConfig] = None):
        config = config or get_config()
        self._devices = [
            Device(
                DeviceProperties(
                    device_id=i,
                    name=f"Simulated Accelerator {i}",
                    arch="gfx942",
                    total_memory=config.device_memory_mb * 1024 * 1024,
                    compute_units=config.compute_units,
                    supports_f64=config.supports_f64,
                )
            )
            for i in range(config.device_count)
        ]
        self._local = threading.local()
        logger.debug(f"Enumerated {len(self._devices)} device(s)")

    def device_count(self) -> int:
        return len(self._devices)

    def get_device(self, device_id: int) -> Device:
        if not 0 <= device_id < len(self._devices):
            raise InvalidValueError(
                "device ordinal out of range",
                parameter="device_id",
                expected=f"0..{len(self._devices) - 1}",
                received=str(device_id),
            )
        return self._devices[device_id]

    def current_device_id(self) -> int:
        return getattr(self._local, "device_id", 0)

    def current(self) -> Device:
        return self._devices[self.current_device_id()]

    def set_device(self, device_id: int) -> None:
        self.get_device(device_id)
        self._local.device_id = device_id


_manager: Optional[DeviceManager] = None
_manager_lock = threading.Lock()


def get_device_manager() -> DeviceManager:
    """Get the global device manager (lazy initialization)."""
    global _manager
    if _manager is None:
        with _manager_lock:
            if _manager is None:
                _manager = DeviceManager()
    return _manager


def reset_device_manager() -> None:
    """Reset the global device manager (for testing)."""
    global _manager
    with _manager_lock:
        _manager = None


def get_current_device() -> Device:
    return get_device_manager().current()


def set_device(device_id: int) -> None:
    """Make device_id current for the calling thread."""
    get_device_manager().set_device(device_id)


def device_count() -> int:
    return get_device_manager().device_count()


class Handle:
    """Library handle bound to the device that was current at creation."""

    def __init__(self, device_id: int):
        self.device_id = device_id

    @property
    def device(self) -> Device:
        return get_device_manager().get_device(self.device_id)

    def __repr__(self) -> str:
        return f"Handle(device={self.device_id})"


def create_handle() -> Handle:
    return Handle(get_device_manager().current_device_id())
