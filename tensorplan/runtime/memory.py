# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Memory Manager - device memory allocation and tracking.

This module provides:
1. Device buffers with allocator-grade (256 byte) alignment
2. Per-device allocation tracking (live, total, peak)
3. Host <-> device copies

Buffers are host-resident numpy storage standing in for device memory, so
kernels in the catalog can address them directly.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..errors import AllocationError

logger = logging.getLogger("tensorplan.runtime.memory")

ALLOCATION_ALIGNMENT = 256


@dataclass
class AllocationInfo:
    """Information about a memory allocation."""

    ptr: int  # Memory address as integer
    size_bytes: int
    device_id: int
    tag: str = ""


class DeviceBuffer:
    """
    A block of device memory.

    Attributes:
        ptr: Address of the first byte (aligned to ALLOCATION_ALIGNMENT)
        nbytes: Usable size in bytes
        device_id: Owning device
    """

    def __init__(self, nbytes: int, device_id: int, tag: str = ""):
        self.nbytes = int(nbytes)
        self.device_id = device_id
        self.tag = tag
        raw = np.zeros(self.nbytes + ALLOCATION_ALIGNMENT, dtype=np.uint8)
        offset = (-raw.ctypes.data) % ALLOCATION_ALIGNMENT
        self._raw = raw
        self._data = raw[offset : offset + self.nbytes]
        self.freed = False

    @property
    def ptr(self) -> int:
        return self._data.ctypes.data

    def view(self, dtype) -> np.ndarray:
        """Flat typed view over the whole buffer."""
        if self.freed:
            raise AllocationError(
                f"use of freed buffer '{self.tag}'", device=self.device_id
            )
        dtype = np.dtype(dtype)
        count = self.nbytes // dtype.itemsize
        return self._data[: count * dtype.itemsize].view(dtype)

    def fill_zero(self) -> None:
        self._data[:] = 0

    def __repr__(self) -> str:
        return (
            f"DeviceBuffer(ptr=0x{self.ptr:x}, nbytes={self.nbytes}, "
            f"device={self.device_id}, tag='{self.tag}')"
        )


class DeviceMemoryManager:
    """
    Manages memory for one device.

    Features:
    - Capacity-checked allocation
    - Live allocation tracking
    - Peak usage tracking

    Thread Safety: All operations are protected by a lock.

    Example:
        manager = DeviceMemoryManager(device_id=0, capacity_bytes=1 << 30)
        buf = manager.allocate(1024, tag="workspace")
        manager.free(buf)
    """

    def __init__(self, device_id: int, capacity_bytes: int):
        self.device_id = device_id
        self.capacity_bytes = capacity_bytes
        self._allocations: dict[int, AllocationInfo] = {}
        self._total_allocated = 0
        self._peak_allocated = 0
        self._lock = threading.Lock()

    def allocate(self, nbytes: int, tag: str = "") -> DeviceBuffer:
        """
        Allocate device memory.

        Args:
            nbytes: Required size in bytes
            tag: Label used in diagnostics

        Returns:
            The new buffer

        Raises:
            AllocationError: If the request exceeds the remaining capacity
        """
        if nbytes < 0:
            raise AllocationError(
                "negative allocation size", requested_bytes=nbytes, device=self.device_id
            )
        with self._lock:
            available = self.capacity_bytes - self._total_allocated
            if nbytes > available:
                raise AllocationError(
                    "out of device memory",
                    requested_bytes=nbytes,
                    available_bytes=available,
                    device=self.device_id,
                )
            buf = DeviceBuffer(nbytes, self.device_id, tag)
            self._allocations[id(buf)] = AllocationInfo(
                ptr=buf.ptr, size_bytes=nbytes, device_id=self.device_id, tag=tag
            )
            self._total_allocated += nbytes
            self._peak_allocated = max(self._peak_allocated, self._total_allocated)

        logger.debug(f"allocated {nbytes} bytes on device {self.device_id} ({tag})")
        return buf

    def free(self, buf: Optional[DeviceBuffer]) -> None:
        """Free an allocation. Freeing None or an already freed buffer is a no-op."""
        if buf is None:
            return
        with self._lock:
            info = self._allocations.pop(id(buf), None)
            if info is None:
                return
            self._total_allocated -= info.size_bytes
            buf.freed = True

    def copy_to_device(self, host: np.ndarray, tag: str = "") -> DeviceBuffer:
        """Allocate a buffer and copy a host array into it."""
        host = np.ascontiguousarray(host)
        buf = self.allocate(host.nbytes, tag=tag)
        buf.view(np.uint8)[:] = host.reshape(-1).view(np.uint8)
        return buf

    def copy_to_host(self, buf: DeviceBuffer, dtype, count: Optional[int] = None) -> np.ndarray:
        """Copy a buffer back to a new host array of the given element type."""
        data = buf.view(dtype)
        if count is not None:
            data = data[:count]
        return data.copy()

    @property
    def live_allocations(self) -> int:
        """Number of buffers currently allocated."""
        with self._lock:
            return len(self._allocations)

    @property
    def total_allocated_bytes(self) -> int:
        return self._total_allocated

    @property
    def peak_allocated_bytes(self) -> int:
        return self._peak_allocated

    def summary(self) -> dict:
        """Get memory manager summary."""
        with self._lock:
            return {
                "device": self.device_id,
                "num_allocations": len(self._allocations),
                "total_allocated_mb": self._total_allocated / (1024 * 1024),
                "peak_allocated_mb": self._peak_allocated / (1024 * 1024),
                "capacity_mb": self.capacity_bytes / (1024 * 1024),
            }
