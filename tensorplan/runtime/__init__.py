# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
tensorplan Runtime Module

Simulated accelerator runtime and the compiled kernel-instance catalog.
"""

from .memory import ALLOCATION_ALIGNMENT, AllocationInfo, DeviceBuffer, DeviceMemoryManager
from .device import (
    Device,
    DeviceManager,
    DeviceProperties,
    Event,
    Handle,
    Stream,
    create_handle,
    device_count,
    get_current_device,
    get_device_manager,
    reset_device_manager,
    set_device,
)
from .kernels import (
    KernelArgument,
    KernelInstance,
    ProblemShape,
    build_catalog,
    problem_shape,
    strided_view,
)

__all__ = [
    "ALLOCATION_ALIGNMENT",
    "AllocationInfo",
    "DeviceBuffer",
    "DeviceMemoryManager",
    "Device",
    "DeviceManager",
    "DeviceProperties",
    "Event",
    "Handle",
    "Stream",
    "create_handle",
    "device_count",
    "get_current_device",
    "get_device_manager",
    "reset_device_manager",
    "set_device",
    "KernelArgument",
    "KernelInstance",
    "ProblemShape",
    "build_catalog",
    "problem_shape",
    "strided_view",
]
