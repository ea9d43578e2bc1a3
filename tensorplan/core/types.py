# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
tensorplan Core Types

Enumerations shared by every layer of the planner: operand data types,
compute types, contraction operations, selection algorithms, workspace
preferences and status codes.

Numeric values follow the HIP/hipTensor enumerations so that descriptors can
be exchanged with native code without translation tables.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional

import numpy as np


class DataType(Enum):
    """Operand element types."""

    R_32F = 0
    R_64F = 1
    R_16F = 2
    C_32F = 4
    C_64F = 5
    R_16BF = 14
    NONE = -1  # placeholder for an absent C operand


class ComputeType(Enum):
    """Accumulation types (bit flags, as in the C interface)."""

    COMPUTE_16F = 1 << 0
    COMPUTE_32F = 1 << 2
    COMPUTE_64F = 1 << 4
    COMPUTE_8U = 1 << 6
    COMPUTE_32U = 1 << 7
    COMPUTE_8I = 1 << 8
    COMPUTE_32I = 1 << 9
    COMPUTE_16BF = 1 << 10
    COMPUTE_TF32 = 1 << 12


class ContractionOpId(Enum):
    """Algebraic form of a contraction."""

    SCALE = 0  # E = alpha * A * B
    BILINEAR = 1  # E = alpha * A * B + beta * C


class Algorithm(Enum):
    """Kernel selection algorithms."""

    DEFAULT = -1
    DEFAULT_PATIENT = -6
    ACTOR_CRITIC = -8


class WorksizePreference(Enum):
    """Workspace sizing preference."""

    MIN = 1
    RECOMMENDED = 2
    MAX = 3


class StatusCode(Enum):
    """Result status codes for boundary operations."""

    SUCCESS = 0
    NOT_INITIALIZED = 1
    ALLOC_FAILED = 3
    INVALID_VALUE = 7
    ARCH_MISMATCH = 8
    EXECUTION_FAILED = 13
    INTERNAL_ERROR = 14
    NOT_SUPPORTED = 15
    INSUFFICIENT_WORKSPACE = 19


_STATUS_STRINGS = {
    StatusCode.SUCCESS: "The operation completed successfully.",
    StatusCode.NOT_INITIALIZED: "The handle, descriptor or output was not initialized.",
    StatusCode.ALLOC_FAILED: "Device memory allocation failed.",
    StatusCode.INVALID_VALUE: "An unsupported value or parameter was passed.",
    StatusCode.ARCH_MISMATCH: "The current device does not match the handle's device.",
    StatusCode.EXECUTION_FAILED: "The kernel failed to execute on the device.",
    StatusCode.INTERNAL_ERROR: "An internal error has occurred.",
    StatusCode.NOT_SUPPORTED: "The requested operation is not supported.",
    StatusCode.INSUFFICIENT_WORKSPACE: "The provided workspace was insufficient.",
}


def status_string(code: StatusCode) -> str:
    """Get the human-readable description of a status code."""
    return _STATUS_STRINGS.get(code, "Unknown status.")


@dataclass
class Status:
    """Status class for boundary operation results."""

    code: StatusCode = StatusCode.SUCCESS
    message: str = ""

    def ok(self) -> bool:
        return self.code == StatusCode.SUCCESS

    @classmethod
    def Ok(cls) -> "Status":
        return cls()

    @classmethod
    def Error(cls, code: StatusCode, message: str) -> "Status":
        return cls(code=code, message=message)

    def __bool__(self) -> bool:
        return self.ok()


_DTYPE_SIZES = {
    DataType.R_16F: 2,
    DataType.R_16BF: 2,
    DataType.R_32F: 4,
    DataType.R_64F: 8,
    DataType.C_32F: 8,
    DataType.C_64F: 16,
    DataType.NONE: 0,
}

_NUMPY_DTYPES = {
    DataType.R_16F: np.float16,
    DataType.R_32F: np.float32,
    DataType.R_64F: np.float64,
    DataType.C_32F: np.complex64,
    DataType.C_64F: np.complex128,
}


def dtype_size(dtype: DataType) -> int:
    """Get the size in bytes for a data type."""
    return _DTYPE_SIZES.get(dtype, 0)


def dtype_to_string(dtype: DataType) -> str:
    """Get string representation of data type."""
    return dtype.name.lower()


def numpy_dtype(dtype: DataType) -> Optional[type]:
    """Host element type for a data type, or None when numpy has no match."""
    return _NUMPY_DTYPES.get(dtype)


def is_complex(dtype: DataType) -> bool:
    return dtype in (DataType.C_32F, DataType.C_64F)


def real_type(dtype: DataType) -> DataType:
    """Real component type of a complex data type (identity for real types)."""
    if dtype == DataType.C_32F:
        return DataType.R_32F
    if dtype == DataType.C_64F:
        return DataType.R_64F
    return dtype
