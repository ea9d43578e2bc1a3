# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""tensorplan Core Module"""

from .types import (
    DataType,
    ComputeType,
    ContractionOpId,
    Algorithm,
    WorksizePreference,
    StatusCode,
    Status,
    dtype_size,
    dtype_to_string,
    numpy_dtype,
    is_complex,
    real_type,
    status_string,
)
from .tensor import TensorDescriptor, row_major_strides

__all__ = [
    "DataType",
    "ComputeType",
    "ContractionOpId",
    "Algorithm",
    "WorksizePreference",
    "StatusCode",
    "Status",
    "dtype_size",
    "dtype_to_string",
    "numpy_dtype",
    "is_complex",
    "real_type",
    "status_string",
    "TensorDescriptor",
    "row_major_strides",
]
