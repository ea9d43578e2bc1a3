# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
tensorplan Public API

Status-returning entry points. Every call returns a Status, paired with
its output value where the operation produces one (None on failure).
Exceptions raised by the object layer are converted here and never
cross this boundary.

Example:
    from tensorplan import api
    from tensorplan.core import Algorithm, DataType, WorksizePreference

    status, handle = api.create_handle()
    status, a = api.init_tensor_descriptor(handle, [5, 6, 3, 4], None, DataType.R_32F)
    ...
    status, find = api.init_contraction_find(handle, Algorithm.DEFAULT)
    status, size = api.contraction_get_workspace_size(
        handle, desc, find, WorksizePreference.RECOMMENDED
    )
    status, plan = api.init_contraction_plan(handle, desc, find, size)
    status = api.contraction(handle, plan, 1.0, A, B, 1.0, C, D, ws, size)
"""

import logging
from typing import Any, Optional, Sequence

from .contraction.descriptor import ContractionDescriptor
from .contraction.plan import ContractionFind, ContractionPlan
from .contraction.workspace import get_workspace_size
from .core.tensor import TensorDescriptor
from .core.types import ComputeType, DataType, Status, StatusCode, status_string
from .errors import InvalidValueError, NotInitializedError, TensorPlanError, status_from_exception
from .observability import get_logger
from .runtime.device import Handle, Stream
from .runtime.device import create_handle as _create_handle
from .runtime.memory import ALLOCATION_ALIGNMENT, DeviceBuffer

logger = logging.getLogger("tensorplan.api")


def _failure(operation: str, exc: Exception) -> Status:
    if isinstance(exc, TensorPlanError):
        status = status_from_exception(exc)
        logger.warning(f"{operation} failed with {status.code.name}: {exc.message}")
        get_logger().failure(operation, status.code.name, exc.message)
        return status
    logger.exception(f"{operation} failed with an unexpected error")
    get_logger().failure(operation, StatusCode.INTERNAL_ERROR.name, str(exc))
    return Status.Error(StatusCode.INTERNAL_ERROR, str(exc))


def create_handle() -> tuple[Status, Optional[Handle]]:
    """Create a handle bound to the calling thread's current device."""
    try:
        return Status.Ok(), _create_handle()
    except Exception as e:
        return _failure("create_handle", e), None


def init_tensor_descriptor(
    handle: Optional[Handle],
    lengths: Sequence[int],
    strides: Optional[Sequence[int]],
    dtype,
) -> tuple[Status, Optional[TensorDescriptor]]:
    """
    Describe one operand. Strides default to row-major when None.

    Returns INVALID_VALUE for an unknown data type or malformed shape.
    """
    try:
        if handle is None:
            raise NotInitializedError("handle")
        try:
            dtype = DataType(dtype)
        except ValueError:
            raise InvalidValueError(
                "unknown data type", parameter="dtype", received=str(dtype)
            ) from None
        if dtype == DataType.NONE:
            raise InvalidValueError("operands must have a data type", parameter="dtype")
        try:
            desc = TensorDescriptor.create(lengths, strides, dtype)
        except ValueError as e:
            raise InvalidValueError(str(e), parameter="lengths") from None
        return Status.Ok(), desc
    except Exception as e:
        return _failure("init_tensor_descriptor", e), None


def get_alignment_requirement(
    handle: Optional[Handle],
    buffer: Optional[DeviceBuffer],
    descriptor: Optional[TensorDescriptor],
) -> tuple[Status, Optional[int]]:
    """Alignment in bytes the buffer guarantees, capped at the allocator alignment."""
    try:
        if handle is None:
            raise NotInitializedError("handle")
        if descriptor is None:
            raise NotInitializedError("tensor descriptor")
        if buffer is None:
            raise InvalidValueError("buffer must not be null", parameter="buffer")
        ptr = buffer.ptr
        alignment = ptr & -ptr if ptr else ALLOCATION_ALIGNMENT
        return Status.Ok(), min(alignment, ALLOCATION_ALIGNMENT)
    except Exception as e:
        return _failure("get_alignment_requirement", e), None


def init_contraction_descriptor(
    handle: Optional[Handle],
    a: Optional[TensorDescriptor],
    align_a: int,
    b: Optional[TensorDescriptor],
    align_b: int,
    c: Optional[TensorDescriptor],
    align_c: int,
    d: Optional[TensorDescriptor],
    align_d: int,
    compute_type=ComputeType.COMPUTE_32F,
) -> tuple[Status, Optional[ContractionDescriptor]]:
    """
    Build a contraction descriptor. Passing c=None describes a SCALE
    contraction; otherwise the contraction is BILINEAR.
    """
    try:
        if handle is None:
            raise NotInitializedError("handle")
        try:
            compute_type = ComputeType(compute_type)
        except ValueError:
            raise InvalidValueError(
                "unknown compute type", parameter="compute_type", received=str(compute_type)
            ) from None
        desc = ContractionDescriptor.create(
            a, align_a, b, align_b, c, align_c, d, align_d, compute_type
        )
        return Status.Ok(), desc
    except Exception as e:
        return _failure("init_contraction_descriptor", e), None


def init_contraction_find(handle: Optional[Handle], algorithm) -> tuple[Status, Optional[ContractionFind]]:
    """Gather candidate solutions for the handle's device."""
    try:
        return Status.Ok(), ContractionFind.create(handle, algorithm)
    except Exception as e:
        return _failure("init_contraction_find", e), None


def contraction_get_workspace_size(
    handle: Optional[Handle],
    descriptor: Optional[ContractionDescriptor],
    find: Optional[ContractionFind],
    preference,
) -> tuple[Status, Optional[int]]:
    """Workspace bytes for a descriptor under a MIN, RECOMMENDED or MAX preference."""
    try:
        for name, value in (("handle", handle), ("descriptor", descriptor), ("find", find)):
            if value is None:
                raise NotInitializedError(name)
        size = get_workspace_size(descriptor, find.candidates, preference, handle.device)
        return Status.Ok(), size
    except Exception as e:
        return _failure("contraction_get_workspace_size", e), None


def init_contraction_plan(
    handle: Optional[Handle],
    descriptor: Optional[ContractionDescriptor],
    find: Optional[ContractionFind],
    workspace_size: int,
) -> tuple[Status, Optional[ContractionPlan]]:
    """Select a solution and bind it to the descriptor."""
    try:
        return Status.Ok(), ContractionPlan.create(handle, descriptor, find, workspace_size)
    except Exception as e:
        return _failure("init_contraction_plan", e), None


def contraction(
    handle: Optional[Handle],
    plan: Optional[ContractionPlan],
    alpha: Any,
    a: Optional[DeviceBuffer],
    b: Optional[DeviceBuffer],
    beta: Any,
    c: Optional[DeviceBuffer],
    d: Optional[DeviceBuffer],
    workspace: Optional[DeviceBuffer],
    workspace_size: int,
    stream: Optional[Stream] = None,
) -> Status:
    """Execute a plan: D = alpha * A B (+ beta * C)."""
    try:
        if handle is None:
            raise NotInitializedError("handle")
        if plan is None:
            raise NotInitializedError("plan")
        plan.execute(handle, alpha, a, b, beta, c, d, workspace, workspace_size, stream)
        return Status.Ok()
    except Exception as e:
        return _failure("contraction", e)


def get_error_string(code) -> str:
    """Human-readable description of a status code."""
    try:
        return status_string(StatusCode(code))
    except ValueError:
        return "Unknown status."
