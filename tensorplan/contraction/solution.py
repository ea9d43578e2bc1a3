# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Contraction Solutions

A solution wraps one or more catalog kernel instances behind a closed
interface:

    make_argument(descriptor, alpha, A, B, beta, C, D) -> argument
    is_supported(argument) -> bool
    workspace_size(argument) -> int
    run(argument, workspace, stream)

Arguments are context managers. Callers never inspect the concrete argument
type; they only pass it back to the solution that made it.
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np

from ..core.types import ContractionOpId, DataType
from ..errors import InvalidValueError
from ..runtime.device import Stream
from ..runtime.kernels import KernelArgument, KernelInstance
from ..runtime.memory import DeviceBuffer
from .descriptor import ContractionDescriptor


def real_scalar(value: Any, name: str) -> float:
    """Coerce a scalar coefficient to float, rejecting a non-zero imaginary part."""
    if isinstance(value, (complex, np.complexfloating)):
        if value.imag != 0:
            raise InvalidValueError(
                "complex coefficients must have a zero imaginary part",
                parameter=name,
                expected="real scalar",
                received=str(value),
            )
        value = value.real
    return float(value)


class ContractionSolution(ABC):
    """
    Base class for registry solutions.

    Attributes:
        uid: Stable identifier derived from the type string
        type_string: Kernel instance description
        signature: Operand data types (A, B, C, D)
        op: Algebraic form
        instance: Tile configuration used for heuristic scoring
    """

    def __init__(
        self,
        type_string: str,
        signature: tuple[DataType, DataType, DataType, DataType],
        op: ContractionOpId,
        instance: KernelInstance,
    ):
        self.type_string = type_string
        self.signature = signature
        self.op = op
        self.instance = instance
        # MD5 used for identification only, not for security purposes
        self.uid = hashlib.md5(type_string.encode(), usedforsecurity=False).hexdigest()[:16]

    @abstractmethod
    def make_argument(
        self,
        descriptor: ContractionDescriptor,
        alpha: Any = 1.0,
        a: Optional[DeviceBuffer] = None,
        b: Optional[DeviceBuffer] = None,
        beta: Any = 0.0,
        c: Optional[DeviceBuffer] = None,
        d: Optional[DeviceBuffer] = None,
    ):
        """Bind a descriptor, buffers and scalars. Null buffers make a probe argument."""
        pass

    @abstractmethod
    def is_supported(self, argument) -> bool:
        pass

    @abstractmethod
    def workspace_size(self, argument) -> int:
        pass

    @abstractmethod
    def run(self, argument, workspace: Optional[DeviceBuffer], stream: Stream) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(uid={self.uid}, {self.type_string})"


class RealContractionSolution(ContractionSolution):
    """Solution backed by a single real kernel instance."""

    def __init__(self, kernel: KernelInstance):
        c_type = kernel.dtype if kernel.op == ContractionOpId.BILINEAR else DataType.NONE
        super().__init__(
            type_string=kernel.type_string,
            signature=(kernel.dtype, kernel.dtype, c_type, kernel.dtype),
            op=kernel.op,
            instance=kernel,
        )
        self.kernel = kernel

    def make_argument(
        self,
        descriptor: ContractionDescriptor,
        alpha: Any = 1.0,
        a: Optional[DeviceBuffer] = None,
        b: Optional[DeviceBuffer] = None,
        beta: Any = 0.0,
        c: Optional[DeviceBuffer] = None,
        d: Optional[DeviceBuffer] = None,
    ) -> KernelArgument:
        c_desc = descriptor.c if descriptor.op == ContractionOpId.BILINEAR else None
        return self.kernel.make_argument(
            descriptor.a,
            descriptor.b,
            c_desc,
            descriptor.d,
            a=a,
            b=b,
            c=c,
            e=d,
            alpha=real_scalar(alpha, "alpha"),
            beta=real_scalar(beta, "beta"),
            alignments=descriptor.alignments,
        )

    def is_supported(self, argument: KernelArgument) -> bool:
        return self.kernel.is_supported(argument)

    def workspace_size(self, argument: KernelArgument) -> int:
        return self.kernel.workspace_size(argument)

    def run(self, argument: KernelArgument, workspace: Optional[DeviceBuffer], stream: Stream) -> None:
        stream.launch(self.type_string, self.kernel.run, argument, workspace)
