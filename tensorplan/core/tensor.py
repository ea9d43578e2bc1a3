# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tensor Descriptor
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from .types import DataType, dtype_size, dtype_to_string


def row_major_strides(lengths: Sequence[int]) -> tuple[int, ...]:
    """Packed strides with the last dimension changing fastest."""
    strides = [0] * len(lengths)
    running = 1
    for i in range(len(lengths) - 1, -1, -1):
        strides[i] = running
        running *= int(lengths[i])
    return tuple(strides)


@dataclass(frozen=True)
class TensorDescriptor:
    """
    Describes one contraction operand without holding actual data.

    Strides are in elements, not bytes. Descriptors are immutable and are
    embedded by value in contraction descriptors and plans.
    """

    lengths: tuple[int, ...]
    strides: tuple[int, ...]
    dtype: DataType = DataType.R_32F

    @classmethod
    def create(
        cls,
        lengths: Sequence[int],
        strides: Optional[Sequence[int]] = None,
        dtype: DataType = DataType.R_32F,
    ) -> "TensorDescriptor":
        """Build a descriptor, deriving row-major strides when omitted."""
        lengths = tuple(int(l) for l in lengths)
        if strides is None:
            strides = row_major_strides(lengths)
        strides = tuple(int(s) for s in strides)
        if len(lengths) != len(strides):
            raise ValueError(
                f"lengths and strides must have the same rank "
                f"({len(lengths)} != {len(strides)})"
            )
        if any(l < 0 for l in lengths) or any(s < 0 for s in strides):
            raise ValueError("lengths and strides must be non-negative")
        return cls(lengths=lengths, strides=strides, dtype=dtype)

    @classmethod
    def placeholder(cls, rank: int) -> "TensorDescriptor":
        """Sentinel for an absent operand: no type, zero-length shape."""
        return cls(lengths=(0,) * rank, strides=(0,) * rank, dtype=DataType.NONE)

    @property
    def rank(self) -> int:
        return len(self.lengths)

    @property
    def is_placeholder(self) -> bool:
        return self.dtype == DataType.NONE

    def element_count(self) -> int:
        """Number of logical elements."""
        if not self.lengths:
            return 0
        result = 1
        for l in self.lengths:
            result *= l
        return result

    def element_space(self) -> int:
        """Number of elements a buffer must hold to address every element."""
        if not self.lengths or any(l == 0 for l in self.lengths):
            return 0
        return 1 + sum((l - 1) * s for l, s in zip(self.lengths, self.strides))

    def size_bytes(self) -> int:
        """Calculate the addressable size in bytes."""
        return self.element_space() * dtype_size(self.dtype)

    def __repr__(self) -> str:
        return (
            f"TensorDescriptor(lengths={list(self.lengths)}, "
            f"strides={list(self.strides)}, dtype={dtype_to_string(self.dtype)})"
        )
