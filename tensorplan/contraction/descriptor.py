# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Contraction Descriptor

Four operand slots (A, B, C, D), their alignment requirements, the compute
type and the operation tag. A descriptor without C is a SCALE contraction
whose C slot holds a placeholder of D's rank.
"""

from dataclasses import dataclass
from typing import Optional

from ..core.tensor import TensorDescriptor
from ..core.types import ComputeType, ContractionOpId, DataType, is_complex
from ..errors import NotInitializedError


@dataclass(frozen=True)
class ContractionDescriptor:
    op: ContractionOpId
    compute_type: ComputeType
    operands: tuple[TensorDescriptor, TensorDescriptor, TensorDescriptor, TensorDescriptor]
    alignments: tuple[int, int, int, int]

    @classmethod
    def create(
        cls,
        a: TensorDescriptor,
        align_a: int,
        b: TensorDescriptor,
        align_b: int,
        c: Optional[TensorDescriptor],
        align_c: int,
        d: TensorDescriptor,
        align_d: int,
        compute_type: ComputeType = ComputeType.COMPUTE_32F,
    ) -> "ContractionDescriptor":
        """
        Build a descriptor from operand descriptors.

        Raises:
            NotInitializedError: If A, B or D is missing
        """
        for name, desc in (("A descriptor", a), ("B descriptor", b), ("D descriptor", d)):
            if desc is None:
                raise NotInitializedError(name)

        if c is None:
            op = ContractionOpId.SCALE
            c = TensorDescriptor.placeholder(d.rank)
            align_c = 0
        else:
            op = ContractionOpId.BILINEAR

        return cls(
            op=op,
            compute_type=compute_type,
            operands=(a, b, c, d),
            alignments=(int(align_a), int(align_b), int(align_c), int(align_d)),
        )

    @property
    def a(self) -> TensorDescriptor:
        return self.operands[0]

    @property
    def b(self) -> TensorDescriptor:
        return self.operands[1]

    @property
    def c(self) -> TensorDescriptor:
        return self.operands[2]

    @property
    def d(self) -> TensorDescriptor:
        return self.operands[3]

    @property
    def signature(self) -> tuple[DataType, DataType, DataType, DataType]:
        """Operand data types (A, B, C, D); C is NONE for SCALE."""
        return tuple(t.dtype for t in self.operands)

    @property
    def is_complex(self) -> bool:
        return is_complex(self.d.dtype)

    def __repr__(self) -> str:
        sig = ", ".join(t.name for t in self.signature)
        return f"ContractionDescriptor(op={self.op.name}, signature=({sig}))"
