# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Kernel Instance Catalog

Precompiled contraction kernel instances, one per (data type, operation,
dimensionality class, tile configuration). Each instance exposes:

- make_argument(): bind operand descriptors, buffers and scalars
- is_supported(): shape, vector-width and alignment predicate
- workspace_size(): scratch bytes required (split-K partials)
- run(): execute against device buffers

Operand layout follows the multiple-D contraction convention:

    A[m..., k...] * B[n..., k...] (+ C[m..., n...]) = E[m..., n...]

with K innermost for A and B, and N innermost for C and E.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..core.tensor import TensorDescriptor
from ..core.types import ContractionOpId, DataType, dtype_size, dtype_to_string, numpy_dtype
from .memory import ALLOCATION_ALIGNMENT, DeviceBuffer


@dataclass(frozen=True)
class ProblemShape:
    """Dimension split and flattened GEMM sizes of one contraction."""

    num_dims_m: int
    num_dims_n: int
    num_dims_k: int
    m: int
    n: int
    k: int

    @property
    def dims(self) -> tuple[int, int, int]:
        return (self.num_dims_m, self.num_dims_n, self.num_dims_k)


def problem_shape(
    a: TensorDescriptor, b: TensorDescriptor, e: TensorDescriptor
) -> Optional[ProblemShape]:
    """
    Split operand modes into M, N and K groups.

    Returns None when the ranks or lengths are inconsistent with
    A[m..., k...] * B[n..., k...] = E[m..., n...].
    """
    twice_k = a.rank + b.rank - e.rank
    if twice_k < 0 or twice_k % 2:
        return None
    nk = twice_k // 2
    nm = a.rank - nk
    nn = b.rank - nk
    if nm < 0 or nn < 0 or nm + nn != e.rank:
        return None
    if a.lengths[:nm] != e.lengths[:nm]:
        return None
    if b.lengths[:nn] != e.lengths[nm:]:
        return None
    if a.lengths[nm:] != b.lengths[nn:]:
        return None
    return ProblemShape(
        num_dims_m=nm,
        num_dims_n=nn,
        num_dims_k=nk,
        m=math.prod(e.lengths[:nm]),
        n=math.prod(e.lengths[nm:]),
        k=math.prod(a.lengths[nm:]),
    )


def strided_view(buf: DeviceBuffer, desc: TensorDescriptor, dtype) -> np.ndarray:
    """View a device buffer through a descriptor's lengths and element strides."""
    flat = buf.view(dtype)
    itemsize = flat.dtype.itemsize
    return np.lib.stride_tricks.as_strided(
        flat,
        shape=desc.lengths,
        strides=tuple(s * itemsize for s in desc.strides),
    )


@dataclass
class KernelArgument:
    """
    Operands bound to one kernel instance.

    Buffers are None for probe arguments, which only answer support and
    workspace queries.
    """

    a_desc: TensorDescriptor
    b_desc: TensorDescriptor
    c_desc: Optional[TensorDescriptor]
    e_desc: TensorDescriptor
    a: Optional[DeviceBuffer] = None
    b: Optional[DeviceBuffer] = None
    c: Optional[DeviceBuffer] = None
    e: Optional[DeviceBuffer] = None
    alpha: float = 1.0
    beta: float = 0.0
    alignments: tuple[int, int, int, int] = (0, 0, 0, 0)

    @property
    def is_probe(self) -> bool:
        return self.a is None and self.b is None and self.e is None

    def release(self) -> None:
        pass

    def __enter__(self) -> "KernelArgument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


@dataclass(frozen=True)
class KernelInstance:
    """One compiled kernel: data type, operation and tile configuration."""

    dtype: DataType
    op: ContractionOpId
    num_dims_m: int
    num_dims_n: int
    num_dims_k: int
    block_size: int
    m_per_block: int
    n_per_block: int
    k_per_block: int
    a_vector: int
    b_vector: int
    e_vector: int
    k_batch: int = 1

    @property
    def dims(self) -> tuple[int, int, int]:
        return (self.num_dims_m, self.num_dims_n, self.num_dims_k)

    @property
    def type_string(self) -> str:
        op = "bilinear" if self.op == ContractionOpId.BILINEAR else "scale"
        return (
            f"contraction_{op}_m{self.num_dims_m}_n{self.num_dims_n}_k{self.num_dims_k}"
            f"_xdl_{dtype_to_string(self.dtype)}"
            f"<{self.block_size}, {self.m_per_block}, {self.n_per_block}, "
            f"{self.k_per_block}, {self.a_vector}, {self.b_vector}, "
            f"{self.e_vector}, {self.k_batch}>"
        )

    @property
    def element_size(self) -> int:
        return dtype_size(self.dtype)

    def make_argument(
        self,
        a_desc: TensorDescriptor,
        b_desc: TensorDescriptor,
        c_desc: Optional[TensorDescriptor],
        e_desc: TensorDescriptor,
        a: Optional[DeviceBuffer] = None,
        b: Optional[DeviceBuffer] = None,
        c: Optional[DeviceBuffer] = None,
        e: Optional[DeviceBuffer] = None,
        alpha: float = 1.0,
        beta: float = 0.0,
        alignments: tuple = (0, 0, 0, 0),
    ) -> KernelArgument:
        if self.op == ContractionOpId.SCALE:
            c_desc, c, beta = None, None, 0.0
        return KernelArgument(
            a_desc=a_desc,
            b_desc=b_desc,
            c_desc=c_desc,
            e_desc=e_desc,
            a=a,
            b=b,
            c=c,
            e=e,
            alpha=float(alpha),
            beta=float(beta),
            alignments=tuple(alignments),
        )

    def _vector_ok(self, desc: TensorDescriptor, width: int) -> bool:
        if width == 1 or desc.rank == 0:
            return True
        return desc.strides[-1] == 1 and desc.lengths[-1] % width == 0

    def _alignment_ok(self, alignment: int, width: int) -> bool:
        return alignment == 0 or alignment % (width * self.element_size) == 0

    def is_supported(self, arg: KernelArgument) -> bool:
        """Check whether this instance can run the argument."""
        operands = [arg.a_desc, arg.b_desc, arg.e_desc]
        if self.op == ContractionOpId.BILINEAR:
            if arg.c_desc is None:
                return False
            operands.append(arg.c_desc)
        if any(d.dtype != self.dtype for d in operands):
            return False

        shape = problem_shape(arg.a_desc, arg.b_desc, arg.e_desc)
        if shape is None or shape.dims != self.dims:
            return False
        if self.op == ContractionOpId.BILINEAR and arg.c_desc.lengths != arg.e_desc.lengths:
            return False
        if shape.k < self.k_batch:
            return False

        if not self._vector_ok(arg.a_desc, self.a_vector):
            return False
        if not self._vector_ok(arg.b_desc, self.b_vector):
            return False
        if not self._vector_ok(arg.e_desc, self.e_vector):
            return False
        if arg.c_desc is not None and not self._vector_ok(arg.c_desc, self.e_vector):
            return False

        align_a, align_b, align_c, align_e = arg.alignments
        widths = [(align_a, self.a_vector), (align_b, self.b_vector), (align_e, self.e_vector)]
        if arg.c_desc is not None:
            widths.append((align_c, self.e_vector))
        return all(self._alignment_ok(al, w) for al, w in widths)

    def workspace_size(self, arg: KernelArgument) -> int:
        """Bytes of split-K partial storage, rounded to the allocation alignment."""
        if self.k_batch == 1:
            return 0
        raw = self.k_batch * arg.e_desc.element_count() * self.element_size
        return -(-raw // ALLOCATION_ALIGNMENT) * ALLOCATION_ALIGNMENT

    def run(self, arg: KernelArgument, workspace: Optional[DeviceBuffer] = None) -> None:
        """
        Execute the contraction.

        The full result is formed before E is written, so C may alias E.
        """
        dtype = numpy_dtype(self.dtype)
        shape = problem_shape(arg.a_desc, arg.b_desc, arg.e_desc)
        nm, nn, nk = shape.dims

        a = strided_view(arg.a, arg.a_desc, dtype).reshape(shape.m, shape.k)
        b = strided_view(arg.b, arg.b_desc, dtype).reshape(shape.n, shape.k)

        if self.k_batch == 1:
            acc = a @ b.T
        else:
            required = self.workspace_size(arg)
            if workspace is None or workspace.nbytes < required:
                raise RuntimeError(
                    f"split-K kernel needs {required} workspace bytes"
                )
            partials = workspace.view(dtype)[: self.k_batch * shape.m * shape.n]
            partials = partials.reshape(self.k_batch, shape.m, shape.n)
            bounds = np.linspace(0, shape.k, self.k_batch + 1).astype(int)
            for i in range(self.k_batch):
                lo, hi = bounds[i], bounds[i + 1]
                partials[i] = a[:, lo:hi] @ b[:, lo:hi].T
            acc = partials.sum(axis=0)

        result = arg.alpha * acc.reshape(arg.e_desc.lengths)
        if self.op == ContractionOpId.BILINEAR and arg.beta != 0.0:
            result = result + arg.beta * strided_view(arg.c, arg.c_desc, dtype)

        out = strided_view(arg.e, arg.e_desc, dtype)
        out[...] = result.astype(dtype, copy=False)


# Tile configurations:
# (block, m_per_block, n_per_block, k_per_block, a_vector, b_vector, e_vector, k_batch)
_TILE_CONFIGS = [
    (256, 256, 128, 16, 4, 1, 4, 1),
    (256, 256, 128, 16, 4, 4, 4, 1),
    (256, 128, 256, 16, 4, 1, 4, 1),
    (256, 128, 256, 16, 4, 4, 4, 1),
    (128, 128, 128, 16, 4, 4, 4, 1),
    (256, 128, 128, 16, 4, 1, 4, 1),
    (128, 128, 64, 16, 4, 4, 4, 1),
    (128, 64, 128, 16, 4, 4, 4, 1),
    (256, 128, 64, 16, 4, 4, 4, 2),
    (256, 64, 128, 16, 4, 4, 4, 4),
    (64, 32, 32, 8, 1, 1, 1, 1),
    (64, 32, 32, 8, 1, 1, 1, 2),
]

_DIM_CLASSES = [(2, 2, 2), (1, 1, 1)]

CATALOG_TYPES = (DataType.R_32F, DataType.R_64F)


def build_catalog() -> list[KernelInstance]:
    """All compiled real kernel instances, in catalog order."""
    instances = []
    for dtype in CATALOG_TYPES:
        for op in (ContractionOpId.BILINEAR, ContractionOpId.SCALE):
            for nm, nn, nk in _DIM_CLASSES:
                for block, mpb, npb, kpb, av, bv, ev, kb in _TILE_CONFIGS:
                    instances.append(
                        KernelInstance(
                            dtype=dtype,
                            op=op,
                            num_dims_m=nm,
                            num_dims_n=nn,
                            num_dims_k=nk,
                            block_size=block,
                            m_per_block=mpb,
                            n_per_block=npb,
                            k_per_block=kpb,
                            a_vector=av,
                            b_vector=bv,
                            e_vector=ev,
                            k_batch=kb,
                        )
                    )
    return instances
