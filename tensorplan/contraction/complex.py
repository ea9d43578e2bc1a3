# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Complex Contraction Decomposition

Catalog kernels read one real element type per buffer, so a complex
contraction is rewritten as four real sub-contractions over split
(structure-of-arrays) planes:

    (a_r + i a_i)(b_r + i b_i) = (a_r b_r - a_i b_i) + i (a_r b_i + a_i b_r)

Bilinear form, in order:

    real_rr:  E_r = alpha * A_r B_r + beta * C_r
    real_ii:  E_r = -alpha * A_i B_i + E_r
    imag_ri:  E_i = alpha * A_r B_i + beta * C_i
    imag_ir:  E_i = alpha * A_i B_r + E_i

Scale form (no C) runs the real scale kernel for real_rr and accumulates
imag_ri onto a zero plane Z_i; the remaining steps are unchanged.

Interleaved operands are unpacked into scratch planes before the first
step and E is packed back into the caller's D after the last one. All
scratch is owned by a DecompositionArgumentSet and released when it exits.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

from ..core.tensor import TensorDescriptor
from ..core.types import ContractionOpId, DataType, dtype_size, numpy_dtype, real_type
from ..errors import DecompositionError
from ..runtime.device import Stream, get_device_manager
from ..runtime.kernels import KernelArgument, KernelInstance, strided_view
from ..runtime.memory import ALLOCATION_ALIGNMENT, DeviceBuffer
from .descriptor import ContractionDescriptor
from .solution import ContractionSolution, real_scalar

logger = logging.getLogger("tensorplan.contraction.complex")

_COMPLEX_OF = {DataType.R_32F: DataType.C_32F, DataType.R_64F: DataType.C_64F}


@dataclass
class DecompositionStep:
    """One real sub-contraction."""

    label: str
    kernel: KernelInstance
    argument: KernelArgument


def _real_desc(desc: TensorDescriptor) -> TensorDescriptor:
    return replace(desc, dtype=real_type(desc.dtype))


def _unpack(src: DeviceBuffer, real: DeviceBuffer, imag: DeviceBuffer, complex_dtype, real_dtype, count: int) -> None:
    values = src.view(complex_dtype)[:count]
    real.view(real_dtype)[:count] = values.real
    imag.view(real_dtype)[:count] = values.imag


def _pack(real: DeviceBuffer, imag: DeviceBuffer, dst: DeviceBuffer, desc: TensorDescriptor, complex_dtype, real_dtype) -> None:
    rdesc = _real_desc(desc)
    out = strided_view(dst, desc, complex_dtype)
    out.real[...] = strided_view(real, rdesc, real_dtype)
    out.imag[...] = strided_view(imag, rdesc, real_dtype)


class DecompositionArgumentSet:
    """
    Scratch planes and ordered sub-arguments for one complex contraction.

    Scratch is allocated up front, only for operands whose buffer is
    present. With no buffers at all the set is a probe: it answers support
    and workspace queries without allocating. A SCALE descriptor handed to a
    solution without a scale kernel builds no steps and is never supported.

    Example:
        with solution.make_argument(desc, alpha, A, B, beta, C, D) as arg:
            solution.run(arg, workspace, stream)
    """

    def __init__(
        self,
        descriptor: ContractionDescriptor,
        scale_kernel: Optional[KernelInstance],
        bilinear_kernel: KernelInstance,
        alpha: Any = 1.0,
        a: Optional[DeviceBuffer] = None,
        b: Optional[DeviceBuffer] = None,
        beta: Any = 0.0,
        c: Optional[DeviceBuffer] = None,
        d: Optional[DeviceBuffer] = None,
    ):
        self.descriptor = descriptor
        self.op = descriptor.op
        self.alpha = real_scalar(alpha, "alpha")
        self.beta = real_scalar(beta, "beta") if self.op == ContractionOpId.BILINEAR else 0.0
        self._scale_kernel = scale_kernel
        self._bilinear_kernel = bilinear_kernel
        self._sources = {"a": a, "b": b, "c": c if self.op == ContractionOpId.BILINEAR else None}
        self._output = d
        self._scratch: dict[str, DeviceBuffer] = {}
        self._memory = None
        self.steps: list[DecompositionStep] = []

        self._real_dtype = real_type(descriptor.d.dtype)
        self._complex_dtype = descriptor.d.dtype

        try:
            if not self.is_probe and self.has_kernel_for_op:
                self._allocate_scratch()
            self._build_steps()
        except Exception:
            self.release()
            raise

    @property
    def is_probe(self) -> bool:
        return self._output is None and all(v is None for v in self._sources.values())

    @property
    def scratch_buffers(self) -> dict[str, DeviceBuffer]:
        return dict(self._scratch)

    def _allocate_scratch(self) -> None:
        anchor = self._output or next(v for v in self._sources.values() if v is not None)
        self._memory = get_device_manager().get_device(anchor.device_id).memory
        plane_bytes = dtype_size(self._real_dtype)
        operands = {"a": self.descriptor.a, "b": self.descriptor.b, "c": self.descriptor.c}

        for name, src in self._sources.items():
            if src is None:
                continue
            nbytes = operands[name].element_space() * plane_bytes
            for part in ("real", "imag"):
                self._scratch[f"{name}_{part}"] = self._memory.allocate(nbytes, tag=f"{name}_{part}")

        if self._output is not None:
            nbytes = self.descriptor.d.element_space() * plane_bytes
            for name in ("e_real", "e_imag"):
                self._scratch[name] = self._memory.allocate(nbytes, tag=name)
            if self.op == ContractionOpId.SCALE:
                zero = self._memory.allocate(nbytes, tag="z_imag")
                self._scratch["z_imag"] = zero
                zero.fill_zero()

        logger.debug(
            f"Allocated {len(self._scratch)} scratch planes for {self.op.name} decomposition"
        )

    @property
    def has_kernel_for_op(self) -> bool:
        """False when a SCALE descriptor reaches a solution without a scale kernel."""
        return self.op == ContractionOpId.BILINEAR or self._scale_kernel is not None

    def _build_steps(self) -> None:
        if not self.has_kernel_for_op:
            self.steps = []
            return
        desc = self.descriptor
        ra, rb, re = _real_desc(desc.a), _real_desc(desc.b), _real_desc(desc.d)
        rc = _real_desc(desc.c) if self.op == ContractionOpId.BILINEAR else None
        s = self._scratch.get
        align = (ALLOCATION_ALIGNMENT,) * 4
        bil = self._bilinear_kernel
        alpha = self.alpha

        def step(label, kernel, a, b, c_desc, c, e, alpha, beta):
            arg = kernel.make_argument(
                ra, rb, c_desc, re, a=a, b=b, c=c, e=e,
                alpha=alpha, beta=beta, alignments=align,
            )
            return DecompositionStep(label, kernel, arg)

        if self.op == ContractionOpId.BILINEAR:
            beta = self.beta
            self.steps = [
                step("real_rr", bil, s("a_real"), s("b_real"), rc, s("c_real"), s("e_real"), alpha, beta),
                step("real_ii", bil, s("a_imag"), s("b_imag"), re, s("e_real"), s("e_real"), -alpha, 1.0),
                step("imag_ri", bil, s("a_real"), s("b_imag"), rc, s("c_imag"), s("e_imag"), alpha, beta),
                step("imag_ir", bil, s("a_imag"), s("b_real"), re, s("e_imag"), s("e_imag"), alpha, 1.0),
            ]
        else:
            self.steps = [
                step("real_rr", self._scale_kernel, s("a_real"), s("b_real"), None, None, s("e_real"), alpha, 0.0),
                step("real_ii", bil, s("a_imag"), s("b_imag"), re, s("e_real"), s("e_real"), -alpha, 1.0),
                step("imag_ri", bil, s("a_real"), s("b_imag"), re, s("z_imag"), s("e_imag"), alpha, 1.0),
                step("imag_ir", bil, s("a_imag"), s("b_real"), re, s("e_imag"), s("e_imag"), alpha, 1.0),
            ]

    def unsupported_steps(self) -> list[str]:
        return [st.label for st in self.steps if not st.kernel.is_supported(st.argument)]

    def is_supported(self) -> bool:
        return bool(self.steps) and not self.unsupported_steps()

    def workspace_size(self) -> int:
        """Largest workspace of any step; steps share it sequentially."""
        return max((st.kernel.workspace_size(st.argument) for st in self.steps), default=0)

    def run(self, workspace: Optional[DeviceBuffer], stream: Stream) -> None:
        """
        Unpack, run the four steps in order, pack.

        Raises:
            DecompositionError: If a step is unsupported or the set is a probe
        """
        if not self.steps:
            raise DecompositionError(f"no real kernel for the {self.op.name} form")
        failed = self.unsupported_steps()
        if failed:
            raise DecompositionError("real kernel rejected the sub-argument", step=failed[0])
        if self.is_probe:
            raise DecompositionError("probe argument has no buffers to run on")

        cdt = numpy_dtype(self._complex_dtype)
        rdt = numpy_dtype(self._real_dtype)
        operands = {"a": self.descriptor.a, "b": self.descriptor.b, "c": self.descriptor.c}

        for name, src in self._sources.items():
            if src is None:
                continue
            stream.launch(
                f"unpack_{name}",
                _unpack,
                src,
                self._scratch[f"{name}_real"],
                self._scratch[f"{name}_imag"],
                cdt,
                rdt,
                operands[name].element_space(),
            )

        for st in self.steps:
            stream.launch(st.label, st.kernel.run, st.argument, workspace)

        stream.launch(
            "pack_d",
            _pack,
            self._scratch["e_real"],
            self._scratch["e_imag"],
            self._output,
            self.descriptor.d,
            cdt,
            rdt,
        )

    def release(self) -> None:
        """Free every scratch plane. Safe to call more than once."""
        if self._memory is not None:
            for buf in self._scratch.values():
                self._memory.free(buf)
        self._scratch.clear()

    def __enter__(self) -> "DecompositionArgumentSet":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class ComplexBilinearSolution(ContractionSolution):
    """E = alpha * A B + beta * C over complex operands, via the real bilinear kernel."""

    def __init__(self, bilinear_kernel: KernelInstance):
        ctype = _COMPLEX_OF[bilinear_kernel.dtype]
        super().__init__(
            type_string=f"complex_{ctype.name.lower()}[{bilinear_kernel.type_string}]",
            signature=(ctype, ctype, ctype, ctype),
            op=ContractionOpId.BILINEAR,
            instance=bilinear_kernel,
        )
        self.bilinear_kernel = bilinear_kernel

    def make_argument(self, descriptor, alpha=1.0, a=None, b=None, beta=0.0, c=None, d=None):
        return DecompositionArgumentSet(descriptor, None, self.bilinear_kernel, alpha, a, b, beta, c, d)

    def is_supported(self, argument: DecompositionArgumentSet) -> bool:
        return argument.descriptor.signature == self.signature and argument.is_supported()

    def workspace_size(self, argument: DecompositionArgumentSet) -> int:
        return argument.workspace_size()

    def run(self, argument: DecompositionArgumentSet, workspace, stream: Stream) -> None:
        argument.run(workspace, stream)


class ComplexScaleSolution(ContractionSolution):
    """E = alpha * A B over complex operands, via a real scale kernel and its bilinear twin."""

    def __init__(self, scale_kernel: KernelInstance, bilinear_kernel: KernelInstance):
        ctype = _COMPLEX_OF[scale_kernel.dtype]
        super().__init__(
            type_string=f"complex_{ctype.name.lower()}[{scale_kernel.type_string}]",
            signature=(ctype, ctype, DataType.NONE, ctype),
            op=ContractionOpId.SCALE,
            instance=scale_kernel,
        )
        self.scale_kernel = scale_kernel
        self.bilinear_kernel = bilinear_kernel

    def make_argument(self, descriptor, alpha=1.0, a=None, b=None, beta=0.0, c=None, d=None):
        return DecompositionArgumentSet(
            descriptor, self.scale_kernel, self.bilinear_kernel, alpha, a, b, beta, c, d
        )

    def is_supported(self, argument: DecompositionArgumentSet) -> bool:
        return argument.descriptor.signature == self.signature and argument.is_supported()

    def workspace_size(self, argument: DecompositionArgumentSet) -> int:
        return argument.workspace_size()

    def run(self, argument: DecompositionArgumentSet, workspace, stream: Stream) -> None:
        argument.run(workspace, stream)
