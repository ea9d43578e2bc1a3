# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Contraction Find and Plan

ContractionFind gathers the candidates a device can run for a selection
algorithm. ContractionPlan binds the winner of that selection to a copy of
the descriptor and executes it.

Example:
    find = ContractionFind.create(handle, Algorithm.DEFAULT)
    size = get_workspace_size(desc, find.candidates, WorksizePreference.MAX, handle.device)
    plan = ContractionPlan.create(handle, desc, find, size)
    plan.execute(handle, 1.0, A, B, 1.0, C, D, workspace, size)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..core.types import Algorithm, ContractionOpId, DataType
from ..errors import (
    ArchMismatchError,
    ExecutionFailedError,
    InsufficientWorkspaceError,
    InvalidValueError,
    NoSupportedSolutionError,
    NotInitializedError,
    TensorPlanError,
)
from ..observability import get_logger
from ..runtime.device import Handle, Stream, get_device_manager
from ..runtime.memory import DeviceBuffer
from .descriptor import ContractionDescriptor
from .heuristics import HeuristicTable
from .registry import SolutionRegistry
from .selection import (
    SelectionModel,
    SelectionResult,
    SolutionMetrics,
    model_for_algorithm,
)
from .solution import ContractionSolution
from .workspace import restrict_candidates

logger = logging.getLogger("tensorplan.contraction.plan")

F32 = DataType.R_32F
C32 = DataType.C_32F
NONE = DataType.NONE


def check_device(handle: Handle) -> None:
    """Raise ArchMismatchError unless the handle's device is current."""
    current = get_device_manager().current_device_id()
    if current != handle.device_id:
        raise ArchMismatchError(current, handle.device_id)


@dataclass
class ContractionFind:
    """Selection algorithm plus the candidate indices the device can run."""

    algorithm: Algorithm
    candidates: list[int] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        handle: Optional[Handle],
        algorithm,
        registry: Optional[SolutionRegistry] = None,
    ) -> "ContractionFind":
        """
        Gather candidates for a handle's device.

        Devices without 64-bit float support only get 32-bit real and
        complex solutions.

        Raises:
            NotInitializedError: If the handle is missing
            ArchMismatchError: If the handle's device is not current
            InvalidValueError: If the algorithm is unknown
            NoSupportedSolutionError: If no solution remains
        """
        if handle is None:
            raise NotInitializedError("handle")
        check_device(handle)
        try:
            algorithm = Algorithm(algorithm)
        except ValueError:
            raise InvalidValueError(
                "unknown selection algorithm",
                parameter="algorithm",
                expected="DEFAULT, DEFAULT_PATIENT or ACTOR_CRITIC",
                received=str(algorithm),
            ) from None

        registry = registry or SolutionRegistry.instance()
        query = registry.all_solutions()
        if not handle.device.properties.supports_f64:
            query = (
                query.query(F32, F32, F32, F32)
                | query.query(F32, F32, NONE, F32)
                | query.query(C32, C32, C32, C32)
                | query.query(C32, C32, NONE, C32)
            )
        if query.solution_count() == 0:
            raise NoSupportedSolutionError("no solutions for this device")

        logger.debug(f"Find gathered {query.solution_count()} candidates ({algorithm.name})")
        return cls(algorithm=algorithm, candidates=query.indices())


@dataclass
class ContractionPlan:
    """A descriptor bound to its selected solution."""

    descriptor: ContractionDescriptor
    solution_index: int
    solution: ContractionSolution
    workspace_size: int
    device_id: int
    selection: SelectionResult
    metrics: Optional[SolutionMetrics] = None

    @classmethod
    def create(
        cls,
        handle: Optional[Handle],
        descriptor: Optional[ContractionDescriptor],
        find: Optional[ContractionFind],
        workspace_size: int,
        model: Optional[SelectionModel] = None,
        registry: Optional[SolutionRegistry] = None,
        table: Optional[HeuristicTable] = None,
    ) -> "ContractionPlan":
        """
        Select a solution for a descriptor.

        Args:
            handle: Library handle
            descriptor: Contraction to plan
            find: Candidates and algorithm
            workspace_size: Largest workspace the plan may use
            model: Selection model overriding the find's algorithm
            registry: Solution registry (process-wide registry when omitted)
            table: Heuristic table for actor-critic selection

        Raises:
            NotInitializedError: If handle, descriptor or find is missing
            ArchMismatchError: If the handle's device is not current
            NoSupportedSolutionError: If no candidate supports the descriptor
        """
        for name, value in (("handle", handle), ("descriptor", descriptor), ("find", find)):
            if value is None:
                raise NotInitializedError(name)
        check_device(handle)

        registry = registry or SolutionRegistry.instance()
        candidates = restrict_candidates(registry, find.candidates, descriptor)
        if not candidates:
            raise NoSupportedSolutionError(
                "no candidate matches the descriptor",
                signature=str([t.name for t in descriptor.signature]),
            )

        model = model or model_for_algorithm(find.algorithm, table=table)
        result = model.select(registry, candidates, descriptor, workspace_size, handle.device)

        plan = cls(
            descriptor=descriptor,
            solution_index=result.winner_index,
            solution=result.solution,
            workspace_size=workspace_size,
            device_id=handle.device_id,
            selection=result,
            metrics=result.metrics,
        )
        logger.info(f"Plan bound to {plan.solution.type_string}")
        plan.log_metrics()
        return plan

    def execute(
        self,
        handle: Optional[Handle],
        alpha: Any,
        a: Optional[DeviceBuffer],
        b: Optional[DeviceBuffer],
        beta: Any,
        c: Optional[DeviceBuffer],
        d: Optional[DeviceBuffer],
        workspace: Optional[DeviceBuffer],
        workspace_size: int,
        stream: Optional[Stream] = None,
    ) -> None:
        """
        Run the contraction D = alpha * A B (+ beta * C).

        Checks run in order and nothing is launched until all pass.

        Raises:
            NotInitializedError: Missing handle
            InvalidValueError: Missing scalar or operand, undersized buffer
            ArchMismatchError: Handle's device is not current
            NoSupportedSolutionError: Solution rejects the descriptor
            InsufficientWorkspaceError: workspace_size below the requirement
            ExecutionFailedError: The kernel failed while running
        """
        if handle is None:
            raise NotInitializedError("handle")

        required_operands = [("alpha", alpha), ("A", a), ("B", b), ("D", d)]
        bilinear = self.descriptor.op == ContractionOpId.BILINEAR
        if bilinear:
            required_operands += [("beta", beta), ("C", c)]
        for name, value in required_operands:
            if value is None:
                raise InvalidValueError(f"{name} must not be null", parameter=name)

        check_device(handle)

        solution = self.solution
        with solution.make_argument(self.descriptor) as probe:
            if not solution.is_supported(probe):
                raise NoSupportedSolutionError(
                    "bound solution rejects the descriptor", candidates=1
                )
            required = solution.workspace_size(probe)

        if required > workspace_size:
            raise InsufficientWorkspaceError(required, workspace_size, solution.type_string)
        if required > 0 and (workspace is None or workspace.nbytes < required):
            raise InvalidValueError(
                "workspace buffer is smaller than workspace_size",
                parameter="workspace",
                expected=f">= {required} bytes",
                received="null" if workspace is None else f"{workspace.nbytes} bytes",
            )

        operands = [("A", a, self.descriptor.a), ("B", b, self.descriptor.b), ("D", d, self.descriptor.d)]
        if bilinear:
            operands.append(("C", c, self.descriptor.c))
        for name, buf, desc in operands:
            if buf.nbytes < desc.size_bytes():
                raise InvalidValueError(
                    f"{name} buffer is smaller than its descriptor",
                    parameter=name,
                    expected=f">= {desc.size_bytes()} bytes",
                    received=f"{buf.nbytes} bytes",
                )

        stream = stream or handle.device.default_stream
        if not bilinear:
            beta, c = 0.0, None
        with solution.make_argument(self.descriptor, alpha, a, b, beta, c, d) as argument:
            try:
                solution.run(argument, workspace, stream)
            except TensorPlanError:
                raise
            except Exception as e:
                raise ExecutionFailedError(
                    str(e),
                    kernel_name=solution.type_string,
                    input_shapes=[t.lengths for t in self.descriptor.operands],
                ) from e

    def log_metrics(self) -> None:
        """Report the selection outcome through the structured logger."""
        if self.metrics is None:
            get_logger().selection(
                self.solution.type_string,
                score=self.selection.scores.get(self.solution_index),
            )
            return
        get_logger().selection(
            self.metrics.instance,
            duration_ms=self.metrics.avg_time_ms,
            tflops=round(self.metrics.tflops, 6),
            bandwidth_gbps=round(self.metrics.bandwidth_gbps, 6),
            candidates_timed=len(self.selection.measurements),
        )
