# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Kernel Selection Models

Two interchangeable strategies pick one winner from a candidate list:

- BruteForceModel (DEFAULT, DEFAULT_PATIENT): runs every supported
  candidate on real device buffers and keeps the fastest.
- ActorCriticModel (ACTOR_CRITIC): scores candidates from shape features
  without touching the device.

Both skip candidates that reject the problem and report INTERNAL_ERROR
only when nothing survives. Ties go to the earliest candidate in catalog
order.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import numpy as np

from ..config import PlannerConfig, get_config
from ..core.types import Algorithm, ContractionOpId, is_complex, numpy_dtype
from ..errors import InvalidValueError, NoSupportedSolutionError
from ..runtime.device import Device, Event, Stream
from ..runtime.kernels import problem_shape
from ..runtime.memory import DeviceBuffer
from .descriptor import ContractionDescriptor
from .heuristics import HeuristicTable, analytic_score, feature_key
from .registry import SolutionRegistry
from .solution import ContractionSolution

logger = logging.getLogger("tensorplan.contraction.selection")

# (solution, argument, workspace, stream) -> milliseconds
Timer = Callable[[ContractionSolution, object, Optional[DeviceBuffer], Stream], float]


class SelectionState(Enum):
    INIT = "init"
    CANDIDATES_GATHERED = "candidates_gathered"
    TIMED = "timed"
    SCORED = "scored"
    WINNER_CHOSEN = "winner_chosen"


@dataclass
class SolutionMetrics:
    """Measured performance of a selected solution."""

    avg_time_ms: float
    tflops: float
    bandwidth_gbps: float
    instance: str


@dataclass
class SelectionResult:
    """Outcome of one selection request."""

    winner_index: Optional[int] = None
    solution: Optional[ContractionSolution] = None
    state: SelectionState = SelectionState.INIT
    measurements: dict[int, float] = field(default_factory=dict)
    scores: dict[int, float] = field(default_factory=dict)
    metrics: Optional[SolutionMetrics] = None


def contraction_flops(descriptor: ContractionDescriptor) -> int:
    """Floating point operations of one contraction (complex counts four real products)."""
    shape = problem_shape(descriptor.a, descriptor.b, descriptor.d)
    if shape is None:
        return 0
    flops = 2 * shape.m * shape.n * shape.k
    return flops * 4 if descriptor.is_complex else flops


def contraction_bytes(descriptor: ContractionDescriptor) -> int:
    total = descriptor.a.size_bytes() + descriptor.b.size_bytes() + descriptor.d.size_bytes()
    if descriptor.op == ContractionOpId.BILINEAR:
        total += descriptor.c.size_bytes()
    return total


def compute_metrics(descriptor: ContractionDescriptor, avg_time_ms: float, instance: str) -> SolutionMetrics:
    seconds = avg_time_ms * 1e-3
    if seconds <= 0:
        return SolutionMetrics(avg_time_ms, 0.0, 0.0, instance)
    return SolutionMetrics(
        avg_time_ms=avg_time_ms,
        tflops=contraction_flops(descriptor) / seconds / 1e12,
        bandwidth_gbps=contraction_bytes(descriptor) / seconds / 1e9,
        instance=instance,
    )


class StreamTimer:
    """Time a candidate with stream events: warmup untimed runs, then the mean of timed runs."""

    def __init__(self, warmup: int = 0, repeats: int = 1):
        self.warmup = warmup
        self.repeats = repeats

    def __call__(self, solution, argument, workspace, stream: Stream) -> float:
        for _ in range(self.warmup):
            solution.run(argument, workspace, stream)
        stream.synchronize()

        times = []
        for _ in range(self.repeats):
            start, end = Event(), Event()
            start.record(stream)
            solution.run(argument, workspace, stream)
            end.record(stream)
            times.append(Event.elapsed_ms(start, end))
        return float(np.mean(times))


class SelectionModel(ABC):
    """Base class for selection strategies."""

    algorithm: Algorithm = Algorithm.DEFAULT

    @abstractmethod
    def select(
        self,
        registry: SolutionRegistry,
        candidates: list[int],
        descriptor: ContractionDescriptor,
        workspace_size: Optional[int],
        device: Device,
    ) -> SelectionResult:
        """Pick one winner from the candidate indices."""


class BruteForceModel(SelectionModel):
    """
    Empirical selection by timing every supported candidate.

    Args:
        timer: Callable measuring one candidate; defaults to a StreamTimer
        patient: Use the patient warmup/repeat counts
        config: Planner configuration (global config when omitted)
    """

    def __init__(
        self,
        timer: Optional[Timer] = None,
        patient: bool = False,
        config: Optional[PlannerConfig] = None,
    ):
        self.config = config or get_config()
        self.patient = patient
        self.algorithm = Algorithm.DEFAULT_PATIENT if patient else Algorithm.DEFAULT
        if timer is None:
            if patient:
                timer = StreamTimer(self.config.patient_warmup, self.config.patient_repeats)
            else:
                timer = StreamTimer(self.config.default_warmup, self.config.default_repeats)
        self.timer = timer

    def _fill_random(self, buf: DeviceBuffer, desc, rng: np.random.Generator) -> None:
        dtype = numpy_dtype(desc.dtype)
        count = desc.element_space()
        if is_complex(desc.dtype):
            values = rng.uniform(-1, 1, count) + 1j * rng.uniform(-1, 1, count)
        else:
            values = rng.uniform(-1, 1, count)
        buf.view(dtype)[:count] = values.astype(dtype)

    def select(self, registry, candidates, descriptor, workspace_size, device) -> SelectionResult:
        result = SelectionResult()
        if not candidates:
            raise NoSupportedSolutionError("no candidates for the operand signature")
        result.state = SelectionState.CANDIDATES_GATHERED

        memory = device.memory
        stream = device.create_stream()
        rng = np.random.default_rng(self.config.seed)
        bilinear = descriptor.op == ContractionOpId.BILINEAR
        limit = workspace_size if workspace_size is not None else 0
        buffers: dict[str, Optional[DeviceBuffer]] = {}

        try:
            for name, desc in zip("abcd", descriptor.operands):
                if name == "c" and not bilinear:
                    buffers[name] = None
                    continue
                buf = memory.allocate(desc.size_bytes(), tag=f"select_{name}")
                buffers[name] = buf
                self._fill_random(buf, desc, rng)
            buffers["workspace"] = memory.allocate(limit, tag="select_workspace") if limit else None

            best_index, best_time = None, None
            for index in candidates:
                solution = registry.solution(index)
                with solution.make_argument(
                    descriptor,
                    1.0,
                    buffers["a"],
                    buffers["b"],
                    1.0 if bilinear else 0.0,
                    buffers["c"],
                    buffers["d"],
                ) as argument:
                    if not solution.is_supported(argument):
                        logger.debug(f"Skipping unsupported candidate {solution.type_string}")
                        continue
                    required = solution.workspace_size(argument)
                    if required > limit:
                        logger.debug(
                            f"Skipping {solution.type_string}: needs {required} workspace bytes, "
                            f"{limit} offered"
                        )
                        continue
                    elapsed = self.timer(solution, argument, buffers["workspace"], stream)

                result.measurements[index] = elapsed
                if best_time is None or elapsed < best_time:
                    best_index, best_time = index, elapsed
        finally:
            for buf in buffers.values():
                memory.free(buf)

        if best_index is None:
            raise NoSupportedSolutionError(
                "every candidate rejected the problem",
                candidates=len(candidates),
                signature=str([t.name for t in descriptor.signature]),
            )

        result.state = SelectionState.TIMED
        result.winner_index = best_index
        result.solution = registry.solution(best_index)
        result.metrics = compute_metrics(descriptor, best_time, result.solution.type_string)
        result.state = SelectionState.WINNER_CHOSEN
        logger.info(
            f"Selected {result.solution.type_string} ({best_time:.3f}ms) "
            f"from {len(result.measurements)} timed candidates"
        )
        return result


class ActorCriticModel(SelectionModel):
    """
    Heuristic selection by shape-keyed scoring.

    Never launches work or allocates memory. The same descriptor, candidate
    list and table always give the same winner.
    """

    algorithm = Algorithm.ACTOR_CRITIC

    def __init__(self, table: Optional[HeuristicTable] = None):
        self.table = table or HeuristicTable()

    def select(self, registry, candidates, descriptor, workspace_size, device) -> SelectionResult:
        result = SelectionResult()
        if not candidates:
            raise NoSupportedSolutionError("no candidates for the operand signature")
        result.state = SelectionState.CANDIDATES_GATHERED

        shape = problem_shape(descriptor.a, descriptor.b, descriptor.d)
        compute_units = device.properties.compute_units
        best_index, best_score = None, None

        if shape is not None:
            key = feature_key(descriptor, shape)
            for index in candidates:
                solution = registry.solution(index)
                with solution.make_argument(descriptor) as probe:
                    if not solution.is_supported(probe):
                        continue
                    required = solution.workspace_size(probe)
                if workspace_size is not None and required > workspace_size:
                    continue

                score = self.table.lookup(key, solution.type_string)
                if score is None:
                    score = analytic_score(solution.instance, shape, compute_units, required)
                result.scores[index] = score
                if best_score is None or score > best_score:
                    best_index, best_score = index, score

        if best_index is None:
            raise NoSupportedSolutionError(
                "no candidate supports the problem shape",
                candidates=len(candidates),
                signature=str([t.name for t in descriptor.signature]),
            )

        result.state = SelectionState.SCORED
        result.winner_index = best_index
        result.solution = registry.solution(best_index)
        result.state = SelectionState.WINNER_CHOSEN
        logger.debug(f"Heuristic winner {result.solution.type_string} (score {best_score:.4f})")
        return result


def model_for_algorithm(
    algorithm, config: Optional[PlannerConfig] = None, table: Optional[HeuristicTable] = None
) -> SelectionModel:
    """
    Build the selection model for an algorithm tag.

    Raises:
        InvalidValueError: If the tag is not a known algorithm
    """
    try:
        algorithm = Algorithm(algorithm)
    except ValueError:
        raise InvalidValueError(
            "unknown selection algorithm",
            parameter="algorithm",
            expected="DEFAULT, DEFAULT_PATIENT or ACTOR_CRITIC",
            received=str(algorithm),
        ) from None

    if algorithm == Algorithm.ACTOR_CRITIC:
        return ActorCriticModel(table)
    return BruteForceModel(patient=algorithm == Algorithm.DEFAULT_PATIENT, config=config)
