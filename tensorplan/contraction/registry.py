# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Solution Registry

Process-wide catalog of contraction solutions, built once on first use.

Features:
- Arena of solutions, referenced everywhere by index
- Lookup keyed by (A, B, C, D, op)
- Composable queries: by signature, by op, and unions with |
- Thread-safe lazy construction with explicit teardown

Example:
    registry = SolutionRegistry.instance()
    f32 = registry.all_solutions().query(R_32F, R_32F, R_32F, R_32F)
    scale = registry.all_solutions().query(R_32F, R_32F, NONE, R_32F)
    candidates = f32 | scale
"""

import atexit
import logging
import threading
from dataclasses import replace
from typing import Iterator, Optional

from ..core.types import ContractionOpId, DataType
from ..errors import InvalidValueError
from ..runtime.kernels import build_catalog
from .complex import ComplexBilinearSolution, ComplexScaleSolution
from .solution import ContractionSolution, RealContractionSolution

logger = logging.getLogger("tensorplan.contraction.registry")

SignatureKey = tuple[DataType, DataType, DataType, DataType, ContractionOpId]


class Query:
    """
    Immutable view over a subset of the registry arena.

    An empty query is a valid result; callers that need a candidate decide
    whether emptiness is an error.
    """

    def __init__(self, registry: "SolutionRegistry", indices):
        self._registry = registry
        self._indices = tuple(sorted(set(indices)))

    def query(self, *args) -> "Query":
        """
        Filter by operand signature or by operation.

            query(a, b, c, d)  exact data types, NONE for a missing C
            query(op)          algebraic form
        """
        if len(args) == 1 and isinstance(args[0], ContractionOpId):
            op = args[0]
            keep = [i for i in self._indices if self._registry.solution(i).op == op]
        elif len(args) == 4 and all(isinstance(t, DataType) for t in args):
            signature = tuple(args)
            keep = [
                i for i in self._indices if self._registry.solution(i).signature == signature
            ]
        else:
            raise InvalidValueError(
                "query takes four data types or one operation",
                parameter="query",
                received=repr(args),
            )
        return Query(self._registry, keep)

    def __or__(self, other: "Query") -> "Query":
        if other._registry is not self._registry:
            raise InvalidValueError("cannot combine queries from different registries")
        return Query(self._registry, self._indices + other._indices)

    def indices(self) -> list[int]:
        return list(self._indices)

    def solutions(self) -> dict[str, ContractionSolution]:
        """Matched solutions keyed by uid, in arena order."""
        return {
            self._registry.solution(i).uid: self._registry.solution(i) for i in self._indices
        }

    def solution_count(self) -> int:
        return len(self._indices)

    def __len__(self) -> int:
        return len(self._indices)

    def __iter__(self) -> Iterator[int]:
        return iter(self._indices)

    def __repr__(self) -> str:
        return f"Query({self.solution_count()} solutions)"


class SolutionRegistry:
    """
    Owns every solution for the lifetime of the process.

    Read-only after construction, so queries may run from any thread.
    """

    _instance: Optional["SolutionRegistry"] = None
    _lock = threading.Lock()

    def __init__(self):
        self._solutions: list[ContractionSolution] = []
        self._by_key: dict[SignatureKey, list[int]] = {}
        self._build()

    @classmethod
    def instance(cls) -> "SolutionRegistry":
        """Get the process-wide registry, building it on first use."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def teardown(cls) -> None:
        """Drop the process-wide registry. The next instance() rebuilds it."""
        with cls._lock:
            cls._instance = None

    def _register(self, solution: ContractionSolution) -> int:
        index = len(self._solutions)
        self._solutions.append(solution)
        key = (*solution.signature, solution.op)
        self._by_key.setdefault(key, []).append(index)
        return index

    def _build(self) -> None:
        kernels = build_catalog()
        for kernel in kernels:
            self._register(RealContractionSolution(kernel))

        # Complex solutions reuse the real kernels with the same tile
        for kernel in kernels:
            if kernel.op == ContractionOpId.BILINEAR:
                self._register(ComplexBilinearSolution(kernel))
        for kernel in kernels:
            if kernel.op == ContractionOpId.SCALE:
                twin = replace(kernel, op=ContractionOpId.BILINEAR)
                self._register(ComplexScaleSolution(kernel, twin))

        logger.info(
            f"Solution registry built: {len(self._solutions)} solutions, "
            f"{len(self._by_key)} signatures"
        )

    def solution(self, index: int) -> ContractionSolution:
        return self._solutions[index]

    def all_solutions(self) -> Query:
        return Query(self, range(len(self._solutions)))

    def lookup(self, a: DataType, b: DataType, c: DataType, d: DataType, op: ContractionOpId) -> Query:
        """Indexed lookup by full key."""
        return Query(self, self._by_key.get((a, b, c, d, op), []))

    def signatures(self) -> list[SignatureKey]:
        return list(self._by_key)

    def __len__(self) -> int:
        return len(self._solutions)


def all_solutions() -> Query:
    """Query over every solution in the process-wide registry."""
    return SolutionRegistry.instance().all_solutions()


atexit.register(SolutionRegistry.teardown)
