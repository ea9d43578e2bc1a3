# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Heuristic Scoring

Shape features and candidate scores for actor-critic selection. Scores come
from a pre-characterised table when it has an entry for the (feature key,
instance) pair, otherwise from an analytic model of the tile configuration:

    score = 0.6 * padding_efficiency
          + 0.3 * occupancy
          + 0.1 * vector_width
          - workspace_penalty

Everything here is a pure function of its inputs.
"""

import json
import math
from pathlib import Path
from typing import Optional

from ..runtime.kernels import KernelInstance, ProblemShape
from .descriptor import ContractionDescriptor

FeatureKey = tuple

WORKSPACE_PENALTY = 0.05
_MAX_VECTOR = 4


def _round_pow2(value: int) -> int:
    if value <= 1:
        return 1
    return 1 << (value - 1).bit_length()


def feature_key(descriptor: ContractionDescriptor, shape: ProblemShape) -> FeatureKey:
    """Reduce a problem to (op, signature, dims, M, N, K) with sizes rounded up to powers of two."""
    return (
        descriptor.op.name,
        tuple(t.name for t in descriptor.signature),
        shape.dims,
        _round_pow2(shape.m),
        _round_pow2(shape.n),
        _round_pow2(shape.k),
    )


def _padding_efficiency(size: int, tile: int) -> float:
    if size == 0:
        return 1.0
    return size / (math.ceil(size / tile) * tile)


def analytic_score(
    instance: KernelInstance,
    shape: ProblemShape,
    compute_units: int,
    workspace_bytes: int = 0,
) -> float:
    """Score a tile configuration for a problem shape. Higher is better."""
    padding = (
        _padding_efficiency(shape.m, instance.m_per_block)
        * _padding_efficiency(shape.n, instance.n_per_block)
        * _padding_efficiency(shape.k, instance.k_per_block)
    )
    tiles = (
        math.ceil(shape.m / instance.m_per_block)
        * math.ceil(shape.n / instance.n_per_block)
        * instance.k_batch
    )
    occupancy = min(1.0, tiles / max(1, compute_units))
    vector = (instance.a_vector + instance.b_vector + instance.e_vector) / (3 * _MAX_VECTOR)
    penalty = WORKSPACE_PENALTY if workspace_bytes > 0 else 0.0
    return 0.6 * padding + 0.3 * occupancy + 0.1 * vector - penalty


class HeuristicTable:
    """
    Pre-characterised scores keyed by feature key and instance type string.

    Tables can be persisted as JSON and loaded back.
    """

    def __init__(self, entries: Optional[dict] = None):
        self._entries: dict[tuple[FeatureKey, str], float] = dict(entries or {})

    def record(self, key: FeatureKey, type_string: str, score: float) -> None:
        self._entries[(key, type_string)] = float(score)

    def lookup(self, key: FeatureKey, type_string: str) -> Optional[float]:
        return self._entries.get((key, type_string))

    def __len__(self) -> int:
        return len(self._entries)

    def save(self, path) -> None:
        """Save table to file."""
        data = [
            {"key": json.dumps(key), "instance": type_string, "score": score}
            for (key, type_string), score in self._entries.items()
        ]
        with open(Path(path), "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def load(cls, path) -> "HeuristicTable":
        """Load table from file."""
        with open(Path(path), "r") as f:
            data = json.load(f)
        table = cls()
        for item in data:
            key = _tuplify(json.loads(item["key"]))
            table.record(key, item["instance"], item["score"])
        return table


def _tuplify(value):
    if isinstance(value, list):
        return tuple(_tuplify(v) for v in value)
    return value
