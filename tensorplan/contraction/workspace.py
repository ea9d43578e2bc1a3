# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Workspace Negotiation

Folds the workspace requirements of a find's candidates into one size:

- MIN: smallest non-zero requirement among supported candidates
- MAX: largest requirement among supported candidates
- RECOMMENDED: requirement of the actor-critic winner, clamped to [MIN, MAX]
  (MAX when there is no winner)

Candidates are probed with null buffers; nothing is allocated or launched.
"""

import logging
from typing import Optional

from ..core.types import WorksizePreference
from ..errors import InvalidValueError, NoSupportedSolutionError
from ..runtime.device import Device
from .descriptor import ContractionDescriptor
from .registry import SolutionRegistry
from .selection import ActorCriticModel

logger = logging.getLogger("tensorplan.contraction.workspace")


def restrict_candidates(
    registry: SolutionRegistry, candidates: list[int], descriptor: ContractionDescriptor
) -> list[int]:
    """Keep the candidates whose signature and op match the descriptor."""
    allowed = set(registry.lookup(*descriptor.signature, descriptor.op).indices())
    return [i for i in candidates if i in allowed]


def probe_workspace_sizes(
    registry: SolutionRegistry, candidates: list[int], descriptor: ContractionDescriptor
) -> dict[int, int]:
    """Workspace bytes for every candidate that supports the descriptor."""
    sizes = {}
    for index in candidates:
        solution = registry.solution(index)
        with solution.make_argument(descriptor) as probe:
            if solution.is_supported(probe):
                sizes[index] = solution.workspace_size(probe)
    return sizes


def get_workspace_size(
    descriptor: ContractionDescriptor,
    candidates: list[int],
    preference,
    device: Device,
    registry: Optional[SolutionRegistry] = None,
) -> int:
    """
    Workspace size for a descriptor under a sizing preference.

    Args:
        descriptor: Contraction to size
        candidates: Candidate indices from a find
        preference: WorksizePreference (or its integer value)
        device: Device whose properties drive heuristic scoring
        registry: Solution registry (process-wide registry when omitted)

    Returns:
        Size in bytes; 0 when no candidate supports the descriptor

    Raises:
        InvalidValueError: If the preference is not a known value
    """
    try:
        preference = WorksizePreference(preference)
    except ValueError:
        raise InvalidValueError(
            "unknown workspace preference",
            parameter="preference",
            expected="MIN, RECOMMENDED or MAX",
            received=str(preference),
        ) from None

    registry = registry or SolutionRegistry.instance()
    restricted = restrict_candidates(registry, candidates, descriptor)
    sizes = probe_workspace_sizes(registry, restricted, descriptor)

    nonzero = [s for s in sizes.values() if s > 0]
    smallest = min(nonzero) if nonzero else 0
    largest = max(sizes.values()) if sizes else 0

    if preference == WorksizePreference.MIN:
        return smallest
    if preference == WorksizePreference.MAX:
        return largest

    try:
        winner = ActorCriticModel().select(registry, restricted, descriptor, None, device)
    except NoSupportedSolutionError:
        return largest
    recommended = sizes.get(winner.winner_index, largest)
    logger.debug(
        f"Workspace sizes: min={smallest} recommended={recommended} max={largest}"
    )
    return min(max(recommended, smallest), largest)
