# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
tensorplan Contraction Module

Solution catalog, kernel selection, workspace negotiation, complex
decomposition and plans.
"""

from .descriptor import ContractionDescriptor
from .solution import ContractionSolution, RealContractionSolution, real_scalar
from .complex import (
    ComplexBilinearSolution,
    ComplexScaleSolution,
    DecompositionArgumentSet,
    DecompositionStep,
)
from .registry import Query, SolutionRegistry, all_solutions
from .heuristics import HeuristicTable, analytic_score, feature_key
from .selection import (
    ActorCriticModel,
    BruteForceModel,
    SelectionModel,
    SelectionResult,
    SelectionState,
    SolutionMetrics,
    StreamTimer,
    model_for_algorithm,
)
from .workspace import get_workspace_size, probe_workspace_sizes, restrict_candidates
from .plan import ContractionFind, ContractionPlan, check_device

__all__ = [
    "ContractionDescriptor",
    "ContractionSolution",
    "RealContractionSolution",
    "real_scalar",
    "ComplexBilinearSolution",
    "ComplexScaleSolution",
    "DecompositionArgumentSet",
    "DecompositionStep",
    "Query",
    "SolutionRegistry",
    "all_solutions",
    "HeuristicTable",
    "analytic_score",
    "feature_key",
    "ActorCriticModel",
    "BruteForceModel",
    "SelectionModel",
    "SelectionResult",
    "SelectionState",
    "SolutionMetrics",
    "StreamTimer",
    "model_for_algorithm",
    "get_workspace_size",
    "probe_workspace_sizes",
    "restrict_candidates",
    "ContractionFind",
    "ContractionPlan",
    "check_device",
]
