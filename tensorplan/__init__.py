# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
tensorplan: Tensor Contraction Planning and Dispatch

Chooses which precompiled contraction kernel to run for a problem, how
much workspace it needs, and how to express complex contractions as
ordered real sub-contractions.

Example:
    from tensorplan import api
    from tensorplan.core import Algorithm

    status, handle = api.create_handle()
    status, find = api.init_contraction_find(handle, Algorithm.ACTOR_CRITIC)
"""

__version__ = "0.1.0"
__author__ = "Wahyu Ardiansyah"

from .core import (
    Algorithm,
    ComputeType,
    ContractionOpId,
    DataType,
    Status,
    StatusCode,
    TensorDescriptor,
    WorksizePreference,
)
from .errors import TensorPlanError
from .config import PlannerConfig, get_config, set_config, reset_config
from .contraction import (
    ContractionDescriptor,
    ContractionFind,
    ContractionPlan,
    SolutionRegistry,
)
from . import api

__all__ = [
    "__version__",
    "Algorithm",
    "ComputeType",
    "ContractionOpId",
    "DataType",
    "Status",
    "StatusCode",
    "TensorDescriptor",
    "WorksizePreference",
    "TensorPlanError",
    "PlannerConfig",
    "get_config",
    "set_config",
    "reset_config",
    "ContractionDescriptor",
    "ContractionFind",
    "ContractionPlan",
    "SolutionRegistry",
    "api",
]
