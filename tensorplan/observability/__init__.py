# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
tensorplan Observability Module

Structured logging for plan selection and execution.
"""

from .logger import LogEntry, PlanLogger, Verbosity, get_logger, set_verbosity

__all__ = [
    "LogEntry",
    "PlanLogger",
    "Verbosity",
    "get_logger",
    "set_verbosity",
]
