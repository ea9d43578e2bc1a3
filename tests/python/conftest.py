# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Pytest configuration for tensorplan Python tests.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to sys.path so we can import tensorplan
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

# Skip test modules that require optional dependencies not installed
collect_ignore = []

# Check for hypothesis
try:
    import hypothesis
except ImportError:
    collect_ignore.append("test_property_based.py")


from tensorplan.config import reset_config  # noqa: E402
from tensorplan.contraction import SolutionRegistry  # noqa: E402
from tensorplan.observability import PlanLogger  # noqa: E402
from tensorplan.runtime import reset_device_manager  # noqa: E402


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh config, devices and logger for every test; the registry is reset after."""
    reset_config()
    reset_device_manager()
    PlanLogger.reset()
    yield
    reset_config()
    reset_device_manager()
    PlanLogger.reset()


@pytest.fixture
def fresh_registry():
    """Tear the registry down before and after the test."""
    SolutionRegistry.teardown()
    yield
    SolutionRegistry.teardown()
