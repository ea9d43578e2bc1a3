# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for workspace negotiation.
"""

import pytest

from tensorplan.contraction import (
    ContractionFind,
    SolutionRegistry,
    get_workspace_size,
    probe_workspace_sizes,
    restrict_candidates,
)
from tensorplan.core import Algorithm, DataType, WorksizePreference
from tensorplan.errors import InvalidValueError
from tensorplan.runtime import create_handle, get_current_device

from contraction_cases import make_descriptor


def sizes_for(descriptor):
    handle = create_handle()
    find = ContractionFind.create(handle, Algorithm.DEFAULT)
    return {
        pref: get_workspace_size(descriptor, find.candidates, pref, handle.device)
        for pref in WorksizePreference
    }


class TestWorkspaceSize:
    """Tests for MIN / RECOMMENDED / MAX folding."""

    @pytest.mark.parametrize(
        "dtype", [DataType.R_32F, DataType.R_64F, DataType.C_32F, DataType.C_64F]
    )
    @pytest.mark.parametrize("bilinear", [True, False])
    def test_ordering(self, dtype, bilinear):
        sizes = sizes_for(make_descriptor(dtype, bilinear))
        assert (
            sizes[WorksizePreference.MIN]
            <= sizes[WorksizePreference.RECOMMENDED]
            <= sizes[WorksizePreference.MAX]
        )

    def test_min_is_smallest_nonzero(self):
        descriptor = make_descriptor()
        registry = SolutionRegistry.instance()
        candidates = restrict_candidates(registry, registry.all_solutions().indices(), descriptor)
        probed = probe_workspace_sizes(registry, candidates, descriptor)
        assert 0 in probed.values()

        sizes = sizes_for(descriptor)
        nonzero = [s for s in probed.values() if s > 0]
        assert sizes[WorksizePreference.MIN] == min(nonzero)
        assert sizes[WorksizePreference.MAX] == max(probed.values())

    def test_complex_matches_real_kernels(self):
        """Complex solutions share the workspace of their real kernels."""
        real = sizes_for(make_descriptor(DataType.R_32F))
        cplx = sizes_for(make_descriptor(DataType.C_32F))
        assert real[WorksizePreference.MAX] == cplx[WorksizePreference.MAX]

    def test_no_allocation_or_launch(self):
        device = get_current_device()
        sizes_for(make_descriptor(DataType.C_64F))
        assert device.memory.peak_allocated_bytes == 0
        assert device.default_stream.launch_count == 0

    def test_unsupported_shape_is_zero(self):
        """Without a supporting candidate every preference is 0."""
        descriptor = make_descriptor(DataType.R_16F)
        sizes = sizes_for(descriptor)
        assert set(sizes.values()) == {0}

    def test_restricted_to_signature(self):
        """Candidates of other signatures do not contribute."""
        descriptor = make_descriptor(DataType.R_32F, bilinear=False)
        handle = create_handle()
        find = ContractionFind.create(handle, Algorithm.DEFAULT)
        registry = SolutionRegistry.instance()
        restricted = restrict_candidates(registry, find.candidates, descriptor)
        assert restricted
        for index in restricted:
            assert registry.solution(index).signature == descriptor.signature

    def test_invalid_preference(self):
        handle = create_handle()
        find = ContractionFind.create(handle, Algorithm.DEFAULT)
        with pytest.raises(InvalidValueError):
            get_workspace_size(make_descriptor(), find.candidates, 7, handle.device)

    def test_integer_preference(self):
        handle = create_handle()
        find = ContractionFind.create(handle, Algorithm.DEFAULT)
        assert get_workspace_size(make_descriptor(), find.candidates, 3, handle.device) == get_workspace_size(
            make_descriptor(), find.candidates, WorksizePreference.MAX, handle.device
        )
