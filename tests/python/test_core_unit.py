"""
Core Unit Tests

Unit testing for the core and descriptor layer:
- DataType / StatusCode enumerations and helpers
- Status: construction, truthiness
- TensorDescriptor: creation, default strides, element count and space
- ContractionDescriptor: op tag, placeholder C, signature
"""

import pytest

from tensorplan.contraction import ContractionDescriptor
from tensorplan.core import (
    Algorithm,
    ComputeType,
    ContractionOpId,
    DataType,
    Status,
    StatusCode,
    TensorDescriptor,
    WorksizePreference,
    dtype_size,
    dtype_to_string,
    is_complex,
    numpy_dtype,
    real_type,
    row_major_strides,
    status_string,
)
from tensorplan.errors import NotInitializedError


class TestEnumerations:
    """Numeric values match the C interface."""

    def test_data_type_values(self):
        """Test data type values."""
        assert DataType.R_32F.value == 0
        assert DataType.R_64F.value == 1
        assert DataType.R_16F.value == 2
        assert DataType.C_32F.value == 4
        assert DataType.C_64F.value == 5
        assert DataType.R_16BF.value == 14
        assert DataType.NONE.value == -1

    def test_algorithm_values(self):
        """Test algorithm values."""
        assert Algorithm.DEFAULT.value == -1
        assert Algorithm.DEFAULT_PATIENT.value == -6
        assert Algorithm.ACTOR_CRITIC.value == -8

    def test_worksize_values(self):
        """Test workspace preference values."""
        assert WorksizePreference.MIN.value == 1
        assert WorksizePreference.RECOMMENDED.value == 2
        assert WorksizePreference.MAX.value == 3

    def test_status_code_values(self):
        """Test status code values."""
        assert StatusCode.SUCCESS.value == 0
        assert StatusCode.NOT_INITIALIZED.value == 1
        assert StatusCode.INVALID_VALUE.value == 7
        assert StatusCode.ARCH_MISMATCH.value == 8
        assert StatusCode.INTERNAL_ERROR.value == 14
        assert StatusCode.INSUFFICIENT_WORKSPACE.value == 19

    def test_compute_type_flags(self):
        """Compute types are distinct bit flags."""
        values = [c.value for c in ComputeType]
        assert len(values) == len(set(values))
        for v in values:
            assert v & (v - 1) == 0


class TestDataTypeHelpers:
    """Tests for data type helpers."""

    @pytest.mark.parametrize(
        "dtype,size",
        [
            (DataType.R_16F, 2),
            (DataType.R_16BF, 2),
            (DataType.R_32F, 4),
            (DataType.R_64F, 8),
            (DataType.C_32F, 8),
            (DataType.C_64F, 16),
            (DataType.NONE, 0),
        ],
    )
    def test_dtype_size(self, dtype, size):
        assert dtype_size(dtype) == size

    def test_dtype_to_string(self):
        assert dtype_to_string(DataType.R_32F) == "r_32f"
        assert dtype_to_string(DataType.C_64F) == "c_64f"

    def test_is_complex(self):
        assert is_complex(DataType.C_32F)
        assert is_complex(DataType.C_64F)
        assert not is_complex(DataType.R_32F)

    def test_real_type(self):
        assert real_type(DataType.C_32F) == DataType.R_32F
        assert real_type(DataType.C_64F) == DataType.R_64F
        assert real_type(DataType.R_64F) == DataType.R_64F

    def test_numpy_dtype(self):
        """bfloat16 has no numpy counterpart."""
        import numpy as np

        assert numpy_dtype(DataType.R_32F) is np.float32
        assert numpy_dtype(DataType.C_32F) is np.complex64
        assert numpy_dtype(DataType.R_16BF) is None


class TestStatus:
    """Unit tests for Status."""

    def test_ok(self):
        status = Status.Ok()
        assert status.ok()
        assert bool(status)
        assert status.code == StatusCode.SUCCESS

    def test_error(self):
        status = Status.Error(StatusCode.INVALID_VALUE, "bad")
        assert not status.ok()
        assert not status
        assert status.message == "bad"

    def test_status_string(self):
        assert "successfully" in status_string(StatusCode.SUCCESS)
        assert "workspace" in status_string(StatusCode.INSUFFICIENT_WORKSPACE)


class TestTensorDescriptor:
    """Unit tests for TensorDescriptor."""

    def test_row_major_strides(self):
        assert row_major_strides([5, 6, 3, 4]) == (72, 12, 4, 1)
        assert row_major_strides([]) == ()

    def test_default_strides(self):
        """Test strides derived from lengths."""
        desc = TensorDescriptor.create([5, 6, 3, 4])
        assert desc.strides == (72, 12, 4, 1)
        assert desc.rank == 4
        assert desc.dtype == DataType.R_32F

    def test_explicit_strides(self):
        desc = TensorDescriptor.create([2, 3], [1, 2], DataType.R_64F)
        assert desc.strides == (1, 2)
        assert desc.dtype == DataType.R_64F

    def test_rank_mismatch(self):
        """Lengths and strides must have the same rank."""
        with pytest.raises(ValueError):
            TensorDescriptor.create([2, 3], [1])

    def test_negative_length(self):
        with pytest.raises(ValueError):
            TensorDescriptor.create([2, -3])

    def test_element_count(self):
        desc = TensorDescriptor.create([5, 6, 3, 4])
        assert desc.element_count() == 360

    def test_element_space_packed(self):
        desc = TensorDescriptor.create([5, 6, 3, 4])
        assert desc.element_space() == 360

    def test_element_space_padded(self):
        """Padded strides address a larger span than the element count."""
        desc = TensorDescriptor.create([4, 4], [8, 1])
        assert desc.element_count() == 16
        assert desc.element_space() == 1 + 3 * 8 + 3 * 1

    def test_element_space_zero_length(self):
        desc = TensorDescriptor.create([4, 0])
        assert desc.element_space() == 0
        assert desc.size_bytes() == 0

    def test_size_bytes(self):
        desc = TensorDescriptor.create([5, 6, 3, 4], dtype=DataType.C_64F)
        assert desc.size_bytes() == 360 * 16

    def test_immutable(self):
        desc = TensorDescriptor.create([2, 2])
        with pytest.raises(AttributeError):
            desc.lengths = (3, 3)

    def test_placeholder(self):
        desc = TensorDescriptor.placeholder(4)
        assert desc.is_placeholder
        assert desc.lengths == (0, 0, 0, 0)
        assert desc.strides == (0, 0, 0, 0)
        assert desc.dtype == DataType.NONE


class TestContractionDescriptor:
    """Unit tests for ContractionDescriptor."""

    def _operands(self, dtype=DataType.R_32F):
        a = TensorDescriptor.create([5, 6, 3, 4], dtype=dtype)
        b = TensorDescriptor.create([3, 4, 3, 4], dtype=dtype)
        d = TensorDescriptor.create([5, 6, 3, 4], dtype=dtype)
        return a, b, d

    def test_bilinear(self):
        """A C operand makes the contraction bilinear."""
        a, b, d = self._operands()
        desc = ContractionDescriptor.create(a, 16, b, 16, d, 16, d, 16)
        assert desc.op == ContractionOpId.BILINEAR
        assert desc.signature == (DataType.R_32F,) * 4
        assert desc.alignments == (16, 16, 16, 16)

    def test_scale_placeholder(self):
        """Without C the slot holds a placeholder of D's rank and alignment 0."""
        a, b, d = self._operands()
        desc = ContractionDescriptor.create(a, 16, b, 16, None, 16, d, 16)
        assert desc.op == ContractionOpId.SCALE
        assert len(desc.operands) == 4
        assert desc.c.dtype == DataType.NONE
        assert desc.c.rank == d.rank
        assert desc.alignments[2] == 0
        assert desc.signature == (
            DataType.R_32F,
            DataType.R_32F,
            DataType.NONE,
            DataType.R_32F,
        )

    def test_complex_flag(self):
        a, b, d = self._operands(DataType.C_32F)
        desc = ContractionDescriptor.create(a, 8, b, 8, d, 8, d, 8)
        assert desc.is_complex

    def test_missing_operand(self):
        a, b, d = self._operands()
        with pytest.raises(NotInitializedError):
            ContractionDescriptor.create(a, 16, None, 16, None, 0, d, 16)

    def test_copied_by_value(self):
        """Descriptors are frozen, so copies cannot diverge."""
        a, b, d = self._operands()
        desc = ContractionDescriptor.create(a, 16, b, 16, d, 16, d, 16)
        with pytest.raises(AttributeError):
            desc.op = ContractionOpId.SCALE
