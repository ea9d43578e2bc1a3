# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the simulated runtime: memory, devices, streams and events.
"""

import threading

import numpy as np
import pytest

from tensorplan.config import PlannerConfig, set_config
from tensorplan.errors import AllocationError, InvalidValueError
from tensorplan.runtime import (
    ALLOCATION_ALIGNMENT,
    DeviceMemoryManager,
    Event,
    Stream,
    create_handle,
    device_count,
    get_current_device,
    get_device_manager,
    set_device,
)


class TestDeviceMemoryManager:
    """Tests for device allocation and tracking."""

    def test_allocation_aligned(self):
        manager = DeviceMemoryManager(0, 1 << 20)
        for size in (1, 7, 100, 4096):
            buf = manager.allocate(size)
            assert buf.ptr % ALLOCATION_ALIGNMENT == 0
            assert buf.nbytes == size

    def test_tracking(self):
        manager = DeviceMemoryManager(0, 1 << 20)
        a = manager.allocate(1000)
        b = manager.allocate(2000)
        assert manager.live_allocations == 2
        assert manager.total_allocated_bytes == 3000
        manager.free(a)
        assert manager.live_allocations == 1
        assert manager.total_allocated_bytes == 2000
        assert manager.peak_allocated_bytes == 3000
        manager.free(b)
        assert manager.live_allocations == 0

    def test_double_free_is_noop(self):
        manager = DeviceMemoryManager(0, 1 << 20)
        buf = manager.allocate(64)
        manager.free(buf)
        manager.free(buf)
        manager.free(None)
        assert manager.total_allocated_bytes == 0

    def test_out_of_memory(self):
        manager = DeviceMemoryManager(0, 1024)
        manager.allocate(1000)
        with pytest.raises(AllocationError):
            manager.allocate(100)

    def test_use_after_free(self):
        manager = DeviceMemoryManager(0, 1024)
        buf = manager.allocate(16)
        manager.free(buf)
        with pytest.raises(AllocationError):
            buf.view(np.float32)

    def test_copy_round_trip(self):
        manager = DeviceMemoryManager(0, 1 << 20)
        host = np.arange(12, dtype=np.complex64).reshape(3, 4)
        buf = manager.copy_to_device(host)
        back = manager.copy_to_host(buf, np.complex64, 12).reshape(3, 4)
        np.testing.assert_array_equal(back, host)

    def test_summary(self):
        manager = DeviceMemoryManager(3, 1 << 20)
        manager.allocate(1024)
        summary = manager.summary()
        assert summary["device"] == 3
        assert summary["num_allocations"] == 1


class TestDevices:
    """Tests for device enumeration and the current device."""

    def test_default_device(self):
        assert device_count() == 1
        assert get_current_device().device_id == 0

    def test_properties_from_config(self):
        set_config(PlannerConfig(device_count=2, supports_f64=False, compute_units=60))
        assert device_count() == 2
        props = get_device_manager().get_device(1).properties
        assert props.supports_f64 is False
        assert props.compute_units == 60

    def test_set_device(self):
        set_config(PlannerConfig(device_count=2))
        set_device(1)
        assert get_current_device().device_id == 1

    def test_set_device_out_of_range(self):
        with pytest.raises(InvalidValueError):
            set_device(5)

    def test_current_device_is_per_thread(self):
        set_config(PlannerConfig(device_count=2))
        set_device(1)
        seen = []
        thread = threading.Thread(target=lambda: seen.append(get_current_device().device_id))
        thread.start()
        thread.join()
        assert seen == [0]
        assert get_current_device().device_id == 1

    def test_handle_binds_current_device(self):
        set_config(PlannerConfig(device_count=2))
        set_device(1)
        handle = create_handle()
        assert handle.device_id == 1
        assert handle.device.device_id == 1


class TestStreamAndEvents:
    """Tests for streams and timing events."""

    def test_launch_records_label(self):
        stream = Stream(0)
        result = stream.launch("add", lambda x, y: x + y, 2, 3)
        assert result == 5
        assert stream.launches == ["add"]
        assert stream.launch_count == 1

    def test_clear_history(self):
        stream = Stream(0)
        stream.launch("noop", lambda: None)
        stream.clear_history()
        assert stream.launch_count == 0
        assert stream.launches == []

    def test_history_bounded(self):
        stream = Stream(0, history_limit=4)
        for i in range(10):
            stream.launch(f"step_{i}", lambda: None)
        assert stream.launches == ["step_6", "step_7", "step_8", "step_9"]
        assert stream.launch_count == 10

    def test_default_stream_bounded(self):
        stream = get_current_device().default_stream
        for _ in range(Stream.HISTORY_LIMIT + 5):
            stream.launch("noop", lambda: None)
        assert len(stream.launches) == Stream.HISTORY_LIMIT
        assert stream.launch_count == Stream.HISTORY_LIMIT + 5

    def test_elapsed(self):
        start, end = Event(), Event()
        start.record()
        end.record()
        assert Event.elapsed_ms(start, end) >= 0.0

    def test_unrecorded_event(self):
        with pytest.raises(InvalidValueError):
            Event.elapsed_ms(Event(), Event())
