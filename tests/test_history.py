"""Tests for the bounded history buffer."""

import pytest

from elastic_ingest_top.history import RingBuffer


class TestRingBuffer:
    def test_keeps_last_capacity_values_in_order(self):
        buffer = RingBuffer(3)
        for value in range(1, 8):
            buffer.append(value)
        assert len(buffer) == 3
        assert buffer.to_list() == [5.0, 6.0, 7.0]

    def test_values_are_stored_as_floats(self):
        buffer = RingBuffer(2)
        buffer.append(4)
        assert isinstance(buffer.to_list()[-1], float)

    def test_mean_of_empty_is_zero(self):
        assert RingBuffer(5).mean() == 0.0

    def test_mean_uses_retained_window_only(self):
        buffer = RingBuffer(2, [100.0, 0.0, 40.0])
        assert buffer.to_list() == [0.0, 40.0]
        assert buffer.mean() == 20.0

    def test_last_default(self):
        assert RingBuffer(1).last(default=-1.0) == -1.0

    def test_clear(self):
        buffer = RingBuffer(4, [1.0, 2.0])
        buffer.clear()
        assert len(buffer) == 0
        assert buffer.capacity == 4

    @pytest.mark.parametrize("capacity", [0, -3])
    def test_rejects_non_positive_capacity(self, capacity):
        with pytest.raises(ValueError):
            RingBuffer(capacity)
