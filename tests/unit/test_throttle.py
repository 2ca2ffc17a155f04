"""Tests for traitdump.lib.throttle module."""

import time

import pytest

from traitdump.lib.throttle import ResponseThrottle


class TestResponseThrottleInit:
    """Tests for ResponseThrottle initialization."""

    def test_defaults(self):
        """Default policy pauses 1 second after more than 100 rows."""
        throttle = ResponseThrottle()
        assert throttle.threshold == 100
        assert throttle.delay == 1.0

    def test_negative_values_rejected(self):
        with pytest.raises(ValueError):
            ResponseThrottle(threshold=-1)
        with pytest.raises(ValueError):
            ResponseThrottle(delay=-0.5)


class TestResponseThrottleRecord:
    """Tests for ResponseThrottle.record()."""

    def test_above_threshold_triggers_pause(self):
        throttle = ResponseThrottle(threshold=100, delay=0.05)
        assert throttle.record(101) is True
        assert throttle.pending is True

    def test_at_threshold_does_not_pause(self):
        throttle = ResponseThrottle(threshold=100, delay=0.05)
        assert throttle.record(100) is False
        assert throttle.pending is False

    def test_zero_delay_never_pauses(self):
        throttle = ResponseThrottle(threshold=0, delay=0)
        assert throttle.record(5000) is False


class TestResponseThrottleAcquire:
    """Tests for ResponseThrottle.acquire()."""

    def test_waits_after_large_response(self):
        """The call after a large response is delayed."""
        throttle = ResponseThrottle(threshold=100, delay=0.05)
        throttle.record(101)

        start = time.monotonic()
        waited = throttle.acquire()
        elapsed = time.monotonic() - start

        assert waited > 0
        assert elapsed >= 0.04  # Conservative

    def test_no_wait_after_small_response(self):
        throttle = ResponseThrottle(threshold=100, delay=0.5)
        throttle.record(100)

        start = time.monotonic()
        assert throttle.acquire() == 0.0
        assert time.monotonic() - start < 0.1

    def test_pause_is_consumed(self):
        """Only the next call waits, not every later call."""
        throttle = ResponseThrottle(threshold=1, delay=0.02)
        throttle.record(2)
        throttle.acquire()
        assert throttle.acquire() == 0.0

    def test_elapsed_time_counts_toward_pause(self):
        """Time spent elsewhere shortens the wait."""
        throttle = ResponseThrottle(threshold=1, delay=0.05)
        throttle.record(2)
        time.sleep(0.06)
        assert throttle.acquire() == 0.0
