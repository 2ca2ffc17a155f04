"""Backpressure for the shared query endpoint.

After any response larger than a row threshold, the next call waits out a
fixed delay. The policy is flat: every caller of a client shares it, and no
attempt is made to adapt the delay to server load.
"""

from __future__ import annotations

import logging
import threading
import time

logger = logging.getLogger(__name__)

__all__ = ["ResponseThrottle", "DEFAULT_THRESHOLD", "DEFAULT_DELAY"]

DEFAULT_THRESHOLD = 100
DEFAULT_DELAY = 1.0


class ResponseThrottle:
    """Delay the next call after a large response.

    Example:
        throttle = ResponseThrottle(threshold=100, delay=1.0)

        for query in queries:
            throttle.acquire()  # Blocks while a pause is pending
            rows = run(query)
            throttle.record(len(rows))
    """

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        delay: float = DEFAULT_DELAY,
    ) -> None:
        """Initialize throttle.

        Args:
            threshold: Responses with more rows than this trigger a pause
            delay: Pause length in seconds
        """
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.threshold = threshold
        self.delay = delay
        self._resume_at = 0.0
        self._lock = threading.Lock()

    def record(self, row_count: int) -> bool:
        """Note the size of a response.

        Returns:
            True if the response triggered a pause
        """
        if row_count <= self.threshold or self.delay == 0:
            return False
        with self._lock:
            self._resume_at = time.monotonic() + self.delay
        logger.debug(
            "%d rows > %d; pausing %.1fs before next query",
            row_count,
            self.threshold,
            self.delay,
        )
        return True

    def acquire(self) -> float:
        """Block until any pending pause has elapsed.

        Returns:
            Seconds actually waited
        """
        with self._lock:
            wait_time = self._resume_at - time.monotonic()
            self._resume_at = 0.0
        if wait_time <= 0:
            return 0.0
        time.sleep(wait_time)
        return wait_time

    @property
    def pending(self) -> bool:
        """Whether the next acquire() will wait."""
        with self._lock:
            return self._resume_at > time.monotonic()
