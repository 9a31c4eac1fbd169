"""
Admission control for transcode requests.

A process-wide counter of in-flight acquisitions bounded by a fixed ceiling.
The lock only guards the increment/decrement, never a provider attempt.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import CapacityExceeded

logger = logging.getLogger(__name__)


class ConcurrencyGate:
    """Bounded in-flight counter with scoped acquisition."""

    def __init__(self, max_concurrent: int = 5, retry_after: int = 10):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        self._retry_after = retry_after
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def retry_after(self) -> int:
        return self._retry_after

    def try_admit(self) -> bool:
        """Return True and take a slot if one is free; otherwise change nothing."""
        with self._lock:
            if self._in_flight >= self._max_concurrent:
                return False
            self._in_flight += 1
            return True

    def release(self) -> None:
        """Give back a slot taken by a successful try_admit()."""
        with self._lock:
            if self._in_flight <= 0:
                raise RuntimeError("ConcurrencyGate.release() called without a matching admit")
            self._in_flight -= 1

    @contextmanager
    def slot(self, log_prefix: Optional[str] = None) -> Iterator[int]:
        """
        Hold one slot for the duration of the block.

        Raises CapacityExceeded when the gate is full. The slot is released
        exactly once however the block exits (return, exception, greenlet kill).
        """
        prefix = log_prefix or "[gate]"
        if not self.try_admit():
            logger.info(f"{prefix} At capacity: {self.in_flight}/{self._max_concurrent}")
            raise CapacityExceeded(retry_after=self._retry_after)
        logger.info(f"{prefix} Incremented request counter to {self.in_flight}")
        try:
            yield self.in_flight
        finally:
            self.release()
            logger.info(f"{prefix} Decremented request counter to {self.in_flight}")
