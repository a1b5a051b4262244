"""
Failure tracker for the Traffic Log Shipper
Shipment counters and the consecutive-failure threshold of the circuit breaker
"""

import threading
from typing import Dict


MAX_CONSECUTIVE_FAILURES = 5


class FailureTracker:
    """Lock-guarded success/failure counters"""

    def __init__(self, max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES):
        if max_consecutive_failures <= 0:
            raise ValueError(
                f"max_consecutive_failures must be positive, got {max_consecutive_failures}"
            )
        self.max_consecutive_failures = max_consecutive_failures
        self._lock = threading.Lock()
        self._consecutive_failures = 0
        self._successful = 0
        self._failed = 0

    def record_success(self, count: int) -> None:
        """A batch of `count` entries was shipped"""
        with self._lock:
            self._consecutive_failures = 0
            self._successful += count

    def record_failure(self) -> bool:
        """
        A batch failed to ship

        Returns:
            True if the consecutive failure limit has been reached
        """
        with self._lock:
            if self._consecutive_failures < self.max_consecutive_failures:
                self._consecutive_failures += 1
            return self._consecutive_failures >= self.max_consecutive_failures

    def record_dropped(self, count: int = 1) -> None:
        """Entries lost without affecting the consecutive failure count"""
        with self._lock:
            self._failed += count

    def reset(self) -> None:
        with self._lock:
            self._consecutive_failures = 0
            self._successful = 0
            self._failed = 0

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    @property
    def successful_shipments(self) -> int:
        with self._lock:
            return self._successful

    @property
    def failed_shipments(self) -> int:
        with self._lock:
            return self._failed

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                'successful': self._successful,
                'failed': self._failed,
                'consecutive_failures': self._consecutive_failures,
            }
