"""
Scheduler for the Traffic Log Shipper
Runs one task at a fixed rate on a single dedicated worker thread
"""

import time
import logging
import threading
from typing import Callable, Optional


logger = logging.getLogger('Shipper.Scheduler')


class Scheduler:
    """
    Single-worker fixed-rate timer

    Executions never overlap: a cycle that overruns its period delays the
    next one instead of skipping it.
    """

    def __init__(self, name: str = 'shipper-scheduler'):
        self.name = name
        self._task: Optional[Callable[[], None]] = None
        self._initial_delay = 0.0
        self._interval = 0.0
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def schedule_at_fixed_rate(self, task: Callable[[], None], initial_delay: float, interval: float):
        """
        Start running `task` every `interval` seconds

        Args:
            task: Callable run on the worker thread
            initial_delay: Seconds before the first run
            interval: Seconds between the starts of consecutive runs
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already has a scheduled task")

        self._task = task
        self._initial_delay = max(0.0, initial_delay)
        self._interval = interval
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"{self.name}: scheduled every {interval}s")

    def _run(self):
        next_run = time.monotonic() + self._initial_delay
        while not self._cancelled.is_set():
            delay = next_run - time.monotonic()
            if delay > 0 and self._cancelled.wait(delay):
                break
            if self._cancelled.is_set():
                break

            try:
                self._task()
            except Exception as e:
                logger.error(f"{self.name}: scheduled task raised: {e}", exc_info=True)

            next_run += self._interval

    def cancel(self):
        """Stop future runs; a run already in progress is left to finish"""
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def in_worker_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def shutdown(self, timeout: float) -> bool:
        """
        Cancel and wait for the worker to exit

        Returns:
            True if the worker stopped within `timeout` seconds. A worker that
            does not stop is abandoned; it is a daemon thread.
        """
        self.cancel()
        if self._thread is None or self.in_worker_thread():
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()
