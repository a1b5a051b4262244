"""
Log shipper for the Traffic Log Shipper
Queues processed entries and ships them in batches through a backend
"""

import logging
import threading
from enum import Enum
from typing import Dict, Any, List, Optional

from entry_queue import EntryQueue, MAX_QUEUE_SIZE
from errors import ConfigurationError
from exporters.base import ShippingBackend
from failure_tracker import FailureTracker, MAX_CONSECUTIVE_FAILURES
from filter_predicate import FilterCompiler, compile_filter
from log_entry import LogEntry, ExportField, Status
from scheduler import Scheduler


logger = logging.getLogger('Shipper.LogShipper')


SHUTDOWN_TIMEOUT_SECONDS = 10
MIN_DELAY_SECONDS = 10
DEFAULT_DELAY_SECONDS = 120


class ShipperState(Enum):
    STOPPED = 'stopped'
    STARTING = 'starting'
    RUNNING = 'running'
    STOPPING = 'stopping'


class LogShipper:
    """
    Batching exporter built around a ShippingBackend

    Producers call on_new_entry/on_updated_entry from any thread. A single
    scheduler thread drains the queue every `delay` seconds and hands the
    batch to the backend. After MAX_CONSECUTIVE_FAILURES failed batches the
    shipper disables itself through its controller.
    """

    def __init__(self, backend: ShippingBackend, config: Dict[str, Any],
                 controller=None, filter_compiler: Optional[FilterCompiler] = None,
                 max_queue_size: int = MAX_QUEUE_SIZE,
                 max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES):
        self.backend = backend
        self.config = config
        self.controller = controller
        self.filter_compiler = filter_compiler
        self.name = config.get('name') or backend.display_name
        self.fields: List[ExportField] = list(config.get('fields', []))

        delay = config.get('delay', DEFAULT_DELAY_SECONDS)
        if delay < MIN_DELAY_SECONDS:
            logger.warning(f"{self.name}: delay {delay}s is below the minimum, using {MIN_DELAY_SECONDS}s")
            delay = MIN_DELAY_SECONDS
        self.delay = delay

        self.queue = EntryQueue(max_queue_size)
        self.tracker = FailureTracker(max_consecutive_failures)
        self.scheduler: Optional[Scheduler] = None
        self.log_filter = None
        self.state = ShipperState.STOPPED
        self._state_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._tripped = False

    def start(self):
        """
        Validate configuration, connect the backend and start the scheduler

        Raises:
            ConfigurationError: if no fields are selected or the filter is invalid
            BackendConnectionError: if the backend connection test fails
        """
        with self._state_lock:
            if self.state != ShipperState.STOPPED:
                logger.warning(f"{self.name} is already {self.state.value}")
                return
            self.state = ShipperState.STARTING

        try:
            if not self.fields:
                raise ConfigurationError("No fields configured for export.")

            self.log_filter = compile_filter(self.config.get('filter'), self.filter_compiler, self.name)
            self.backend.set_fields(self.fields)
            self.backend.initialize_connection()
        except Exception:
            self.log_filter = None
            self.backend.close()
            self.state = ShipperState.STOPPED
            raise

        self.queue.clear()
        self.tracker.reset()
        self._tripped = False

        self.scheduler = Scheduler(name=f"{self.backend.get_name()}-shipper")
        self.scheduler.schedule_at_fixed_rate(self.process_queue, self.delay, self.delay)
        self.state = ShipperState.RUNNING

        logger.info(f"{self.name} started successfully")

    def on_new_entry(self, entry: LogEntry) -> bool:
        return self._admit(entry)

    def on_updated_entry(self, entry: LogEntry) -> bool:
        return self._admit(entry)

    def _admit(self, entry: LogEntry) -> bool:
        if self.state != ShipperState.RUNNING:
            return False
        if entry.status != Status.PROCESSED:
            return False
        log_filter = self.log_filter
        if log_filter is not None and not log_filter(entry):
            return False

        # stop() moves to STOPPING under the same lock, so nothing lands after its final clear
        with self._state_lock:
            if self.state != ShipperState.RUNNING:
                return False
            accepted = self.queue.offer(entry)

        # Never block the producer
        if not accepted:
            logger.warning(f"{self.name}: Queue is full ({self.queue.max_size} entries). Dropping log entry.")
            self.tracker.record_dropped()
            return False
        return True

    def process_queue(self):
        """Run one flush cycle: drain the queue and ship it as one batch"""
        limit_reached = False

        with self._flush_lock:
            if self.queue.is_empty():
                return

            batch = self.queue.drain_all()
            if not batch:
                return

            logger.debug(f"Shipping {len(batch)} entries to {self.name}")

            try:
                self.backend.ship_batch(batch)
            except Exception as e:
                limit_reached = self.tracker.record_failure()
                self.tracker.record_dropped(self.queue.size())
                logger.error(
                    f"{self.name} failed to ship entries "
                    f"(failure {self.tracker.consecutive_failures} of {self.tracker.max_consecutive_failures}): {e}",
                    exc_info=True
                )
            else:
                self.tracker.record_success(len(batch))
                logger.debug(f"Successfully shipped {len(batch)} entries")

        # Outside the flush lock: disabling runs a final flush
        if limit_reached:
            self.handle_consecutive_failures()

    def handle_consecutive_failures(self):
        """Disable this shipper and tell the user; at most once per run"""
        with self._state_lock:
            if self._tripped or self.state != ShipperState.RUNNING:
                return
            self._tripped = True

        max_failures = self.tracker.max_consecutive_failures
        logger.error(f"{self.name} has failed {max_failures} consecutive times. Shutting down exporter.")

        try:
            if self.controller is not None:
                self.controller.disable_exporter(self)
                # No-op when the controller already stopped us
                self.stop()
                self.controller.notify(
                    f"{self.name} - Connection Failed",
                    f"{self.name} could not connect after {max_failures} attempts. Exporter has been shut down."
                )
            else:
                self.stop()
        except Exception as e:
            logger.error(f"Error disabling exporter after consecutive failures: {e}", exc_info=True)

    def stop(self):
        """Cancel the scheduler, flush once more and release the backend"""
        with self._state_lock:
            if self.state in (ShipperState.STOPPED, ShipperState.STOPPING):
                return
            self.state = ShipperState.STOPPING

        logger.info(f"Shutting down {self.name}...")

        if self.scheduler is not None:
            self.scheduler.cancel()

        if not self.queue.is_empty():
            logger.info(f"Processing {self.queue.size()} remaining entries before shutdown")
            try:
                self.process_queue()
            except Exception as e:
                logger.error(f"Error processing final entries during shutdown: {e}", exc_info=True)

        if self.scheduler is not None and not self.scheduler.shutdown(SHUTDOWN_TIMEOUT_SECONDS):
            logger.warning(f"{self.name} executor did not terminate gracefully, forcing shutdown")
        self.scheduler = None

        discarded = self.queue.clear()
        if discarded:
            logger.warning(f"{self.name}: discarded {discarded} entries queued during shutdown")

        self.backend.close()
        self.log_filter = None
        self.state = ShipperState.STOPPED

        logger.info(
            f"{self.name} shutdown complete. Stats - Successful: "
            f"{self.tracker.successful_shipments}, Failed: {self.tracker.failed_shipments}"
        )

    def is_running(self) -> bool:
        return self.state == ShipperState.RUNNING

    def get_name(self) -> str:
        return self.name

    def get_queue_size(self) -> int:
        return self.queue.size()

    def get_successful_shipments(self) -> int:
        return self.tracker.successful_shipments

    def get_failed_shipments(self) -> int:
        return self.tracker.failed_shipments

    def get_consecutive_failures(self) -> int:
        return self.tracker.consecutive_failures

    def get_stats(self) -> Dict[str, Any]:
        stats = self.tracker.snapshot()
        stats['queued'] = self.queue.size()
        stats['state'] = self.state.value
        return stats

    def get_fields(self) -> List[ExportField]:
        return list(self.fields)

    def set_fields(self, fields: List[ExportField]):
        """Change the exported fields; takes effect on the next start"""
        self.fields = list(fields)
        self.config['fields'] = list(fields)
