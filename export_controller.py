"""
Export controller for the Traffic Log Shipper
Enables and disables exporters and routes entries and notifications
"""

import logging
import threading
from typing import Callable, List, Optional

from log_entry import LogEntry


logger = logging.getLogger('Shipper.ExportController')


Notifier = Callable[[str, str], None]


def log_notifier(title: str, message: str):
    """Default notifier: surface the message in the log"""
    logger.error(f"{title}: {message}")


class ExportController:
    """Owns the set of enabled exporters"""

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier or log_notifier
        self._enabled = []
        self._lock = threading.Lock()

    def enable_exporter(self, exporter):
        """
        Start an exporter and begin routing entries to it

        Raises:
            Whatever exporter.start() raises; the user is notified first
        """
        if self.is_enabled(exporter):
            return

        try:
            exporter.start()
        except Exception as e:
            logger.error(f"Could not start {exporter.get_name()}: {e}", exc_info=True)
            self.notify(
                exporter.get_name(),
                f"Could not start {exporter.get_name()}: {e}\nSee the logs for more information."
            )
            raise

        with self._lock:
            self._enabled.append(exporter)

    def disable_exporter(self, exporter):
        """Stop routing entries to an exporter and shut it down"""
        with self._lock:
            if exporter not in self._enabled:
                return
            self._enabled.remove(exporter)

        exporter.stop()

    def disable_all(self):
        for exporter in self.get_enabled_exporters():
            self.disable_exporter(exporter)

    def is_enabled(self, exporter) -> bool:
        with self._lock:
            return exporter in self._enabled

    def get_enabled_exporters(self) -> List:
        with self._lock:
            return list(self._enabled)

    def export_new_entry(self, entry: LogEntry):
        for exporter in self.get_enabled_exporters():
            exporter.on_new_entry(entry)

    def export_updated_entry(self, entry: LogEntry):
        for exporter in self.get_enabled_exporters():
            exporter.on_updated_entry(entry)

    def notify(self, title: str, message: str):
        try:
            self.notifier(title, message)
        except Exception as e:
            logger.error(f"Notifier failed for '{title}': {e}")
