"""
Base shipping backend for the Traffic Log Shipper
All backends should inherit from this class
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List

from log_entry import LogEntry, ExportField


class ShippingBackend(ABC):
    """Protocol-specific strategy used by LogShipper"""

    display_name = 'Shipping Backend'

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the backend

        Args:
            config: Normalized configuration dictionary (see ConfigLoader)
        """
        self.config = config
        self.fields = list(config.get('fields', []))

    @abstractmethod
    def initialize_connection(self) -> None:
        """
        Connect to the destination and verify it accepts messages

        Raises:
            BackendConnectionError: if the destination cannot be reached
        """
        pass

    @abstractmethod
    def ship_batch(self, entries: List[LogEntry]) -> None:
        """
        Transmit a batch of entries

        Args:
            entries: Entries drained from the queue, oldest first

        Raises:
            ShipmentError: on the first entry that cannot be delivered; the
                rest of the batch is not attempted
        """
        pass

    def set_fields(self, fields: List[ExportField]) -> None:
        """Select the entry fields included in each message"""
        self.fields = list(fields)

    def close(self) -> None:
        """Release connection resources"""
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Get the backend name

        Returns:
            Backend name (e.g., 'graylog')
        """
        pass
