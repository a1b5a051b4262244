"""
Exceptions for the Traffic Log Shipper
"""

from typing import Optional


class ShipperError(Exception):
    """Base class for all shipper errors"""


class ConfigurationError(ShipperError):
    """Exporter cannot start with its current configuration"""


class BackendConnectionError(ShipperError, ConnectionError):
    """Destination unreachable or connection test rejected"""


class FieldSerializationError(ShipperError):
    """A single field value could not be converted for the wire"""

    def __init__(self, field_label: str, reason: str):
        super().__init__(f"Could not serialize field {field_label}: {reason}")
        self.field_label = field_label


class ShipmentError(ShipperError):
    """A message could not be delivered to the backend"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
