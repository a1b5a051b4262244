"""
Traffic Log Shipper backends package
Contains the shipping backends for log aggregation services
"""

from exporters.base import ShippingBackend
from exporters.graylog import GraylogBackend
from exporters.factory import BackendFactory

__all__ = ['ShippingBackend', 'GraylogBackend', 'BackendFactory']
