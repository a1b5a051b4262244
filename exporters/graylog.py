"""
GrayLog backend for the Traffic Log Shipper
Uses GELF (Graylog Extended Log Format) over HTTP
"""

import re
import gzip
import json
import time
import socket
import logging
import requests
from datetime import datetime, date, timezone
from typing import Dict, Any, List

from errors import BackendConnectionError, FieldSerializationError, ShipmentError
from exporters.base import ShippingBackend
from log_entry import LogEntry, ExportField, FieldType


logger = logging.getLogger('Shipper.GraylogBackend')


GELF_VERSION = '1.1'
GELF_LEVEL_INFO = 6
UNKNOWN_HOST = 'unknown'
FALLBACK_SHORT_MESSAGE = 'Traffic Log Entry'
CONNECTION_TEST_MESSAGE = 'Traffic Log Shipper Connection Test'
SUCCESS_STATUS_CODES = (200, 202)

_UNSAFE_FIELD_CHARS = re.compile(r'[^a-zA-Z0-9_]')

_PASSTHROUGH_TYPES = (FieldType.INTEGER, FieldType.SHORT, FieldType.DOUBLE, FieldType.BOOLEAN)


def sanitize_field_name(label: str) -> str:
    """Make a field label safe for GELF ("Request.Header-1" -> "request_header_1")"""
    return _UNSAFE_FIELD_CHARS.sub('_', label).lower()


def local_hostname() -> str:
    try:
        return socket.gethostname() or UNKNOWN_HOST
    except OSError:
        return UNKNOWN_HOST


def convert_value(value: Any, field: ExportField) -> Any:
    """
    Convert an entry value to a GELF-compatible value

    Numbers and booleans pass through, dates become epoch seconds and
    everything else is stringified.

    Raises:
        FieldSerializationError: if the value cannot be converted
    """
    try:
        if field.field_type in _PASSTHROUGH_TYPES:
            return value
        if field.field_type == FieldType.DATE:
            if isinstance(value, datetime):
                # Naive capture times are UTC
                if value.tzinfo is None:
                    value = value.replace(tzinfo=timezone.utc)
                return value.timestamp()
            if isinstance(value, date):
                return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp()
            raise TypeError(f"expected a date, got {type(value).__name__}")
        return str(value)
    except Exception as e:
        raise FieldSerializationError(field.full_label, str(e)) from e


class GraylogBackend(ShippingBackend):
    """Ship entries to GrayLog as GELF messages over HTTP"""

    display_name = 'Graylog Exporter'

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.address = config.get('address', '127.0.0.1')
        self.port = int(config.get('port', 12201))
        self.protocol = str(config.get('protocol', 'HTTP')).lower()
        self.api_token = config.get('api_token') or ''
        self.compression_enabled = bool(config.get('compression_enabled', False))
        self.timeout = config.get('timeout', 5)
        self.hostname = config.get('hostname') or local_hostname()
        self.graylog_url = None
        self.session = None

    def initialize_connection(self) -> None:
        """Resolve the destination, open a session and send a test message"""
        try:
            socket.gethostbyname(self.address)
        except (socket.gaierror, UnicodeError) as e:
            raise BackendConnectionError(f"Could not resolve GrayLog address {self.address}: {e}") from e

        self.graylog_url = f"{self.protocol}://{self.address}:{self.port}/gelf"
        logger.info(f"Starting Graylog exporter. URL: {self.graylog_url}")

        self.session = requests.Session()
        self.test_connection()

    def test_connection(self) -> None:
        test_message = {
            'version': GELF_VERSION,
            'host': self.hostname,
            'short_message': CONNECTION_TEST_MESSAGE,
            'timestamp': time.time(),
            'level': GELF_LEVEL_INFO,
            '_test': True,
        }

        try:
            self.send_gelf_message(test_message)
            logger.info("Graylog connection test successful")
        except ShipmentError as e:
            logger.error(f"Graylog connection test failed: {e}")
            raise BackendConnectionError(f"Failed to connect to Graylog: {e}") from e

    def ship_batch(self, entries: List[LogEntry]) -> None:
        for entry in entries:
            gelf_message = self.create_gelf_message(entry)
            try:
                self.send_gelf_message(gelf_message)
            except ShipmentError as e:
                logger.error(f"Failed to send entry to Graylog: {e}")
                raise

    def create_gelf_message(self, entry: LogEntry) -> Dict[str, Any]:
        """Build the GELF message for one entry"""
        # GELF format (http://docs.graylog.org/en/latest/pages/gelf.html)
        gelf_message = {
            'version': GELF_VERSION,
            'host': self.hostname,
            'short_message': self.build_short_message(entry),
            'timestamp': time.time(),
            'level': GELF_LEVEL_INFO,
        }

        # Custom fields must start with an underscore
        for field in self.fields:
            value = entry.value_by_key(field)
            if value is None:
                continue

            try:
                gelf_message['_' + sanitize_field_name(field.full_label)] = convert_value(value, field)
            except FieldSerializationError as e:
                logger.warning(str(e))

        return gelf_message

    @staticmethod
    def build_short_message(entry: LogEntry) -> str:
        try:
            method = entry.value_by_key(ExportField.METHOD)
            url = entry.value_by_key(ExportField.URL)
            status = entry.value_by_key(ExportField.STATUS)

            method = str(method) if method is not None else 'UNKNOWN'
            url = str(url) if url is not None else 'unknown'
            status = str(status) if status is not None else 'N/A'

            return f"{method} {url} - Status: {status}"
        except Exception:
            return FALLBACK_SHORT_MESSAGE

    def build_request(self, gelf_message: Dict[str, Any]):
        """Serialize a message into (headers, body)"""
        headers = {'Content-Type': 'application/json'}
        if self.api_token.strip():
            headers['Authorization'] = f"Bearer {self.api_token}"

        body = json.dumps(gelf_message).encode('utf-8')
        if self.compression_enabled:
            headers['Content-Encoding'] = 'gzip'
            body = gzip.compress(body)

        return headers, body

    def send_gelf_message(self, gelf_message: Dict[str, Any]) -> None:
        """
        POST one message to the GELF endpoint

        Raises:
            ShipmentError: on network errors or a status other than 200/202
        """
        if self.session is None:
            raise ShipmentError("Graylog connection has not been initialized")

        headers, body = self.build_request(gelf_message)
        try:
            response = self.session.post(
                self.graylog_url,
                data=body,
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise ShipmentError(f"Error sending to GrayLog: {e}") from e

        if response.status_code not in SUCCESS_STATUS_CODES:
            raise ShipmentError(
                f"Graylog returned status code: {response.status_code}",
                status_code=response.status_code
            )

    def close(self) -> None:
        if self.session is None:
            return
        try:
            self.session.close()
        except Exception as e:
            logger.warning(f"Error closing HTTP session: {e}")
        finally:
            self.session = None

    def get_name(self) -> str:
        """Get backend name"""
        return "graylog"
