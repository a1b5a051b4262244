"""
Log entry model for the Traffic Log Shipper
Captured transactions as delivered by the host application
"""

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Dict, Any, Optional


class Status(Enum):
    """Lifecycle stage of a captured transaction"""
    UNPROCESSED = 'UNPROCESSED'
    AWAITING_RESPONSE = 'AWAITING_RESPONSE'
    PENDING = 'AWAITING_RESPONSE'
    PROCESSED = 'PROCESSED'


class FieldType(Enum):
    """Value type tag of an export field"""
    STRING = 'String'
    INTEGER = 'Integer'
    SHORT = 'Short'
    DOUBLE = 'Double'
    BOOLEAN = 'Boolean'
    DATE = 'Date'
    STRING_ARRAY = 'StringArray'


class ExportField(Enum):
    """Extractable attribute of a log entry: (group, label, type)"""
    NUMBER = ('Entry', 'Number', FieldType.INTEGER)
    TOOL = ('Entry', 'Tool', FieldType.STRING)
    TAGS = ('Entry', 'Tags', FieldType.STRING_ARRAY)
    COMMENT = ('Entry', 'Comment', FieldType.STRING)
    METHOD = ('Request', 'Method', FieldType.STRING)
    URL = ('Request', 'URL', FieldType.STRING)
    PROTOCOL = ('Request', 'Protocol', FieldType.STRING)
    HOSTNAME = ('Request', 'Hostname', FieldType.STRING)
    HOST = ('Request', 'Host', FieldType.STRING)
    PORT = ('Request', 'Port', FieldType.SHORT)
    PATH = ('Request', 'Path', FieldType.STRING)
    QUERY = ('Request', 'Query', FieldType.STRING)
    REQUEST_HEADERS = ('Request', 'Headers', FieldType.STRING)
    REQUEST_BODY = ('Request', 'Body', FieldType.STRING)
    REQUEST_LENGTH = ('Request', 'Length', FieldType.INTEGER)
    HAS_PARAMS = ('Request', 'HasParams', FieldType.BOOLEAN)
    REQUEST_TIME = ('Request', 'Time', FieldType.DATE)
    STATUS = ('Response', 'Status', FieldType.SHORT)
    STATUS_TEXT = ('Response', 'StatusText', FieldType.STRING)
    MIME_TYPE = ('Response', 'MimeType', FieldType.STRING)
    RESPONSE_HEADERS = ('Response', 'Headers', FieldType.STRING)
    RESPONSE_BODY = ('Response', 'Body', FieldType.STRING)
    RESPONSE_LENGTH = ('Response', 'Length', FieldType.INTEGER)
    RESPONSE_TIME = ('Response', 'Time', FieldType.DATE)
    RTT = ('Response', 'RTT', FieldType.INTEGER)
    REDIRECT_URL = ('Response', 'RedirectURL', FieldType.STRING)
    COMPLETE = ('Response', 'Complete', FieldType.BOOLEAN)

    def __init__(self, group: str, label: str, field_type: FieldType):
        self.group = group
        self.label = label
        self.field_type = field_type

    @property
    def full_label(self) -> str:
        return f"{self.group}.{self.label}"

    @classmethod
    def from_label(cls, label: str) -> Optional['ExportField']:
        """Resolve a full label ("Request.Method") or member name ("METHOD")"""
        wanted = label.strip().lower()
        for field in cls:
            if field.full_label.lower() == wanted or field.name.lower() == wanted:
                return field
        return None


class LogEntry:
    """
    Read-only record of one captured transaction

    The shipping pipeline only reads entries; the host owns them.
    """

    def __init__(self, status: Status, values: Dict[ExportField, Any] = None):
        self._status = status
        self._values = MappingProxyType(dict(values or {}))

    @property
    def status(self) -> Status:
        return self._status

    @property
    def values(self):
        return self._values

    def value_by_key(self, field: ExportField) -> Any:
        """Get the value of a field, or None when the entry does not carry it"""
        return self._values.get(field)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        """
        Build an entry from a JSON object

        Args:
            data: Object with an optional 'status' key and field values keyed
                by full label (e.g. {"Request.Method": "GET"})

        Returns:
            LogEntry instance

        Raises:
            ValueError: if the status is unknown or a date cannot be parsed

        Dates without an offset are taken as UTC.
        """
        status_name = str(data.get('status', Status.PROCESSED.name)).upper()
        try:
            status = Status[status_name]
        except KeyError:
            raise ValueError(f"Unknown entry status: {status_name}")

        values = {}
        for key, value in data.items():
            if key == 'status':
                continue
            field = ExportField.from_label(key)
            if field is None or value is None:
                continue
            if field.field_type == FieldType.DATE and isinstance(value, str):
                value = datetime.fromisoformat(value.replace('Z', '+00:00'))
                if value.tzinfo is None:
                    value = value.replace(tzinfo=timezone.utc)
            values[field] = value

        return cls(status, values)

    def __repr__(self) -> str:
        return f"LogEntry(status={self._status.name}, fields={len(self._values)})"
