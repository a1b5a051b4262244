"""
Configuration loader for the Traffic Log Shipper
Handles JSON and YAML configuration files
"""

import os
import json
import yaml
import logging
from pathlib import Path
from typing import Dict, List, Optional, Any

from log_entry import ExportField


logger = logging.getLogger('Shipper.ConfigLoader')


MIN_DELAY_SECONDS = 10
PROTOCOLS = ('HTTP', 'HTTPS')
TRUE_STRINGS = ('on', 'yes', 'true', '1')
FALSE_STRINGS = ('off', 'no', 'false', '0')

DEFAULT_FIELDS = [ExportField.METHOD, ExportField.URL, ExportField.STATUS, ExportField.HOSTNAME]

DEFAULTS = {
    'exporter_type': 'graylog',
    'address': '127.0.0.1',
    'port': 12201,
    'protocol': 'HTTP',
    'api_token': '',
    'compression_enabled': False,
    'delay': 120,
    'filter': '',
    'fields': DEFAULT_FIELDS,
    'timeout': 5,
    'hostname': None,
}


class ConfigLoader:
    """Load and validate exporter configuration"""

    def __init__(self, config_path: str = "/etc/shipper.d"):
        self.config_path = config_path

    def load_config(self) -> Dict[str, Any]:
        """
        Load the configuration

        A directory is read file by file in name order; keys from later files
        override earlier ones. Missing or invalid settings fall back to the
        defaults.

        Returns:
            Normalized configuration dictionary
        """
        raw = {}
        for config_file in self._config_files():
            data = self._load_file(config_file)
            if data is None:
                continue
            if not isinstance(data, dict):
                logger.error(f"Invalid configuration in {config_file}: must be an object")
                continue
            raw.update(data)

        return self._validate_config(raw)

    def _config_files(self) -> List[Path]:
        path = Path(self.config_path)

        if not os.path.exists(path):
            logger.warning(f"Configuration path does not exist: {path}, using defaults")
            return []

        if path.is_file():
            return [path]

        config_files = []
        for ext in ['*.json', '*.yaml', '*.yml']:
            config_files.extend(path.glob(ext))

        if not config_files:
            logger.warning(f"No configuration files found in {path}")
        else:
            logger.info(f"Found {len(config_files)} configuration file(s)")

        return sorted(config_files)

    def _load_file(self, filepath: Path) -> Optional[Any]:
        """Load a JSON or YAML file"""
        try:
            with open(filepath, 'r') as f:
                if filepath.suffix == '.json':
                    return json.load(f)
                else:  # .yaml or .yml
                    return yaml.safe_load(f)
        except json.JSONDecodeError as e:
            logger.error(f"JSON error in {filepath}: {e}")
            return None
        except yaml.YAMLError as e:
            logger.error(f"YAML error in {filepath}: {e}")
            return None
        except OSError as e:
            logger.error(f"Error reading {filepath}: {e}")
            return None

    def _validate_config(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and normalize raw settings"""
        config = dict(DEFAULTS)
        config['fields'] = list(DEFAULT_FIELDS)

        if 'EXPORTER' in raw:
            config['exporter_type'] = str(raw['EXPORTER']).lower()

        address = raw.get('GRAYLOG_ADDRESS')
        if address is not None:
            if isinstance(address, str) and address.strip():
                config['address'] = address.strip()
            else:
                logger.warning(f"Invalid GRAYLOG_ADDRESS value: {address}, using {DEFAULTS['address']}")

        port = raw.get('GRAYLOG_PORT')
        if port is not None:
            if isinstance(port, int) and not isinstance(port, bool) and 0 <= port <= 65535:
                config['port'] = port
            else:
                logger.warning(f"Invalid GRAYLOG_PORT value: {port}, must be between 0 and 65535")

        protocol = raw.get('GRAYLOG_PROTOCOL')
        if protocol is not None:
            if str(protocol).upper() in PROTOCOLS:
                config['protocol'] = str(protocol).upper()
            else:
                logger.warning(f"Invalid GRAYLOG_PROTOCOL value: {protocol}, defaulting to HTTP")

        token = raw.get('GRAYLOG_API_TOKEN')
        if token is not None:
            config['api_token'] = str(token)

        if 'GRAYLOG_COMPRESSION' in raw:
            config['compression_enabled'] = self._parse_bool('GRAYLOG_COMPRESSION', raw['GRAYLOG_COMPRESSION'])

        delay = raw.get('GRAYLOG_DELAY')
        if delay is not None:
            if isinstance(delay, (int, float)) and not isinstance(delay, bool) and delay > 0:
                if delay < MIN_DELAY_SECONDS:
                    logger.warning(f"GRAYLOG_DELAY {delay} is below the minimum, using {MIN_DELAY_SECONDS}")
                    delay = MIN_DELAY_SECONDS
                config['delay'] = int(delay)
            else:
                logger.warning(f"Invalid GRAYLOG_DELAY value: {delay}, must be positive number")

        log_filter = raw.get('GRAYLOG_FILTER')
        if log_filter is not None:
            config['filter'] = str(log_filter)

        if 'GRAYLOG_FIELDS' in raw:
            config['fields'] = self._parse_fields(raw['GRAYLOG_FIELDS'])

        timeout = raw.get('GRAYLOG_TIMEOUT')
        if timeout is not None:
            if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
                config['timeout'] = timeout
            else:
                logger.warning(f"Invalid GRAYLOG_TIMEOUT value: {timeout}, must be positive number")

        hostname = raw.get('GRAYLOG_HOSTNAME')
        if hostname:
            config['hostname'] = str(hostname)

        return config

    def _parse_bool(self, key: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            if value.lower() in TRUE_STRINGS:
                return True
            if value.lower() in FALSE_STRINGS:
                return False
        logger.warning(f"Invalid {key} value: {value}, treating as off")
        return False

    def _parse_fields(self, value: Any) -> List[ExportField]:
        """Resolve field labels; unknown labels are skipped"""
        if isinstance(value, str):
            value = [part for part in value.split(',') if part.strip()]

        if not isinstance(value, list):
            logger.warning(f"GRAYLOG_FIELDS must be a list, got {type(value).__name__}")
            return []

        fields = []
        for label in value:
            field = ExportField.from_label(str(label))
            if field is None:
                logger.warning(f"Unknown export field '{label}' ignored")
                continue
            if field not in fields:
                fields.append(field)
        return fields
