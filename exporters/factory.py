"""
Backend registry for the Traffic Log Shipper
Maps the EXPORTER configuration value to a ShippingBackend class
"""

import logging
from typing import Dict, Any, List, Optional, Type

from exporters.base import ShippingBackend
from exporters.graylog import GraylogBackend


logger = logging.getLogger('Shipper.BackendFactory')


def _normalize(backend_type: Optional[str]) -> str:
    return (backend_type or '').strip().lower()


class BackendFactory:
    """Registry of shipping backends keyed by exporter type"""

    _backends: Dict[str, Type[ShippingBackend]] = {
        'graylog': GraylogBackend,
    }

    @classmethod
    def create(cls, backend_type: str, config: Dict[str, Any]) -> Optional[ShippingBackend]:
        """
        Build the backend configured as EXPORTER

        Args:
            backend_type: Exporter type, case-insensitive (e.g. 'GrayLog')
            config: Normalized configuration from ConfigLoader

        Returns:
            Backend instance, or None when the type is unknown or the
            backend rejects its configuration
        """
        key = _normalize(backend_type)
        backend_class = cls._backends.get(key)
        if backend_class is None:
            logger.error(
                f"No shipping backend named '{backend_type}'. "
                f"Known exporters: {', '.join(cls.list_backends())}"
            )
            return None

        try:
            backend = backend_class(config)
        except (TypeError, ValueError) as e:
            logger.error(f"{backend_class.display_name} rejected its configuration: {e}")
            return None

        logger.debug(f"Created {backend.display_name} for exporter type '{key}'")
        return backend

    @classmethod
    def register(cls, backend_type: str, backend_class: type, replace: bool = False):
        """
        Make another backend selectable through EXPORTER

        Raises:
            ValueError: if the class is not a ShippingBackend, the type is
                blank, or the type is taken and `replace` is False
        """
        if not isinstance(backend_class, type) or not issubclass(backend_class, ShippingBackend):
            raise ValueError(f"{backend_class!r} is not a ShippingBackend")

        key = _normalize(backend_type)
        if not key:
            raise ValueError("Exporter type must not be blank")
        if key in cls._backends and not replace:
            raise ValueError(f"Exporter type '{key}' is already registered")

        cls._backends[key] = backend_class
        logger.info(f"Registered {backend_class.display_name} as exporter type '{key}'")

    @classmethod
    def list_backends(cls) -> List[str]:
        return sorted(cls._backends)
