"""
Filter predicate glue for the Traffic Log Shipper
Turns a user filter string into a `LogEntry -> bool` callable via a
host-supplied compiler
"""

import logging
from typing import Any, Callable, Optional

from errors import ConfigurationError
from log_entry import LogEntry


logger = logging.getLogger('Shipper.FilterPredicate')


FilterPredicate = Callable[[LogEntry], bool]
FilterCompiler = Callable[[str], Any]


def as_predicate(compiled: Any) -> FilterPredicate:
    """
    Normalize a compiled filter into a plain callable

    Accepts objects exposing `matches(entry)` (optionally behind a
    `filter_expression` attribute) or plain callables.
    """
    expression = getattr(compiled, 'filter_expression', compiled)
    matches = getattr(expression, 'matches', None)
    if callable(matches):
        return lambda entry: bool(matches(entry))
    if callable(expression):
        return lambda entry: bool(expression(entry))
    raise TypeError(f"Compiled filter {compiled!r} is neither callable nor has matches()")


def compile_filter(filter_string: Optional[str], compiler: Optional[FilterCompiler],
                   exporter_name: str = 'exporter') -> Optional[FilterPredicate]:
    """
    Compile the configured filter string

    Args:
        filter_string: User filter; blank means "ship everything"
        compiler: Host parser turning the string into a filter
        exporter_name: Used in error messages

    Returns:
        Predicate, or None when no filter is configured

    Raises:
        ConfigurationError: if the filter cannot be compiled
    """
    if filter_string is None or not filter_string.strip():
        return None

    if compiler is None:
        raise ConfigurationError(
            f"A log filter is configured for the {exporter_name} but no filter compiler is available"
        )

    try:
        compiled = compiler(filter_string)
        return as_predicate(compiled)
    except Exception as e:
        logger.error(f"The log filter configured for the {exporter_name} is invalid: {e}")
        raise ConfigurationError(f"The log filter configured for the {exporter_name} is invalid!") from e
