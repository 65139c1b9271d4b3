"""Fanout Core -- errors, logging, and settings shared by every layer.

Architecture::

    errors.py      Structured error hierarchy (FanoutError, ConfigurationError, ...)
    logging.py     structlog configuration + get_logger()
    settings.py    FanoutSettings (pydantic-settings, cached)
"""

from fanout.core.errors import (
    ConfigurationError,
    ErrorCategory,
    FanoutError,
    FetchCancelled,
    FetchFailure,
    PermitError,
    RecordNotFound,
    SourceError,
    TimeoutExceeded,
)
from fanout.core.logging import LogContext, configure_logging, get_logger
from fanout.core.settings import FanoutSettings, get_settings, reset_settings

__all__ = [
    "ConfigurationError",
    "ErrorCategory",
    "FanoutError",
    "FetchCancelled",
    "FetchFailure",
    "PermitError",
    "RecordNotFound",
    "SourceError",
    "TimeoutExceeded",
    "LogContext",
    "configure_logging",
    "get_logger",
    "FanoutSettings",
    "get_settings",
    "reset_settings",
]
