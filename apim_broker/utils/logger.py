"""
Logging setup for the broker.

Console (and optional file) output goes through a ContextAwareLogger, which
formats the ``extra`` mapping into the message as pipe-delimited ``k=v``
pairs so structured context is visible in plain-text sinks.
"""

import logging
import sys
from typing import Optional, Union

from ..config import get_config

_service_logger = None

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ContextAwareLogger:
    """Logger wrapper that formats extra attributes in message while preserving them."""

    def __init__(self, logger):
        """Initialize with an existing logger."""
        self.logger = logger

    def _log_with_formatted_extra(self, level, msg, **kwargs):
        extra = kwargs.pop("extra", {})

        if extra:
            extra_str = " | ".join([f"{k}={v}" for k, v in extra.items()])
            full_msg = f"{msg} | {extra_str}"
        else:
            full_msg = msg

        log_method = getattr(self.logger, level)
        log_method(full_msg, extra=extra, **kwargs)

    def info(self, msg, **kwargs):
        self._log_with_formatted_extra("info", msg, **kwargs)

    def error(self, msg, **kwargs):
        self._log_with_formatted_extra("error", msg, **kwargs)

    def warning(self, msg, **kwargs):
        self._log_with_formatted_extra("warning", msg, **kwargs)

    def debug(self, msg, **kwargs):
        self._log_with_formatted_extra("debug", msg, **kwargs)

    def exception(self, msg, **kwargs):
        self._log_with_formatted_extra("exception", msg, **kwargs)


class CorrelationIdFilter(logging.Filter):
    """Adds the current thread's correlation id to every record."""

    def filter(self, record):
        # Lazy import to avoid circular dependency
        from ..exceptions import get_correlation_id

        record.correlation_id = get_correlation_id() or "-"
        return True


def _resolve_level(log_level: Optional[Union[int, str]]) -> int:
    if log_level is None:
        log_level = get_config().logging.level
    if isinstance(log_level, str):
        return getattr(logging, log_level.upper(), logging.INFO)
    return log_level


def configure_logging(
    service_name: str,
    log_level: Optional[Union[int, str]] = None,
    log_file: Optional[str] = None,
) -> ContextAwareLogger:
    """
    Configure the service logger with console and optional file output.

    Args:
        service_name: Name used for the underlying ``logging`` logger
        log_level: Logging level (default: from config.logging.level)
        log_file: Optional path of a log file (default: from config.logging.file_path)

    Returns:
        The configured logger wrapped with ContextAwareLogger
    """
    global _service_logger

    level = _resolve_level(log_level)
    if log_file is None:
        log_file = get_config().logging.file_path

    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    correlation_filter = CorrelationIdFilter()
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(correlation_filter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(correlation_filter)
        logger.addHandler(file_handler)

    wrapped_logger = ContextAwareLogger(logger)
    wrapped_logger.info(
        "Service logger configured",
        extra={"service_name": service_name, "log_file": log_file},
    )
    _service_logger = wrapped_logger
    return wrapped_logger


def get_logger(log_level: Optional[Union[int, str]] = None) -> ContextAwareLogger:
    """
    Get the service logger.

    Falls back to a wrapped root logger when ``configure_logging`` has not
    been called yet (tests, library use).
    """
    if _service_logger is not None:
        return _service_logger

    logger = logging.getLogger()
    logger.setLevel(_resolve_level(log_level))
    return ContextAwareLogger(logger)


def reset_logging() -> None:
    """Forget the configured service logger."""
    global _service_logger
    _service_logger = None
