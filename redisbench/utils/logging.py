"""Logging utilities for redisbench."""

import logging
import sys
from pathlib import Path
from typing import Optional
from rich.logging import RichHandler
from rich.console import Console


LOGGER_NAMESPACE = "redisbench"

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _console_handler(enable_rich: bool) -> logging.Handler:
    if not enable_rich:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        return handler

    # log lines carry addresses and keys, never rich markup
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True
    )
    handler.setFormatter(logging.Formatter('%(message)s'))
    return handler


def _file_handler(log_file: str) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding='utf-8')
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    component: Optional[str] = None,
    enable_rich: bool = True
) -> logging.Logger:
    """Configure the ``redisbench`` namespace logger.

    Every logger obtained through :func:`get_logger` shares its handlers.
    Calling this again replaces the handlers, so the CLI can reconfigure
    once the config file is known.

    Args:
        level: Logging level name
        log_file: Also write to this file when given
        component: Return the component logger instead of the namespace one
        enable_rich: Use rich console output instead of a plain stream

    Returns:
        Configured logger instance
    """
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(getattr(logging, level.upper()))

    for handler in list(namespace.handlers):
        namespace.removeHandler(handler)
        handler.close()

    namespace.addHandler(_console_handler(enable_rich))
    if log_file:
        namespace.addHandler(_file_handler(log_file))

    namespace.propagate = False
    return get_logger(component) if component else namespace


def get_logger(component: str) -> logging.Logger:
    """Get logger for component."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{component}")


class LoggerMixin:
    """Mixin class that provides logging capabilities."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger = None

    @property
    def logger(self) -> logging.Logger:
        """Logger named after the concrete class."""
        if self._logger is None:
            self._logger = get_logger(self.__class__.__name__.lower())
        return self._logger
