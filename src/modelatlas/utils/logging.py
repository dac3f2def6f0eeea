"""Logging utilities for modelatlas (thin wrappers).

Library modules only ever call ``logging.getLogger(__name__)``; handlers are
left to the application. ``configure_logging`` is a convenience for scripts
and interactive use.
"""

from __future__ import annotations

import logging
from typing import Union

ROOT_LOGGER_NAME = "modelatlas"
_HANDLER_MARKER = "_modelatlas_handler"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a module logger by name (no prefixing).

    Args:
        name: Logger name (typically ``__name__``).

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)


def configure_logging(verbose: bool = False, fmt: str = _DEFAULT_FORMAT) -> None:
    """Attach a stream handler to the package logger.

    Calling this more than once replaces the level but never stacks handlers.

    Args:
        verbose: Log at DEBUG instead of INFO when True.
        fmt: ``logging.Formatter`` format string.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in root.handlers:
        if getattr(handler, _HANDLER_MARKER, False):
            handler.setFormatter(logging.Formatter(fmt))
            return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    setattr(handler, _HANDLER_MARKER, True)
    root.addHandler(handler)


def set_component_level(component: str, level: Union[str, int]) -> None:
    """Set log level for a specific component or group.

    Accepts either string levels (e.g., "INFO") or numeric constants. The
    component may be given with or without the ``modelatlas.`` prefix.
    """
    if isinstance(level, str):
        level_value = getattr(logging, level.upper(), logging.INFO)
    else:
        level_value = level
    name = component if component.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{component}"
    logging.getLogger(name).setLevel(level_value)


__all__ = ["get_logger", "configure_logging", "set_component_level"]
