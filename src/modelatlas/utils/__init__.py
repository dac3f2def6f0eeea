"""Shared logging and retry helpers."""

from modelatlas.utils.logging import configure_logging, get_logger, set_component_level
from modelatlas.utils.retry_utils import ExponentialBackoffStrategy, IRetryStrategy, run_with_backoff

__all__ = [
    "configure_logging",
    "get_logger",
    "set_component_level",
    "ExponentialBackoffStrategy",
    "IRetryStrategy",
    "run_with_backoff",
]
