"""Observability module for convoflow.

Provides structured logging configuration.
"""

from convoflow.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
]
