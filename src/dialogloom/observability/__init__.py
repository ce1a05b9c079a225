"""Observability module for DialogLoom.

Provides structured logging and run correlation.
"""

from dialogloom.observability.logging import (
    close_file_logging,
    configure_logging,
    generate_run_id,
    get_logger,
    get_logs_dir,
    run_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "generate_run_id",
    "get_logger",
    "get_logs_dir",
    "run_context",
]
