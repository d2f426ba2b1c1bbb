"""Observability module for blobvault.

Provides structured logging:
- JSON or console formatting
- Operation and blob path context carried through context variables
"""

from blobvault.observability.logging import (
    LogContext,
    blob_path_var,
    configure_logging,
    get_logger,
    operation_var,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "LogContext",
    "operation_var",
    "blob_path_var",
]
