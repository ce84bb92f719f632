"""Utility modules for the recording replayer.

Provides:
- Structured logging configuration
"""

from .logging import LogContext, configure_logging, log_operation

__all__ = [
    "configure_logging",
    "LogContext",
    "log_operation",
]
