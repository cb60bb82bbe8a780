from __future__ import annotations

from .context import bind_correlation_id, current_correlation_id
from .ids import new_correlation_id
from .logging import configure_logging, get_logger
from .sanitize import sanitize

__all__ = [
    "bind_correlation_id",
    "configure_logging",
    "current_correlation_id",
    "get_logger",
    "new_correlation_id",
    "sanitize",
]
