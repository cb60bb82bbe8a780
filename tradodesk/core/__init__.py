"""Project core.

Stable, non-domain-specific building blocks: the error model, the Result
union and shared request types.
"""

from __future__ import annotations

from .errors import (
    AppError,
    ConfigError,
    ErrorCode,
    OperationCancelled,
    Severity,
    TradodeskError,
    TransportError,
    serialize_app_error,
)
from .result import Fail, Ok, Result, fail, ok
from .types import ChatTurn, LlmRequest, ModelLane

__all__ = [
    "AppError",
    "ChatTurn",
    "ConfigError",
    "ErrorCode",
    "Fail",
    "LlmRequest",
    "ModelLane",
    "Ok",
    "OperationCancelled",
    "Result",
    "Severity",
    "TradodeskError",
    "TransportError",
    "fail",
    "ok",
    "serialize_app_error",
]
