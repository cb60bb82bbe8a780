from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tradodesk.observability.sanitize import sanitize


class ErrorCode(str, Enum):
    UNKNOWN = "unknown"
    VALIDATION_FAILED = "validation_failed"
    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMITED = "rate_limited"
    AUTH_FAILED = "auth_failed"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SERVICE_UNREACHABLE = "service_unreachable"
    AUTOMATION_TIMEOUT = "automation_timeout"
    AUTOMATION_BLOCKED = "automation_blocked"
    CONFIG_LOAD_FAILED = "config_load_failed"
    CANCELLED = "cancelled"


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class AppError(BaseModel):
    """Normalized error handed to UI and automation callers.

    Instances are produced by the error classifier; `code` and `retryable`
    always come from its decision table.
    """

    model_config = ConfigDict(frozen=True)

    code: ErrorCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    severity: Severity
    retryable: bool
    suggested_action: str
    correlation_id: str
    timestamp: str
    cause: str | None = None

    def with_message(self, message: str) -> "AppError":
        """Copy with a different user-facing message."""

        return self.model_copy(update={"message": message})


def serialize_app_error(err: AppError) -> str:
    """Serialize an AppError to JSON with credential-like detail keys redacted."""

    payload = err.model_dump(mode="json")
    payload["details"] = sanitize(payload.get("details") or {})
    return json.dumps(payload, ensure_ascii=False)


class TradodeskError(Exception):
    """Base exception for this project."""


class ConfigError(TradodeskError):
    """Raised when configuration is invalid or incomplete."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class OperationCancelled(TradodeskError):
    """Raised when a caller-supplied cancel event fires mid-request."""

    def __init__(self, message: str = "operation cancelled by caller"):
        super().__init__(message)


class TransportError(TradodeskError):
    """Raised by transports for provider failures with a normalized message."""
