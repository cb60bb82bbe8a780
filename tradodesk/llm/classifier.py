"""Error classification.

Turns an arbitrary raised value into an `AppError`. Classification is a pure
function of the lower-cased error text, evaluated against an ordered rule
table where the first match wins. Codes passed as explicit policy decisions
(automation blocked, caller cancellation) override text inference.

The table lives behind `ErrorClassifier` so it can be replaced by a mapping of
structured provider codes without touching callers.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from tradodesk.core.errors import AppError, ErrorCode, Severity
from tradodesk.observability.ids import new_correlation_id

from .messages import DEFAULT_LOCALE, error_text


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    name: str
    keywords: tuple[str, ...]
    code: ErrorCode
    severity: Severity
    retryable: bool

    def matches(self, text: str) -> bool:
        return any(k in text for k in self.keywords)


@dataclass(frozen=True, slots=True)
class PolicyOverride:
    severity: Severity
    retryable: bool


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("quota", ("quota", "exhausted"), ErrorCode.QUOTA_EXCEEDED, Severity.WARN, False),
    ClassificationRule("rate_limit", ("429", "too many requests"), ErrorCode.RATE_LIMITED, Severity.WARN, True),
    ClassificationRule("auth", ("api_key", "401", "403"), ErrorCode.AUTH_FAILED, Severity.ERROR, False),
    ClassificationRule(
        "service",
        ("503", "overloaded", "internal"),
        ErrorCode.SERVICE_UNAVAILABLE,
        Severity.ERROR,
        True,
    ),
    ClassificationRule("network", ("network", "fetch"), ErrorCode.SERVICE_UNREACHABLE, Severity.WARN, True),
)

POLICY_OVERRIDES: Mapping[ErrorCode, PolicyOverride] = {
    ErrorCode.AUTOMATION_BLOCKED: PolicyOverride(Severity.WARN, False),
    ErrorCode.CANCELLED: PolicyOverride(Severity.INFO, False),
}


def error_message(raw: Any) -> str:
    if isinstance(raw, BaseException):
        return str(raw) or type(raw).__name__
    return str(raw)


def _serialize_cause(raw: Any) -> str | None:
    if not isinstance(raw, BaseException):
        return None
    if raw.__traceback__ is None:
        return f"{type(raw).__name__}: {raw}"
    return "".join(traceback.format_exception(type(raw), raw, raw.__traceback__))


class ErrorClassifier:
    """Map raised values to AppError using an ordered rule table."""

    def __init__(
        self,
        rules: Sequence[ClassificationRule] = DEFAULT_RULES,
        *,
        overrides: Mapping[ErrorCode, PolicyOverride] = POLICY_OVERRIDES,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        self._rules = tuple(rules)
        self._overrides = dict(overrides)
        self._locale = locale

    @property
    def locale(self) -> str:
        return self._locale

    def match(self, text: str) -> ClassificationRule | None:
        """Return the first rule matching `text` (case-insensitive), if any."""

        lowered = text.lower()
        for rule in self._rules:
            if rule.matches(lowered):
                return rule
        return None

    def classify(
        self,
        raw: Any,
        default_code: ErrorCode = ErrorCode.UNKNOWN,
        context: Mapping[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> AppError:
        text = error_message(raw).lower()

        code = default_code
        severity = Severity.ERROR
        retryable = False

        rule = self.match(text)
        if rule is not None:
            code, severity, retryable = rule.code, rule.severity, rule.retryable

        override = self._overrides.get(default_code)
        if override is not None:
            code, severity, retryable = default_code, override.severity, override.retryable

        message, action = error_text(code, self._locale)
        details: dict[str, Any] = {"original_message": text}
        if context:
            details.update(context)

        return AppError(
            code=code,
            message=message,
            details=details,
            severity=severity,
            retryable=retryable,
            suggested_action=action,
            correlation_id=correlation_id or new_correlation_id(),
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            cause=_serialize_cause(raw),
        )


_default_classifier = ErrorClassifier()


def classify(
    raw: Any,
    default_code: ErrorCode = ErrorCode.UNKNOWN,
    context: Mapping[str, Any] | None = None,
    correlation_id: str | None = None,
    *,
    locale: str | None = None,
) -> AppError:
    """Classify `raw` with the default rule table."""

    classifier = _default_classifier
    if locale is not None and locale != classifier.locale:
        classifier = ErrorClassifier(locale=locale)
    return classifier.classify(raw, default_code, context, correlation_id)
