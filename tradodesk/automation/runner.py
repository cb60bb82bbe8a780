"""Automation task contract and policy gate.

Browser control itself lives outside this package. What is kept here is the
contract callers rely on:

- `place_order` outside a dry run is blocked while demo mode is on.
- Dry runs report a simulated success without side effects.
- Failures reported by the automation process, and exceptions raised while
  talking to it, are mapped to AppError codes.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

from tradodesk.core.errors import AppError, ErrorCode
from tradodesk.core.result import Result, fail, ok
from tradodesk.llm.classifier import classify
from tradodesk.observability.logging import get_logger

_log = get_logger(__name__)


class AutomationTask(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action: Literal["place_order", "get_data"]
    payload: dict[str, Any] = Field(default_factory=dict)
    dry_run: bool = Field(alias="dryRun")


class AutomationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    data: dict[str, Any] | None = None


def run_task(
    task: AutomationTask,
    *,
    demo_mode: bool = True,
    correlation_id: str | None = None,
) -> Result[AutomationOutcome]:
    _log.info(
        "automation_task_start",
        correlation_id=correlation_id,
        action=task.action,
        dry_run=task.dry_run,
    )

    if task.action == "place_order" and demo_mode and not task.dry_run:
        err = classify(
            "Real orders blocked in DEMO MODE",
            ErrorCode.AUTOMATION_BLOCKED,
            {"task": task.model_dump()},
            correlation_id,
        )
        _log.warning("automation_task_blocked", correlation_id=err.correlation_id, action=task.action)
        return fail(err)

    if task.dry_run:
        _log.info("automation_dry_run", correlation_id=correlation_id, payload=task.payload)
        return ok(AutomationOutcome(message="Dry run simulated success", data=dict(task.payload)))

    return ok(AutomationOutcome(message="Stub executed"))


def automation_failure(
    message: str,
    *,
    raw: Mapping[str, Any] | None = None,
    correlation_id: str | None = None,
) -> AppError:
    """Map a failure reported by the automation process.

    Timeouts keep their own code; any other logic failure is treated as blocked.
    """

    code = ErrorCode.AUTOMATION_TIMEOUT if "timeout" in message.lower() else ErrorCode.AUTOMATION_BLOCKED
    context = {"raw": dict(raw)} if raw is not None else None
    return classify(message, code, context, correlation_id)


def automation_transport_failure(exc: BaseException, *, correlation_id: str | None = None) -> AppError:
    """Map an exception raised while calling the automation process.

    Anything that is neither a timeout nor a channel failure falls back to the
    generic service-error code, like LLM transport failures.
    """

    text = str(exc).lower()
    if "timeout" in text or "timed out" in text:
        code = ErrorCode.AUTOMATION_TIMEOUT
    elif "ipc" in text or "channel" in text:
        code = ErrorCode.VALIDATION_FAILED
    else:
        code = ErrorCode.SERVICE_UNAVAILABLE

    _log.error("automation_transport_error", correlation_id=correlation_id, code=code.value, error=str(exc))
    return classify(exc, code, None, correlation_id)
