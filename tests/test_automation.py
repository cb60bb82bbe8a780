from __future__ import annotations

import pytest

from tradodesk.automation import AutomationTask, automation_failure, automation_transport_failure, run_task
from tradodesk.core.errors import ErrorCode, Severity


def test_real_order_blocked_in_demo_mode() -> None:
    task = AutomationTask(action="place_order", payload={"symbol": "AAPL"}, dryRun=False)

    res = run_task(task, demo_mode=True, correlation_id="cid-auto")

    assert not res.ok
    assert res.error.code is ErrorCode.AUTOMATION_BLOCKED
    assert res.error.severity is Severity.WARN
    assert res.error.retryable is False
    assert res.error.correlation_id == "cid-auto"
    assert res.error.details["task"]["action"] == "place_order"


def test_dry_run_order_is_simulated() -> None:
    task = AutomationTask(action="place_order", payload={"symbol": "AAPL", "quantity": 1}, dry_run=True)

    res = run_task(task, demo_mode=True)

    assert res.ok
    assert res.value.message == "Dry run simulated success"
    assert res.value.data == {"symbol": "AAPL", "quantity": 1}


def test_get_data_runs_in_demo_mode() -> None:
    res = run_task(AutomationTask(action="get_data", dryRun=False), demo_mode=True)

    assert res.ok
    assert res.value.message == "Stub executed"


def test_real_order_allowed_outside_demo_mode() -> None:
    res = run_task(AutomationTask(action="place_order", dryRun=False), demo_mode=False)
    assert res.ok


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(ValueError):
        AutomationTask(action="withdraw", dryRun=True)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "message, code",
    [
        ("Timeout waiting for broker", ErrorCode.AUTOMATION_TIMEOUT),
        ("Order button not found", ErrorCode.AUTOMATION_BLOCKED),
    ],
)
def test_automation_failure_codes(message: str, code: ErrorCode) -> None:
    err = automation_failure(message, raw={"success": False})

    assert err.code is code
    assert err.details["raw"] == {"success": False}


@pytest.mark.parametrize(
    "exc, code, retryable",
    [
        (TimeoutError("operation timed out"), ErrorCode.AUTOMATION_TIMEOUT, False),
        (RuntimeError("IPC channel closed"), ErrorCode.VALIDATION_FAILED, False),
        (RuntimeError("worker crashed"), ErrorCode.SERVICE_UNAVAILABLE, False),
        (RuntimeError("worker 503"), ErrorCode.SERVICE_UNAVAILABLE, True),
    ],
)
def test_automation_transport_failure_codes(exc: Exception, code: ErrorCode, retryable: bool) -> None:
    err = automation_transport_failure(exc, correlation_id="cid-t")

    assert err.code is code
    assert err.retryable is retryable
    assert err.correlation_id == "cid-t"
