"""Automation contract (task schema and demo-mode policy)."""

from __future__ import annotations

from .runner import AutomationOutcome, AutomationTask, automation_failure, automation_transport_failure, run_task

__all__ = [
    "AutomationOutcome",
    "AutomationTask",
    "automation_failure",
    "automation_transport_failure",
    "run_task",
]
