from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal


class ModelLane(str, Enum):
    """Operating mode picked by the caller.

    FAST exposes tool declarations; DEEP spends an extended thinking budget
    and declares no tools.
    """

    FAST = "fast"
    DEEP = "deep"


@dataclass(frozen=True, slots=True)
class ChatTurn:
    """One prior conversation turn (history entry)."""

    role: Literal["user", "model", "system"]
    text: str
    image: bytes | None = None


@dataclass(frozen=True, slots=True)
class LlmRequest:
    """Provider request payload, transport-agnostic."""

    model: str
    messages: list[dict[str, Any]]
    system_instruction: str
    tools: list[dict[str, Any]] | None = None
    thinking_budget: int | None = None
