"""Token usage records and cost estimates.

Prices are configured per model in USD per one million tokens.
"""

from __future__ import annotations

import time
from typing import Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

from tradodesk.config.model import ModelPrice
from tradodesk.core.types import ModelLane
from tradodesk.observability.ids import new_correlation_id

from .schemas import Usage

_PER_TOKENS = 1_000_000


class UsageRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: float
    model: str
    lane: Literal["fast", "deep"]
    prompt_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    latency_ms: float = Field(ge=0)
    cost: float = Field(ge=0)


def compute_cost(pricing: Mapping[str, ModelPrice], model: str, usage: Usage) -> float:
    """Estimated cost in USD; unknown models cost 0."""

    price = pricing.get(model)
    if price is None:
        return 0.0
    prompt = usage.prompt_tokens or 0
    output = usage.output_tokens or 0
    return (prompt * price.input + output * price.output) / _PER_TOKENS


def make_usage_record(
    *,
    model: str,
    lane: ModelLane,
    usage: Usage,
    latency_ms: float,
    pricing: Mapping[str, ModelPrice],
    timestamp: float | None = None,
) -> UsageRecord:
    return UsageRecord(
        id=new_correlation_id(),
        timestamp=time.time() if timestamp is None else timestamp,
        model=model,
        lane=lane.value,
        prompt_tokens=usage.prompt_tokens or 0,
        output_tokens=usage.output_tokens or 0,
        total_tokens=usage.total_tokens or 0,
        latency_ms=max(0.0, latency_ms),
        cost=compute_cost(pricing, model, usage),
    )
