"""Tool declarations exposed on the fast lane.

Declarations are written as pydantic models and converted to the
OpenAI-compatible function format with LangChain's converter.
"""

from __future__ import annotations

from typing import Any, Literal

from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, Field


class PlaceOrder(BaseModel):
    """Places a trade order. REQUIRES USER CONFIRMATION."""

    symbol: str = Field(description="Ticker symbol, e.g. AAPL.")
    action: Literal["BUY", "SELL"] = Field(description="Order side.")
    quantity: float = Field(description="Number of units to trade.")


class GetChart(BaseModel):
    """Gets chart data for a symbol."""

    symbol: str = Field(description="Ticker symbol, e.g. AAPL.")


TRADING_TOOLS: dict[str, type[BaseModel]] = {
    "place_order": PlaceOrder,
    "get_chart": GetChart,
}


def tool_spec(model: type[BaseModel], *, name: str) -> dict[str, Any]:
    spec = convert_to_openai_tool(model)

    fn = spec.get("function")
    if not isinstance(fn, dict):
        fn = {}
        spec["function"] = fn
    fn["name"] = name

    if "parameters" not in fn or not isinstance(fn.get("parameters"), dict):
        fn["parameters"] = {"type": "object", "properties": {}}

    spec.setdefault("type", "function")
    return spec


def trading_tool_specs() -> list[dict[str, Any]]:
    return [tool_spec(model, name=name) for name, model in TRADING_TOOLS.items()]
