from __future__ import annotations

from tradodesk.llm.tools import trading_tool_specs


def test_trading_tools_are_declared() -> None:
    specs = {s["function"]["name"]: s for s in trading_tool_specs()}

    assert set(specs) == {"place_order", "get_chart"}
    assert all(s["type"] == "function" for s in specs.values())

    order = specs["place_order"]["function"]["parameters"]
    assert set(order["properties"]) == {"symbol", "action", "quantity"}
    assert set(order["required"]) == {"symbol", "action", "quantity"}
    assert order["properties"]["action"]["enum"] == ["BUY", "SELL"]

    chart = specs["get_chart"]["function"]["parameters"]
    assert set(chart["properties"]) == {"symbol"}
