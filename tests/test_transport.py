from __future__ import annotations

import asyncio
from typing import Any

import httpx
import openai
import pytest

from tradodesk.core.errors import TransportError
from tradodesk.core.types import LlmRequest
from tradodesk.llm.classifier import classify
from tradodesk.llm.transport import FakeTransport, OpenAICompatTransport, request_kwargs


def _request(**kwargs: Any) -> LlmRequest:
    base: dict[str, Any] = {
        "model": "m",
        "messages": [{"role": "user", "content": "hi"}],
        "system_instruction": "sys",
    }
    base.update(kwargs)
    return LlmRequest(**base)


class _Completions:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class _Client:
    def __init__(self, outcome: Any) -> None:
        self.completions = _Completions(outcome)
        self.chat = self


class _Stream:
    def __init__(self, items: list[Any]) -> None:
        self._items = list(items)
        self.closed = False

    def __aiter__(self) -> "_Stream":
        return self

    async def __anext__(self) -> Any:
        if not self._items:
            raise StopAsyncIteration
        item = self._items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "https://example.invalid/chat"))


def test_request_kwargs_prepends_system_message() -> None:
    kwargs = request_kwargs(_request())

    assert kwargs["model"] == "m"
    assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert kwargs["messages"][1] == {"role": "user", "content": "hi"}
    assert "tools" not in kwargs
    assert "extra_body" not in kwargs


def test_request_kwargs_tools_and_thinking() -> None:
    tools = [{"type": "function", "function": {"name": "get_chart", "parameters": {}}}]
    kwargs = request_kwargs(_request(tools=tools, thinking_budget=512))

    assert kwargs["tools"] == tools
    assert kwargs["extra_body"]["extra_body"]["google"]["thinking_config"]["thinking_budget"] == 512


def test_generate_once_uses_injected_client() -> None:
    client = _Client({"choices": []})
    transport = OpenAICompatTransport(api_key="k", base_url="https://example.invalid", client=client)  # type: ignore[arg-type]

    out = asyncio.run(transport.generate_once(_request()))

    assert out == {"choices": []}
    assert client.completions.calls[0]["model"] == "m"
    assert "stream" not in client.completions.calls[0]


def test_connection_errors_become_network_errors() -> None:
    client = _Client(_connection_error())
    transport = OpenAICompatTransport(api_key="k", base_url="https://example.invalid", client=client)  # type: ignore[arg-type]

    with pytest.raises(TransportError) as ei:
        asyncio.run(transport.generate_once(_request()))

    assert str(ei.value).startswith("network error:")
    assert classify(ei.value).retryable is True


def test_stream_requests_usage_and_closes() -> None:
    raw = _Stream([{"choices": [{"delta": {"content": "a"}}]}])
    client = _Client(raw)
    transport = OpenAICompatTransport(api_key="k", base_url="https://example.invalid", client=client)  # type: ignore[arg-type]

    async def run() -> list[Any]:
        stream = await transport.generate_stream(_request())
        return [c async for c in stream]

    out = asyncio.run(run())

    call = client.completions.calls[0]
    assert call["stream"] is True
    assert call["stream_options"] == {"include_usage": True}
    assert len(out) == 1
    assert raw.closed is True


def test_stream_connection_error_mid_stream() -> None:
    raw = _Stream([{"choices": []}, _connection_error()])
    transport = OpenAICompatTransport(api_key="k", base_url="https://example.invalid", client=_Client(raw))  # type: ignore[arg-type]

    async def run() -> None:
        stream = await transport.generate_stream(_request())
        async for _ in stream:
            pass

    with pytest.raises(TransportError):
        asyncio.run(run())
    assert raw.closed is True


def test_fake_transport_streams_text_then_usage() -> None:
    fake = FakeTransport(text_parts=("a ", "b"))

    async def run() -> list[Any]:
        stream = await fake.generate_stream(_request())
        return [c async for c in stream]

    out = asyncio.run(run())

    assert [c["choices"][0]["delta"]["content"] for c in out[:-1]] == ["a ", "b"]
    assert out[-1]["usage"]["total_tokens"] == 12
    assert len(fake.requests) == 1
