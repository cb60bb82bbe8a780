"""Provider transports.

A transport sends one `LlmRequest` and hands back raw provider objects; it does
not retry, validate or classify. `OpenAICompatTransport` talks to any
OpenAI-compatible chat endpoint (Gemini's by default).

Constraints:
- SDK-level retries are disabled; retry policy belongs to the client.
- Connection failures are re-raised as `TransportError("network error: ...")`
  so the error classifier recognizes them.
- Streams request a trailing usage chunk (`stream_options.include_usage`).
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Iterable, Protocol

import openai
from openai import AsyncOpenAI

from tradodesk.core.errors import TransportError
from tradodesk.core.types import LlmRequest


class LlmTransport(Protocol):
    async def generate_once(self, request: LlmRequest) -> Any:
        """Return the provider's complete response."""
        ...

    async def generate_stream(self, request: LlmRequest) -> AsyncIterator[Any]:
        """Establish a stream and return an async iterator over raw chunks."""
        ...


def _thinking_body(budget: int) -> dict[str, Any]:
    # Gemini's OpenAI-compatible endpoint reads vendor options from a nested extra_body.
    return {"extra_body": {"google": {"thinking_config": {"thinking_budget": budget}}}}


def request_kwargs(request: LlmRequest) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "model": request.model,
        "messages": [{"role": "system", "content": request.system_instruction}, *request.messages],
    }
    if request.tools:
        kwargs["tools"] = request.tools
    if request.thinking_budget:
        kwargs["extra_body"] = _thinking_body(request.thinking_budget)
    return kwargs


class OpenAICompatTransport:
    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        timeout_s: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_s = timeout_s
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        # Built lazily: AsyncOpenAI refuses to start without a key.
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout_s,
                max_retries=0,
            )
        return self._client

    async def generate_once(self, request: LlmRequest) -> Any:
        try:
            return await self._get_client().chat.completions.create(**request_kwargs(request))
        except openai.APIConnectionError as e:
            raise TransportError(f"network error: {e}") from e

    async def generate_stream(self, request: LlmRequest) -> AsyncIterator[Any]:
        try:
            stream = await self._get_client().chat.completions.create(
                **request_kwargs(request),
                stream=True,
                stream_options={"include_usage": True},
            )
        except openai.APIConnectionError as e:
            raise TransportError(f"network error: {e}") from e
        return _relay(stream)


async def _relay(stream: Any) -> AsyncIterator[Any]:
    try:
        async for chunk in stream:
            yield chunk
    except openai.APIConnectionError as e:
        raise TransportError(f"network error: {e}") from e
    finally:
        await stream.close()


class FakeTransport:
    """Offline stub for running the client without network/API."""

    def __init__(self, *, text_parts: Iterable[str] = ("(fake) Hallo! ", "Wie kann ich helfen?")) -> None:
        self._parts = list(text_parts)
        self.requests: list[LlmRequest] = []

    def _usage(self) -> dict[str, int]:
        output = sum(len(p.split()) for p in self._parts)
        return {"prompt_tokens": 10, "completion_tokens": output, "total_tokens": 10 + output}

    async def generate_once(self, request: LlmRequest) -> Any:
        self.requests.append(request)
        return {
            "choices": [{"message": {"role": "assistant", "content": "".join(self._parts)}}],
            "usage": self._usage(),
        }

    async def generate_stream(self, request: LlmRequest) -> AsyncIterator[Any]:
        self.requests.append(request)
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[Any]:
        for part in self._parts:
            yield {"choices": [{"delta": {"content": part}}]}
        yield {"choices": [], "usage": self._usage()}
