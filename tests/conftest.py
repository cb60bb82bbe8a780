from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Iterable

import pytest

from tradodesk.core.types import LlmRequest
from tradodesk.llm.client import LlmClient
from tradodesk.llm.retry import RetryPolicy


class ScriptedTransport:
    """Transport double that replays scripted outcomes.

    `once` items and `streams` items are consumed one per call; an exception
    instance is raised instead of returned. Stream scripts are lists of raw
    chunks, where an exception instance is raised mid-stream.
    """

    def __init__(self, *, once: Iterable[Any] = (), streams: Iterable[Any] = ()) -> None:
        self._once = list(once)
        self._streams = list(streams)
        self.once_calls = 0
        self.stream_calls = 0
        self.requests: list[LlmRequest] = []
        self.pulled = 0
        self.closed = 0

    async def generate_once(self, request: LlmRequest) -> Any:
        self.once_calls += 1
        self.requests.append(request)
        item = self._once.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def generate_stream(self, request: LlmRequest) -> AsyncIterator[Any]:
        self.stream_calls += 1
        self.requests.append(request)
        item = self._streams.pop(0)
        if isinstance(item, BaseException):
            raise item
        return self._iterate(list(item))

    async def _iterate(self, chunks: list[Any]) -> AsyncIterator[Any]:
        try:
            for chunk in chunks:
                if isinstance(chunk, BaseException):
                    raise chunk
                self.pulled += 1
                yield chunk
        finally:
            self.closed += 1


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def text_chunk(text: str) -> dict[str, Any]:
    return {"choices": [{"delta": {"content": text}}]}


def usage_chunk(prompt: int, output: int, total: int) -> dict[str, Any]:
    return {"choices": [], "usage": {"prompt_tokens": prompt, "completion_tokens": output, "total_tokens": total}}


@pytest.fixture
def scripted() -> type[ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture
def chunks() -> Any:
    class _Chunks:
        text = staticmethod(text_chunk)
        usage = staticmethod(usage_chunk)

    return _Chunks


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client(recording_sleep: RecordingSleep) -> Callable[..., LlmClient]:
    def factory(
        transport: Any,
        *,
        api_key: str | None = "k_test",
        max_attempts: int = 3,
        locale: str = "de",
        sleep: Any = None,
    ) -> LlmClient:
        return LlmClient(
            transport,
            api_key=api_key,
            fast_model="fast-model",
            deep_model="deep-model",
            thinking_budget=1024,
            retry=RetryPolicy(max_attempts=max_attempts, base_delay_s=1.0),
            locale=locale,
            sleep=sleep or recording_sleep,
        )

    return factory
