"""Resilient LLM client.

`LlmClient` turns the provider's partially specified API into typed results:

- A missing API key yields a single `auth_failed` result; nothing is sent.
- Retries cover the single-shot call and stream *establishment* only. Once
  chunks flow, a failure ends the stream.
- Every chunk is validated; the first invalid chunk yields one `Fail` and the
  stream stops without reading further.
- Provider exceptions never escape: they are classified and returned as `Fail`.
  Only caller contract violations (bad argument types) raise, at call time.
- An optional `cancel` event aborts the in-flight call, including backoff.

Streams are not restartable. Consumers that stop early should `aclose()` the
iterator (or wrap it in `contextlib.aclosing`) so the provider stream is
released promptly.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any, AsyncGenerator, Awaitable, Callable, Iterable, Mapping, Sequence, TypeVar

from tradodesk.config.model import DEFAULT_SYSTEM_INSTRUCTION, LlmConfig
from tradodesk.core.errors import AppError, ErrorCode, OperationCancelled
from tradodesk.core.result import Result, fail
from tradodesk.core.types import ChatTurn, LlmRequest, ModelLane
from tradodesk.observability.ids import new_correlation_id
from tradodesk.observability.logging import get_logger

from .classifier import ErrorClassifier
from .messages import DEFAULT_LOCALE, retries_exhausted_text
from .prompts import build_messages
from .retry import RetryPolicy, Sleep, with_retry
from .schemas import GenerateContent, StreamChunk, validate_chunk, validate_response
from .tools import trading_tool_specs
from .transport import LlmTransport, OpenAICompatTransport

T = TypeVar("T")

_USAGE_FIELDS = (
    ("prompt_tokens", "promptTokens"),
    ("completion_tokens", "outputTokens"),
    ("total_tokens", "totalTokens"),
)

_SCALARS = (str, bytes, int, float, bool, list, tuple)


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _first_choice(raw: Any) -> Any:
    choices = _field(raw, "choices")
    if isinstance(choices, (list, tuple)) and choices:
        return choices[0]
    return None


def _extract_usage(raw_usage: Any) -> Any:
    if raw_usage is None or isinstance(raw_usage, _SCALARS):
        # Let the schema reject it.
        return raw_usage

    out: dict[str, Any] = {}
    for src, dst in _USAGE_FIELDS:
        value = _field(raw_usage, src)
        if value is not None:
            out[dst] = value
    return out


def _parse_args(raw_args: Any) -> Any:
    if raw_args is None or raw_args == "":
        return None
    if isinstance(raw_args, str):
        try:
            return json.loads(raw_args)
        except json.JSONDecodeError:
            # Not an object; validation reports it.
            return raw_args
    if isinstance(raw_args, Mapping):
        return dict(raw_args)
    return raw_args


def _extract_function_call(tool_call: Any) -> dict[str, Any]:
    fn = _field(tool_call, "function")
    out: dict[str, Any] = {"name": _field(fn, "name"), "args": _parse_args(_field(fn, "arguments"))}
    tc_id = _field(tool_call, "id")
    if tc_id is not None:
        out["id"] = tc_id
    return out


def extract_response(raw: Any) -> Any:
    """Flatten a chat-completion response into the `GenerateContent` shape."""

    if raw is None or isinstance(raw, _SCALARS):
        return raw

    out: dict[str, Any] = {}
    message = _field(_first_choice(raw), "message")

    content = _field(message, "content")
    if content is not None:
        out["text"] = content

    tool_calls = _field(message, "tool_calls")
    if tool_calls:
        if isinstance(tool_calls, (list, tuple)):
            out["functionCalls"] = [_extract_function_call(tc) for tc in tool_calls]
        else:
            out["functionCalls"] = tool_calls

    usage = _extract_usage(_field(raw, "usage"))
    if usage is not None:
        out["usage"] = usage
    return out


def extract_chunk(raw: Any) -> Any:
    """Flatten a chat-completion stream chunk into the `StreamChunk` shape."""

    if raw is None or isinstance(raw, _SCALARS):
        return raw

    out: dict[str, Any] = {}
    delta = _field(_first_choice(raw), "delta")
    content = _field(delta, "content")
    if content is not None:
        out["text"] = content

    usage = _extract_usage(_field(raw, "usage"))
    if usage is not None:
        out["usage"] = usage
    return out


async def _until_cancelled(operation: Callable[[], Awaitable[T]], cancel: asyncio.Event | None) -> T:
    """Await `operation()`, aborting with OperationCancelled once `cancel` is set."""

    if cancel is None:
        return await operation()
    if cancel.is_set():
        raise OperationCancelled()

    task = asyncio.ensure_future(operation())
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise OperationCancelled()


async def _close(stream: Any) -> None:
    closer = getattr(stream, "aclose", None) or getattr(stream, "close", None)
    if closer is None:
        return
    res = closer()
    if inspect.isawaitable(res):
        await res


class LlmClient:
    """Retry-protected, validated access to the chat model."""

    def __init__(
        self,
        transport: LlmTransport,
        *,
        api_key: str | None,
        fast_model: str,
        deep_model: str,
        thinking_budget: int = 1024,
        retry: RetryPolicy | None = None,
        system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION,
        locale: str = DEFAULT_LOCALE,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._api_key = api_key
        self._models = {ModelLane.FAST: fast_model, ModelLane.DEEP: deep_model}
        self._thinking_budget = thinking_budget
        self._retry = retry or RetryPolicy()
        self._system_instruction = system_instruction
        self._locale = locale
        self._sleep = sleep
        self._classifier = ErrorClassifier(locale=locale)
        self._log = get_logger(__name__)

    @classmethod
    def from_config(cls, cfg: LlmConfig, *, transport: LlmTransport | None = None) -> "LlmClient":
        if transport is None:
            transport = OpenAICompatTransport(api_key=cfg.api_key, base_url=cfg.base_url, timeout_s=cfg.timeout_s)
        return cls(
            transport,
            api_key=cfg.api_key,
            fast_model=cfg.fast_model,
            deep_model=cfg.deep_model,
            thinking_budget=cfg.thinking_budget,
            retry=RetryPolicy(max_attempts=cfg.retry.max_attempts, base_delay_s=cfg.retry.base_delay_s),
            system_instruction=cfg.system_instruction,
            locale=cfg.locale,
        )

    @property
    def classifier(self) -> ErrorClassifier:
        return self._classifier

    def model_for(self, lane: ModelLane) -> str:
        return self._models[lane]

    def build_request(
        self,
        prompt: str,
        lane: ModelLane,
        history: Sequence[ChatTurn] = (),
        image: bytes | None = None,
    ) -> LlmRequest:
        deep = lane is ModelLane.DEEP
        return LlmRequest(
            model=self.model_for(lane),
            messages=build_messages(prompt, history, image, locale=self._locale),
            system_instruction=self._system_instruction,
            tools=None if deep else trading_tool_specs(),
            thinking_budget=self._thinking_budget if deep else None,
        )

    async def generate(
        self,
        prompt: str,
        lane: ModelLane | str,
        image: bytes | None = None,
        correlation_id: str | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> Result[GenerateContent]:
        """Single-shot completion validated as a whole."""

        lane, _, image = _check_call(prompt, lane, (), image)
        cid = correlation_id or new_correlation_id()

        if not self._api_key:
            return fail(self._missing_key(cid))

        try:
            request = self.build_request(prompt, lane, (), image)
            self._log.info("llm_generate_start", correlation_id=cid, model=request.model, lane=lane.value)

            response = await _until_cancelled(
                lambda: self._with_retry(lambda: self._transport.generate_once(request), cid),
                cancel,
            )
            result = validate_response(extract_response(response), cid, classifier=self._classifier)
        except OperationCancelled as exc:
            return fail(self._cancelled(exc, cid))
        except Exception as exc:
            return fail(self._terminal(exc, cid, "generate"))

        if not result.ok:
            self._log.error(
                "llm_generate_invalid_response",
                correlation_id=cid,
                errors=result.error.details.get("errors"),
            )
        return result

    def stream(
        self,
        prompt: str,
        lane: ModelLane | str,
        history: Iterable[ChatTurn] | None = None,
        image: bytes | None = None,
        correlation_id: str | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> AsyncGenerator[Result[StreamChunk], None]:
        """Stream validated chunks as `Result`s.

        Arguments are checked here, before the iterator is created, so contract
        violations raise immediately.
        """

        lane, turns, image = _check_call(prompt, lane, history, image)
        cid = correlation_id or new_correlation_id()
        return self._stream(prompt, lane, turns, image, cid, cancel)

    async def _stream(
        self,
        prompt: str,
        lane: ModelLane,
        history: tuple[ChatTurn, ...],
        image: bytes | None,
        cid: str,
        cancel: asyncio.Event | None,
    ) -> AsyncGenerator[Result[StreamChunk], None]:
        if not self._api_key:
            yield fail(self._missing_key(cid))
            return

        stream: Any = None
        try:
            request = self.build_request(prompt, lane, history, image)
            self._log.info(
                "llm_stream_start",
                correlation_id=cid,
                model=request.model,
                lane=lane.value,
                history_turns=len(history),
            )

            stream = await _until_cancelled(
                lambda: self._with_retry(lambda: self._transport.generate_stream(request), cid),
                cancel,
            )

            iterator = stream.__aiter__()
            chunks = 0
            while True:
                try:
                    raw = await _until_cancelled(iterator.__anext__, cancel)
                except StopAsyncIteration:
                    break

                result = validate_chunk(extract_chunk(raw), cid, classifier=self._classifier)
                if not result.ok:
                    self._log.error(
                        "llm_stream_chunk_invalid",
                        correlation_id=cid,
                        chunk_index=chunks,
                        errors=result.error.details.get("errors"),
                    )
                    yield result
                    return

                chunks += 1
                yield result

            self._log.info("llm_stream_done", correlation_id=cid, chunks=chunks)
        except OperationCancelled as exc:
            yield fail(self._cancelled(exc, cid))
        except Exception as exc:
            yield fail(self._terminal(exc, cid, "stream"))
        finally:
            if stream is not None:
                await _close(stream)

    async def _with_retry(self, operation: Callable[[], Awaitable[T]], cid: str) -> T:
        return await with_retry(
            operation,
            cid,
            self._retry.max_attempts,
            base_delay_s=self._retry.base_delay_s,
            sleep=self._sleep,
            classifier=self._classifier,
        )

    def _missing_key(self, cid: str) -> AppError:
        self._log.error("llm_api_key_missing", correlation_id=cid)
        return self._classifier.classify("API key missing", ErrorCode.AUTH_FAILED, None, cid)

    def _cancelled(self, exc: OperationCancelled, cid: str) -> AppError:
        self._log.info("llm_request_cancelled", correlation_id=cid)
        return self._classifier.classify(exc, ErrorCode.CANCELLED, None, cid)

    def _terminal(self, exc: Exception, cid: str, operation: str) -> AppError:
        err = self._classifier.classify(exc, ErrorCode.UNKNOWN, None, cid)
        if err.retryable:
            # Retryable here means the retry budget ran out.
            err = err.with_message(retries_exhausted_text(operation, self._locale))
        self._log.error(
            f"llm_{operation}_failed",
            correlation_id=cid,
            code=err.code.value,
            retryable=err.retryable,
            error=str(exc),
        )
        return err


def _check_call(
    prompt: Any,
    lane: Any,
    history: Iterable[ChatTurn] | None,
    image: Any,
) -> tuple[ModelLane, tuple[ChatTurn, ...], bytes | None]:
    if not isinstance(prompt, str):
        raise TypeError("prompt must be a string")

    try:
        lane = ModelLane(lane)
    except ValueError as e:
        raise ValueError(f"unknown model lane: {lane!r}") from e

    if image is not None:
        if not isinstance(image, (bytes, bytearray)):
            raise TypeError("image must be bytes")
        image = bytes(image)

    turns = tuple(history or ())
    for turn in turns:
        if not isinstance(turn, ChatTurn):
            raise TypeError("history entries must be ChatTurn instances")
        if turn.role not in ("user", "model", "system"):
            raise ValueError(f"unknown chat role: {turn.role!r}")
        if not isinstance(turn.text, str):
            raise TypeError("history text must be a string")
        if turn.image is not None and not isinstance(turn.image, bytes):
            raise TypeError("history image must be bytes")

    return lane, turns, image
