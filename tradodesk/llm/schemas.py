"""Schema contracts for provider responses.

Both single-shot responses and stream chunks are checked before anything is
handed to callers. All fields are optional; token counts, when present, must be
non-negative integers. Validation reports failures as `Fail` results and never
raises.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Mapping

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tradodesk.core.errors import ErrorCode
from tradodesk.core.result import Result, fail, ok

from .classifier import ErrorClassifier, classify


def _token_number(value: Any) -> Any:
    # Lax int coercion would also take bools and numeric strings.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("token count must be a number")
    return value


# Integral floats such as 3.0 are accepted; fractions are rejected by int.
TokenCount = Annotated[int, BeforeValidator(_token_number), Field(ge=0)]


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Usage(_Schema):
    prompt_tokens: TokenCount | None = None
    output_tokens: TokenCount | None = None
    total_tokens: TokenCount | None = None


class FunctionCall(_Schema):
    name: Annotated[str, Field(strict=True)]
    args: dict[str, Any] | None = None
    id: Annotated[str, Field(strict=True)] | None = None


class GenerateContent(_Schema):
    text: Annotated[str, Field(strict=True)] | None = None
    usage: Usage | None = None
    function_calls: list[FunctionCall] | None = None


class StreamChunk(_Schema):
    text: Annotated[str, Field(strict=True)] | None = None
    usage: Usage | None = None


def _errors(exc: ValidationError) -> list[dict[str, Any]]:
    # Round-trip through JSON so ctx/input values are plain data.
    return json.loads(exc.json(include_url=False))


def _validate(
    schema: type[_Schema],
    raw: Any,
    *,
    message: str,
    correlation_id: str | None,
    classifier: ErrorClassifier | None,
) -> Result[Any]:
    try:
        return ok(schema.model_validate(raw))
    except ValidationError as exc:
        context: Mapping[str, Any] = {"schema": schema.__name__, "errors": _errors(exc)}
        if classifier is not None:
            err = classifier.classify(message, ErrorCode.VALIDATION_FAILED, context, correlation_id)
        else:
            err = classify(message, ErrorCode.VALIDATION_FAILED, context, correlation_id)
        return fail(err)


def validate_response(
    raw: Any,
    correlation_id: str | None = None,
    *,
    classifier: ErrorClassifier | None = None,
) -> Result[GenerateContent]:
    return _validate(
        GenerateContent,
        raw,
        message="API response validation failed (structure mismatch)",
        correlation_id=correlation_id,
        classifier=classifier,
    )


def validate_chunk(
    raw: Any,
    correlation_id: str | None = None,
    *,
    classifier: ErrorClassifier | None = None,
) -> Result[StreamChunk]:
    return _validate(
        StreamChunk,
        raw,
        message="Stream chunk validation failed",
        correlation_id=correlation_id,
        classifier=classifier,
    )
