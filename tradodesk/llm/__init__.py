"""LLM client layer: classification, retry, validation and streaming."""

from __future__ import annotations

from .classifier import ClassificationRule, ErrorClassifier, classify
from .client import LlmClient
from .retry import RetryPolicy, with_retry
from .schemas import FunctionCall, GenerateContent, StreamChunk, Usage, validate_chunk, validate_response
from .transport import FakeTransport, LlmTransport, OpenAICompatTransport
from .usage import UsageRecord, compute_cost, make_usage_record

__all__ = [
    "ClassificationRule",
    "ErrorClassifier",
    "FakeTransport",
    "FunctionCall",
    "GenerateContent",
    "LlmClient",
    "LlmTransport",
    "OpenAICompatTransport",
    "RetryPolicy",
    "StreamChunk",
    "Usage",
    "UsageRecord",
    "classify",
    "compute_cost",
    "make_usage_record",
    "validate_chunk",
    "validate_response",
    "with_retry",
]
