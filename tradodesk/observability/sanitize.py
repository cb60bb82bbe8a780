"""Payload sanitizing for logs and serialized errors.

- Keys that look like credentials are replaced with a fixed marker.
- Inline base64 images are truncated so screenshots never land in log files.
- Values that are not JSON-friendly are replaced by their repr.
"""

from __future__ import annotations

import re
from typing import Any

REDACTED = "***REDACTED***"
TRUNCATED_IMAGE = "...[TRUNCATED_IMAGE]"

_SECRET_WORDS = frozenset({"apikey", "key", "token", "auth", "authorization", "password", "secret"})
# camelCase and ALLCAPS runs, lower-case words and digits.
_KEY_WORD_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")
_IMAGE_MAX_LEN = 200
_IMAGE_KEEP_LEN = 50


def _key_words(key: str) -> list[str]:
    return [w.lower() for w in _KEY_WORD_RE.findall(key)]


def is_secret_key(key: str) -> bool:
    """True when any word of `key` names a credential.

    Keys are split on separators and camelCase boundaries, so `accessToken`
    and `openai_api_key` match while `prompt_tokens` and `author` do not.
    """

    return any(w in _SECRET_WORDS for w in _key_words(key))


def sanitize(value: Any) -> Any:
    """Return a JSON-friendly copy of `value` with secrets redacted."""

    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            out[key] = REDACTED if is_secret_key(key) else sanitize(v)
        return out

    if isinstance(value, (list, tuple)):
        return [sanitize(v) for v in value]

    if isinstance(value, str):
        if value.startswith("data:image") and len(value) > _IMAGE_MAX_LEN:
            return value[:_IMAGE_KEEP_LEN] + TRUNCATED_IMAGE
        return value

    if value is None or isinstance(value, (bool, int, float)):
        return value

    return repr(value)
