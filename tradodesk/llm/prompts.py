"""Provider message construction (OpenAI-compatible chat format)."""

from __future__ import annotations

import base64
from typing import Any, Sequence

from tradodesk.core.types import ChatTurn

from .messages import DEFAULT_LOCALE, chart_prefix

_ROLE_MAP = {"user": "user", "model": "assistant", "system": "system"}


def _image_mime(data: bytes) -> str:
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def image_data_url(data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{_image_mime(data)};base64,{encoded}"


def build_turn(role: str, text: str, image: bytes | None = None) -> dict[str, Any]:
    if role not in _ROLE_MAP:
        raise ValueError(f"unknown chat role: {role!r}")

    if image is None:
        return {"role": _ROLE_MAP[role], "content": text}

    return {
        "role": _ROLE_MAP[role],
        "content": [
            {"type": "image_url", "image_url": {"url": image_data_url(image)}},
            {"type": "text", "text": text},
        ],
    }


def build_user_turn(prompt: str, image: bytes | None = None, *, locale: str = DEFAULT_LOCALE) -> dict[str, Any]:
    """Build the new user turn; an attached image marks the prompt as chart analysis."""

    if image is None:
        return build_turn("user", prompt)
    return build_turn("user", chart_prefix(locale) + prompt, image)


def build_messages(
    prompt: str,
    history: Sequence[ChatTurn] = (),
    image: bytes | None = None,
    *,
    locale: str = DEFAULT_LOCALE,
) -> list[dict[str, Any]]:
    messages = [build_turn(t.role, t.text, t.image) for t in history]
    messages.append(build_user_turn(prompt, image, locale=locale))
    return messages
