"""Structured logging setup.

Records are emitted as one JSON object per line. Keyword fields passed to
`KVLogger` land in the payload after sanitizing, and the correlation id bound
in `observability.context` is added when the call did not pass one.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .context import snapshot
from .sanitize import sanitize

_RESERVED = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(snapshot())

        for k, v in record.__dict__.items():
            if k in _RESERVED or k.startswith("_"):
                continue
            payload[k] = v

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=repr)


class KVLogger:
    """A tiny structured logging adapter.

    `log.info("llm_stream_start", correlation_id=cid, model=m)` puts every
    keyword into the JSON payload.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg: str, *args: object, **kwargs: object) -> None:
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)

    def _log(self, level: int, msg: str, *args: object, **kwargs: object) -> None:
        if not self._logger.isEnabledFor(level):
            return

        exc_info = kwargs.pop("exc_info", None)
        stack_info = bool(kwargs.pop("stack_info", False))
        extra = kwargs.pop("extra", None)
        if extra is None:
            extra_dict: dict[str, object] = {}
        elif isinstance(extra, dict):
            extra_dict = dict(extra)
        else:
            extra_dict = {"extra": repr(extra)}

        for k, v in kwargs.items():
            extra_dict[k] = v

        # correlation_id is an identifier, not a payload field; keep it as-is.
        correlation_id = extra_dict.pop("correlation_id", None)
        safe = sanitize(extra_dict)
        if correlation_id is not None:
            safe["correlation_id"] = correlation_id

        self._logger.log(level, msg, *args, extra=safe, exc_info=exc_info, stack_info=stack_info)


def configure_logging(*, level: str = "INFO", file: str | Path | None = None) -> None:
    """Configure root logging with JSON output.

    Safe to call multiple times; later calls replace the handlers.
    """

    root = logging.getLogger()
    root.setLevel(level.upper())

    formatter = JsonFormatter()
    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(stream=sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if file is not None:
        log_path = Path(file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for h in root.handlers:
        h.close()
    root.handlers.clear()
    for h in handlers:
        root.addHandler(h)


def get_logger(name: str = "tradodesk") -> KVLogger:
    return KVLogger(logging.getLogger(name))
