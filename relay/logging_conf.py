"""JSON-line logging for the relay and the smoke runner.

Every record is one JSON object on stdout: `ts`, `level`, `logger`, `message`
and whatever was passed in `extra={...}`. Call sites put a snake_case `event`
in the extras so lines can be filtered without parsing messages:

- `request_start` / `request_end` / `request_error` / `request_rejected`
  (middleware and error handlers, correlated by `request_id`)
- `key_issue` / `key_expired` / `key_revoke` / `key_sweep` /
  `key_refresh_skipped` (credential store; only `key_hash`, the first 8 hex
  chars of the digest, is ever logged)
- `export_done` / `export_publish_failed` / `import_done` / `upload_done` /
  `upload_failed` (use-cases and upstream gateway)
- `rate_limited`, `startup`, `shutdown`

Plaintext keys and upstream credentials never appear in a record.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging import Handler, LogRecord
from typing import Any

_DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Attributes every LogRecord carries; anything else on the record is an extra.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message"}

_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class JsonFormatter(logging.Formatter):
    """One JSON object per record; `extra` keys land at the top level next to `event`.

    A dict passed as the message is merged in as-is. Values that are not JSON
    serialisable (paths, exceptions) are written with `str()`.
    """

    def format(self, record: LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
        }

        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            payload["message"] = record.getMessage()

        for key, value in record.__dict__.items():
            if key in _RESERVED or key in payload:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _make_stream_handler(level: int) -> Handler:
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler


def setup_logging(level: str | int = _DEFAULT_LEVEL) -> None:
    """Attach the JSON handler to the root logger and route uvicorn through it.

    Idempotent: once the root logger has a handler (a reload, or a second
    `create_app()` in tests) this is a no-op, so lines are never duplicated.
    """
    root = logging.getLogger()

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if root.handlers:  # already configured (reload, tests)
        return

    root.setLevel(level)
    root.addHandler(_make_stream_handler(level))

    for name in _SERVER_LOGGERS:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.propagate = True
        for h in list(lg.handlers):
            lg.removeHandler(h)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return `relay.<name>`, e.g. `relay.domain.credentials` or `relay.runner.client`."""
    return logging.getLogger(f"relay.{name}" if name else "relay")
