"""Lightweight JSON logger utility for stack orchestration.

Provides a consistent logger adapter that emits structured logs with the
environment and run_id fields when available, plus any per-call extras
(stack, state, order, ...).
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        env = getattr(record, "environment", None) or os.environ.get("ENVIRONMENT")
        if env:
            payload["environment"] = env
        for key, value in record.__dict__.items():
            if key in _RESERVED or key in payload or value is None:
                continue
            payload[key] = value
        if not hasattr(record, "asctime"):
            payload["timestamp"] = record.created
        return json.dumps(payload, ensure_ascii=False, default=str)


class _Adapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: Dict[str, Any]):  # type: ignore[override]
        extra = self.extra.copy() if isinstance(self.extra, dict) else {}
        if "extra" in kwargs and isinstance(kwargs["extra"], dict):
            extra.update(kwargs["extra"])  # merge per-call extras
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, run_id: Optional[str] = None) -> logging.LoggerAdapter:
    """Return a JSON-formatted logger adapter with optional run_id."""
    base = logging.getLogger(name)
    if not base.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
        base.addHandler(handler)
    base.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
    extras: Dict[str, Any] = {"environment": os.environ.get("ENVIRONMENT")}
    if run_id:
        extras["run_id"] = run_id
    return _Adapter(base, extras)
