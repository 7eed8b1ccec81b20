"""
JSON log lines with the request id and the acting doctor attached.

    setup_json_logging("INFO")   # once, at startup
    request_id_ctx.set(rid)      # done by RequestIDMiddleware

Structured fields can be passed per call::

    log.info("case saved", extra={"fields": {"case_id": str(record.id)}})
"""
from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

__all__ = ["request_id_ctx", "doctor_id_ctx", "setup_json_logging"]

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
doctor_id_ctx: ContextVar[str] = ContextVar("doctor_id", default="")


class JsonFormatter(logging.Formatter):
    """One JSON object per record. Exceptions carry type and message only."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_ctx.get(),
            "doctor_id": doctor_id_ctx.get(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            payload.update({k: v for k, v in fields.items() if k not in payload})
        if record.exc_info and record.exc_info[0] is not None:
            payload["exc"] = {"type": record.exc_info[0].__name__, "detail": str(record.exc_info[1])}
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_json_logging(level: str = "INFO") -> None:
    """Install the JSON handler on the root logger; repeated calls only adjust the level."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
