"""
Every error leaves the API as

    {"error": str, "error_code": str, "request_id": str | null, "code": int}

Server-side failures are logged with their traceback; the body only ever says
"Unexpected server error".
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from simillimum.config import get_settings
from simillimum.core.errors import EngineError

log = logging.getLogger("simillimum.errors")

SERVER_ERROR = "Unexpected server error"


def error_response(request: Request, status: int, error_code: str, message: str, **extra) -> JSONResponse:
    body = {
        "error": message,
        "error_code": error_code,
        "request_id": getattr(request.state, "request_id", None),
        "code": status,
    }
    body.update(extra)
    return JSONResponse(status_code=status, content=body)


async def _on_engine_error(request: Request, exc: EngineError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s on %s", exc.code, request.url.path, exc_info=exc)
        return error_response(request, exc.status_code, exc.code, SERVER_ERROR)
    log.warning("%s on %s: %s", exc.code, request.url.path, exc)
    return error_response(request, exc.status_code, exc.code, str(exc))


async def _on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = str(exc.detail) if exc.detail else "Request error"
    if exc.status_code >= 500:
        log.error("HTTP %d on %s: %s", exc.status_code, request.url.path, message)
    return error_response(request, exc.status_code, "HTTP_ERROR", message)


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.warning("request validation failed on %s (%d errors)", request.url.path, len(exc.errors()))
    extra = {} if get_settings().is_production else {"detail": jsonable_encoder(exc.errors())}
    return error_response(request, 422, "VALIDATION_ERROR", "Invalid request body or parameters", **extra)


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled %s on %s", type(exc).__name__, request.url.path)
    return error_response(request, 500, "INTERNAL_ERROR", SERVER_ERROR)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, _on_engine_error)
    app.add_exception_handler(StarletteHTTPException, _on_http_error)
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(Exception, _on_unhandled)
