"""
Per-request context: X-Request-ID in and out, doctor id for the log lines,
and one access line per request.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from simillimum.core.logging import doctor_id_ctx, request_id_ctx

log = logging.getLogger("simillimum.access")

REQUEST_ID_HEADER = "X-Request-ID"
DOCTOR_ID_HEADER = "X-Doctor-Id"


def _incoming_request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return supplied[:128] if supplied else str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = _incoming_request_id(request)
        request.state.request_id = request_id
        rid_token = request_id_ctx.set(request_id)
        doc_token = doctor_id_ctx.set(request.headers.get(DOCTOR_ID_HEADER, "").strip())

        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            log.info(
                "%s %s %d %.2fms",
                request.method,
                request.url.path,
                status,
                (time.perf_counter() - started) * 1000.0,
            )
            request_id_ctx.reset(rid_token)
            doctor_id_ctx.reset(doc_token)
