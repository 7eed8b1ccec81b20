"""
Liveness and readiness checks.

/health/live answers as long as the process serves requests. /health/ready
also runs ``SELECT 1`` and turns 503 when the database is down or slow.
"""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

import simillimum.db as db
from simillimum.config import get_settings

log = logging.getLogger("simillimum.health")

router = APIRouter(prefix="/health", tags=["health"])


def _check(status_code: int, check: str, **extra: str) -> JSONResponse:
    status = "ok" if status_code < 400 else "error"
    return JSONResponse(status_code=status_code, content={"status": status, "check": check, **extra})


@router.get("/live")
async def live() -> JSONResponse:
    return _check(200, "live")


@router.get("/ready")
async def ready() -> JSONResponse:
    timeout = get_settings().DB_PING_TIMEOUT_SECONDS
    try:
        async with asyncio.timeout(timeout):
            async with db.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
    except TimeoutError:
        log.error("readiness: database ping exceeded %.1fs", timeout)
        return _check(503, "ready", db="timeout")
    except Exception as exc:  # any driver or network failure means not ready
        log.error("readiness: database unreachable (%s)", type(exc).__name__)
        return _check(503, "ready", db="unreachable")
    return _check(200, "ready", db="reachable")
