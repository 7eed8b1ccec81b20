"""
Async engine and session plumbing.

One module-level engine serves the API; the CLI and the tests build their own
through :func:`make_engine` so they can point at another database.
"""
from __future__ import annotations

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings

# psycopg async cannot run on the Proactor loop
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def make_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    options: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return create_async_engine(url, **options)


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False, autoflush=False)


_settings = get_settings()

engine: AsyncEngine = make_engine(_settings.DATABASE_URL, echo=_settings.DB_ECHO)
SessionLocal = make_sessionmaker(engine)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """One transaction per unit of work: commit on clean exit, roll back otherwise.

    A failed decision or outcome update therefore leaves the stored case
    record as it was.
    """
    async with SessionLocal() as session:
        async with session.begin():
            yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    async with session_scope() as session:
        yield session
