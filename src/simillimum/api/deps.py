from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from simillimum.config import get_settings
from simillimum.core.errors import UnauthorizedError
from simillimum.db import get_session
from simillimum.engine.contradiction import Clock, utcnow
from simillimum.engine.params import RuleEngineParams, load_params
from simillimum.engine.pipeline import ClassicalRuleEngine


@lru_cache
def get_params() -> RuleEngineParams:
    return load_params(get_settings().RULE_ENGINE_CONFIG_PATH)


def get_clock() -> Clock:
    return utcnow


async def get_doctor_id(x_doctor_id: str | None = Header(default=None, alias="X-Doctor-Id")) -> str:
    """Acting doctor, as resolved by the upstream auth layer."""
    if not x_doctor_id or not x_doctor_id.strip():
        raise UnauthorizedError("Missing X-Doctor-Id header")
    return x_doctor_id.strip()


async def get_engine(
    session: AsyncSession = Depends(get_session),
    params: RuleEngineParams = Depends(get_params),
    clock: Clock = Depends(get_clock),
) -> ClassicalRuleEngine:
    return ClassicalRuleEngine.for_session(session, params, now=clock)
