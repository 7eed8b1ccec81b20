from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query

from simillimum.api.deps import get_engine
from simillimum.core.errors import NotFoundError
from simillimum.engine.pipeline import ClassicalRuleEngine

router = APIRouter(prefix="/repertory", tags=["repertory"])


@router.get("/rubrics")
async def list_rubrics(
    chapter: str | None = None,
    search: str | None = None,
    repertory_type: str | None = Query(None, alias="repertoryType"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = await engine.reference.list_rubrics(
        chapter=chapter, search=search, repertory_type=repertory_type, page=page, limit=limit
    )
    return result.to_dict()


@router.get("/rubrics/suggest")
async def suggest_rubrics(
    symptom_code: str = Query(..., alias="symptomCode", min_length=1),
    repertory_type: str | None = Query(None, alias="repertoryType"),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    items = await engine.rubric_mapper.suggest_rubrics(symptom_code, repertory_type)
    return {"symptomCode": symptom_code, "items": items}


@router.get("/rubrics/{rubric_id}")
async def get_rubric(
    rubric_id: uuid.UUID,
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    rubric = await engine.reference.rubric_by_id(rubric_id)
    if rubric is None:
        raise NotFoundError(f"Rubric {rubric_id} not found")
    return {"rubric": rubric.to_dict()}


@router.get("/remedies/{remedy_id}")
async def get_remedy(
    remedy_id: uuid.UUID,
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    remedy = await engine.repertory.get_remedy_details(remedy_id)
    if remedy is None:
        raise NotFoundError(f"Remedy {remedy_id} not found")
    return {"remedy": remedy.to_dict()}
