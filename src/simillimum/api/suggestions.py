"""
Classical homeopathy endpoints.

POST /classical-homeopathy/suggest                      run the engine, persist a case record
GET  /classical-homeopathy/remedies                     paginated remedy list
GET  /classical-homeopathy/case/patient/{patient_id}    a patient's case records
GET  /classical-homeopathy/case/{case_id}               one case record
PUT  /classical-homeopathy/case/{case_id}/decision      doctor's chosen remedy
PUT  /classical-homeopathy/case/{case_id}/outcome       follow-up outcome
GET  /classical-homeopathy/statistics/remedy/{remedy_id}
GET  /classical-homeopathy/statistics/patterns?symptomCode=
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

import pydantic
from fastapi import APIRouter, Depends, Query

from simillimum.api.deps import get_doctor_id, get_engine
from simillimum.api.schemas import (
    RECORDABLE_OUTCOMES,
    DecisionRequest,
    OutcomeRequest,
    StructuredCaseIn,
    SuggestRequest,
)
from simillimum.core.errors import ForbiddenError, ValidationError
from simillimum.engine.pipeline import ClassicalRuleEngine
from simillimum.engine.types import OutcomeStatus
from simillimum.repertory.contracts import CaseRecordDTO

log = logging.getLogger("simillimum.api.suggestions")

router = APIRouter(prefix="/classical-homeopathy", tags=["classical-homeopathy"])


async def _owned_record(engine: ClassicalRuleEngine, case_id: uuid.UUID, doctor_id: str) -> CaseRecordDTO:
    record = await engine.outcome.get_case_record(case_id)
    if record.doctor_id != doctor_id:
        log.warning("case record access denied", extra={"fields": {"case_id": str(case_id)}})
        raise ForbiddenError()
    return record


@router.post("/suggest")
async def suggest(
    payload: SuggestRequest,
    doctor_id: str = Depends(get_doctor_id),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    if not payload.patient_id or not payload.patient_id.strip():
        raise ValidationError("patientId is required")
    if not isinstance(payload.structured_case, dict):
        raise ValidationError("structuredCase must be an object")
    try:
        case = StructuredCaseIn.model_validate(payload.structured_case).to_case()
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid structuredCase: {e.error_count()} error(s)") from e

    run = await engine.process_case(
        doctor_id,
        payload.patient_id.strip(),
        case,
        history=[h.to_entry() for h in payload.patient_history],
        selected_rubric_ids=payload.selected_rubric_ids,
    )
    return run.to_response()


@router.get("/remedies")
async def list_remedies(
    search: str | None = None,
    category: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = await engine.reference.list_remedies(search=search, category=category, page=page, limit=limit)
    return result.to_dict()


@router.get("/case/patient/{patient_id}")
async def patient_cases(
    patient_id: str,
    doctor_id: str = Depends(get_doctor_id),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    records = await engine.outcome.list_patient_cases(doctor_id, patient_id)
    return {"items": [r.to_dict() for r in records], "count": len(records)}


@router.get("/case/{case_id}")
async def get_case(
    case_id: uuid.UUID,
    doctor_id: str = Depends(get_doctor_id),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    record = await _owned_record(engine, case_id, doctor_id)
    return {"caseRecord": record.to_dict()}


@router.put("/case/{case_id}/decision")
async def update_decision(
    case_id: uuid.UUID,
    payload: DecisionRequest,
    doctor_id: str = Depends(get_doctor_id),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    await _owned_record(engine, case_id, doctor_id)
    record = await engine.outcome.update_doctor_decision(case_id, payload.final_remedy.to_record())
    return {"message": "Doctor decision recorded", "caseRecord": record.to_dict()}


@router.put("/case/{case_id}/outcome")
async def update_outcome(
    case_id: uuid.UUID,
    payload: OutcomeRequest,
    doctor_id: str = Depends(get_doctor_id),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    if payload.outcome_status not in RECORDABLE_OUTCOMES:
        raise ValidationError(f"outcomeStatus must be one of {', '.join(RECORDABLE_OUTCOMES)}")
    await _owned_record(engine, case_id, doctor_id)
    record = await engine.outcome.update_outcome(
        case_id, OutcomeStatus(payload.outcome_status), payload.follow_up_notes
    )
    return {"message": "Outcome recorded", "caseRecord": record.to_dict()}


@router.get("/statistics/remedy/{remedy_id}")
async def remedy_statistics(
    remedy_id: str,
    start: datetime | None = None,
    end: datetime | None = None,
    doctor_id: str = Depends(get_doctor_id),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    if start and end and start > end:
        raise ValidationError("start must not be after end")
    return await engine.outcome.calculate_success_rate(remedy_id, start=start, end=end)


@router.get("/statistics/patterns")
async def symptom_patterns(
    symptom_code: str = Query(..., alias="symptomCode", min_length=1),
    doctor_id: str = Depends(get_doctor_id),
    engine: ClassicalRuleEngine = Depends(get_engine),
) -> dict[str, Any]:
    patterns = await engine.outcome.find_symptom_remedy_patterns(symptom_code)
    return {"symptomCode": symptom_code, "patterns": patterns}
