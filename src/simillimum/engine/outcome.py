from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

import pandas as pd

from simillimum.core.errors import NotFoundError
from simillimum.engine.types import OutcomeStatus
from simillimum.repertory.contracts import CaseRecordDTO, CaseRecordRepo

log = logging.getLogger(__name__)

_STATUS_KEYS = {
    OutcomeStatus.IMPROVED: "improved",
    OutcomeStatus.NO_CHANGE: "noChange",
    OutcomeStatus.WORSENED: "worsened",
    OutcomeStatus.NOT_FOLLOWED: "notFollowed",
}


def _mentions_mental_code(record: CaseRecordDTO, symptom_code: str) -> bool:
    mental = (record.normalized_case or {}).get("mental") or []
    return any(isinstance(s, dict) and s.get("symptomCode") == symptom_code for s in mental)


class OutcomeLearningHook:
    """Persists engine runs and reads them back as outcome statistics."""

    def __init__(self, repo: CaseRecordRepo) -> None:
        self.repo = repo

    async def save_case_record(
        self,
        doctor_id: str,
        patient_id: str,
        *,
        normalized_case: dict,
        selected_rubrics: list,
        engine_output: dict,
    ) -> CaseRecordDTO:
        record = await self.repo.create(
            doctor_id=doctor_id,
            patient_id=patient_id,
            normalized_case=normalized_case,
            selected_rubrics=selected_rubrics,
            engine_output=engine_output,
        )
        log.info("case record saved id=%s remedies=%d", record.id, len(engine_output.get("remedyScores") or []))
        return record

    async def get_case_record(self, record_id: uuid.UUID) -> CaseRecordDTO:
        record = await self.repo.get(record_id)
        if record is None:
            raise NotFoundError(f"Case record {record_id} not found")
        return record

    async def update_doctor_decision(self, record_id: uuid.UUID, final_remedy: dict[str, Any]) -> CaseRecordDTO:
        record = await self.repo.set_final_remedy(record_id, final_remedy)
        if record is None:
            raise NotFoundError(f"Case record {record_id} not found")
        log.info("doctor decision recorded", extra={"fields": {"case_id": str(record_id)}})
        return record

    async def update_outcome(
        self, record_id: uuid.UUID, status: OutcomeStatus, follow_up_notes: str | None = None
    ) -> CaseRecordDTO:
        # any status may follow any other
        record = await self.repo.set_outcome(record_id, status, follow_up_notes)
        if record is None:
            raise NotFoundError(f"Case record {record_id} not found")
        log.info("outcome recorded", extra={"fields": {"case_id": str(record_id), "status": status.value}})
        return record

    async def list_patient_cases(self, doctor_id: str, patient_id: str) -> list[CaseRecordDTO]:
        return await self.repo.list_for_patient(doctor_id=doctor_id, patient_id=patient_id)

    async def calculate_success_rate(
        self,
        remedy_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, Any]:
        records = await self.repo.closed_for_remedy(str(remedy_id), start=start, end=end)
        df = pd.DataFrame({"status": [r.outcome_status.value for r in records]}, dtype="object")
        counts = df["status"].value_counts() if not df.empty else pd.Series(dtype="int64")

        out: dict[str, Any] = {"remedyId": str(remedy_id), "totalCases": int(len(df))}
        for status, key in _STATUS_KEYS.items():
            out[key] = int(counts.get(status.value, 0))
        out["successRate"] = round(out["improved"] / len(df) * 100.0, 2) if len(df) else 0.0
        return out

    async def find_symptom_remedy_patterns(self, symptom_code: str) -> list[dict[str, Any]]:
        records = [
            r
            for r in await self.repo.improved_with_symptom(symptom_code)
            if r.final_remedy and _mentions_mental_code(r, symptom_code)
        ]
        if not records:
            return []

        df = pd.DataFrame(
            {
                "remedyId": [r.final_remedy_id for r in records],
                "remedyName": [r.final_remedy.get("remedyName", "") for r in records],
            }
        )
        freq = (
            df.groupby("remedyId", sort=False)
            .agg(remedyName=("remedyName", "first"), frequency=("remedyId", "size"))
            .reset_index()
            .sort_values(["frequency", "remedyName"], ascending=[False, True], kind="stable")
        )

        patterns = []
        for row in freq.itertuples(index=False):
            rate = await self.calculate_success_rate(row.remedyId)
            patterns.append(
                {
                    "remedyId": row.remedyId,
                    "remedyName": row.remedyName,
                    "frequency": int(row.frequency),
                    "successRate": rate["successRate"],
                }
            )
        return patterns
