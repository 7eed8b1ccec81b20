from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, Sequence
from uuid import UUID

from simillimum.engine.types import (
    OutcomeStatus,
    RemedyRef,
    RubricRef,
    RubricRemedyRef,
    SymptomCategory,
    SymptomRef,
)


@dataclass(frozen=True)
class CaseRecordDTO:
    id: UUID
    doctor_id: str
    patient_id: str
    normalized_case: dict
    selected_rubrics: list
    engine_output: dict
    final_remedy: dict | None
    outcome_status: OutcomeStatus
    follow_up_notes: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def final_remedy_id(self) -> str | None:
        if not self.final_remedy:
            return None
        rid = self.final_remedy.get("remedyId")
        return str(rid) if rid is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "doctorId": self.doctor_id,
            "patientId": self.patient_id,
            "normalizedCase": self.normalized_case,
            "selectedRubrics": self.selected_rubrics,
            "engineOutput": self.engine_output,
            "finalRemedy": self.final_remedy,
            "outcomeStatus": self.outcome_status.value,
            "followUpNotes": self.follow_up_notes,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "pagination": {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages},
        }


class ReferenceRepo(Protocol):
    """Read-only access to symptoms, rubrics, remedies and their grades."""

    async def symptom_by_code(self, code: str) -> SymptomRef | None: ...
    async def symptom_by_name(self, name: str, category: SymptomCategory | None = None) -> SymptomRef | None: ...
    async def symptom_by_synonym(self, text: str, category: SymptomCategory | None = None) -> SymptomRef | None: ...
    async def search_symptoms(
        self, text: str, category: SymptomCategory | None = None, *, limit: int = 5
    ) -> list[SymptomRef]: ...

    async def rubrics_for_symptom(
        self, code: str, terms: Sequence[str], *, repertory_type: str | None = None
    ) -> list[RubricRef]: ...
    async def rubric_by_id(self, rubric_id: UUID) -> RubricRef | None: ...
    async def list_rubrics(
        self,
        *,
        chapter: str | None = None,
        search: str | None = None,
        repertory_type: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page: ...

    async def grades_for_rubrics(self, rubric_ids: Sequence[UUID]) -> list[RubricRemedyRef]: ...

    async def remedies_by_ids(self, remedy_ids: Sequence[UUID]) -> dict[UUID, RemedyRef]: ...
    async def remedy_by_id(self, remedy_id: UUID) -> RemedyRef | None: ...
    async def list_remedies(
        self, *, search: str | None = None, category: str | None = None, page: int = 1, limit: int = 50
    ) -> Page: ...


class CaseRecordRepo(Protocol):
    async def create(
        self,
        *,
        doctor_id: str,
        patient_id: str,
        normalized_case: dict,
        selected_rubrics: list,
        engine_output: dict,
    ) -> CaseRecordDTO: ...
    async def get(self, record_id: UUID) -> CaseRecordDTO | None: ...
    async def set_final_remedy(self, record_id: UUID, final_remedy: dict) -> CaseRecordDTO | None: ...
    async def set_outcome(
        self, record_id: UUID, status: OutcomeStatus, follow_up_notes: str | None
    ) -> CaseRecordDTO | None: ...
    async def list_for_patient(self, *, doctor_id: str, patient_id: str) -> list[CaseRecordDTO]: ...
    async def closed_for_remedy(
        self, remedy_id: str, *, start: datetime | None = None, end: datetime | None = None
    ) -> list[CaseRecordDTO]: ...
    async def improved_with_symptom(self, symptom_code: str) -> list[CaseRecordDTO]: ...
