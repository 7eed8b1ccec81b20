"""
Request models for the suggestion and case-record endpoints.

Field names follow the camelCase wire format through aliases; snake_case
names are accepted too.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from simillimum.engine.types import (
    HistoryEntry,
    ModalityType,
    OutcomeStatus,
    StructuredCase,
    SymptomMention,
)


class _Camel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ── Structured case ───────────────────────────────────────────────────────────

class SymptomMentionIn(_Camel):
    symptom_text: str = Field(..., alias="symptomText", min_length=1, max_length=500)
    weight: Optional[float] = Field(default=None, ge=0)
    location: Optional[str] = Field(default=None, max_length=200)
    sensation: Optional[str] = Field(default=None, max_length=200)
    type: Optional[Literal["better", "worse"]] = None

    def to_mention(self) -> SymptomMention:
        return SymptomMention(
            text=self.symptom_text,
            weight=self.weight,
            location=self.location,
            sensation=self.sensation,
            modality_type=ModalityType(self.type) if self.type else None,
        )


class StructuredCaseIn(_Camel):
    mental: list[SymptomMentionIn] = Field(default_factory=list)
    generals: list[SymptomMentionIn] = Field(default_factory=list)
    particulars: list[SymptomMentionIn] = Field(default_factory=list)
    modalities: list[SymptomMentionIn] = Field(default_factory=list)
    pathology_tags: list[str] = Field(default_factory=list, alias="pathologyTags")

    @field_validator("pathology_tags")
    @classmethod
    def strip_tags(cls, v: list[str]) -> list[str]:
        return [t.strip() for t in v if t and t.strip()]

    def to_case(self) -> StructuredCase:
        return StructuredCase(
            mental=tuple(m.to_mention() for m in self.mental),
            generals=tuple(m.to_mention() for m in self.generals),
            particulars=tuple(m.to_mention() for m in self.particulars),
            modalities=tuple(m.to_mention() for m in self.modalities),
            pathology_tags=tuple(self.pathology_tags),
        )


class HistoryItemIn(_Camel):
    remedy_id: str = Field(..., alias="remedyId", min_length=1)
    date: datetime

    def to_entry(self) -> HistoryEntry:
        return HistoryEntry(remedy_id=self.remedy_id, date=self.date)


class SuggestRequest(_Camel):
    """Outer envelope; ``patientId`` and ``structuredCase`` are checked by the
    router so that their absence is reported as a 400."""

    patient_id: Optional[str] = Field(default=None, alias="patientId")
    structured_case: Any = Field(default=None, alias="structuredCase")
    patient_history: list[HistoryItemIn] = Field(default_factory=list, alias="patientHistory")
    selected_rubric_ids: Optional[list[uuid.UUID]] = Field(default=None, alias="selectedRubricIds")


# ── Case record updates ───────────────────────────────────────────────────────

class FinalRemedyIn(_Camel):
    remedy_id: str = Field(..., alias="remedyId", min_length=1)
    remedy_name: str = Field(..., alias="remedyName", min_length=1)
    potency: str = Field(..., min_length=1, max_length=20)
    repetition: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=2048)

    def to_record(self) -> dict[str, Any]:
        out = {
            "remedyId": self.remedy_id,
            "remedyName": self.remedy_name,
            "potency": self.potency,
            "repetition": self.repetition,
        }
        if self.notes is not None:
            out["notes"] = self.notes
        return out


class DecisionRequest(_Camel):
    final_remedy: FinalRemedyIn = Field(..., alias="finalRemedy")


RECORDABLE_OUTCOMES = [s.value for s in OutcomeStatus if s is not OutcomeStatus.PENDING]


class OutcomeRequest(_Camel):
    outcome_status: Optional[str] = Field(default=None, alias="outcomeStatus")
    follow_up_notes: Optional[str] = Field(default=None, alias="followUpNotes", max_length=4096)
