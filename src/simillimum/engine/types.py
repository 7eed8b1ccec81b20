"""
Value types shared by every stage of the remedy suggestion pipeline.

Reference entities (symptoms, rubrics, remedies) are resolved once from the
repositories into the immutable ``*Ref`` types below; later stages never go
back to storage for them.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


# ----------------------------
# Enumerations
# ----------------------------

class SymptomCategory(str, Enum):
    MENTAL = "mental"
    GENERAL = "general"
    PARTICULAR = "particular"
    MODALITY = "modality"


class ModalityType(str, Enum):
    BETTER = "better"
    WORSE = "worse"


class MatchConfidence(str, Enum):
    """Normalizer match tier; ordered exact > high > medium > low."""

    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _MATCH_RANK[self]


_MATCH_RANK = {
    MatchConfidence.EXACT: 3,
    MatchConfidence.HIGH: 2,
    MatchConfidence.MEDIUM: 1,
    MatchConfidence.LOW: 0,
}


class ConfidenceLabel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class OutcomeStatus(str, Enum):
    PENDING = "pending"
    IMPROVED = "improved"
    NO_CHANGE = "no_change"
    WORSENED = "worsened"
    NOT_FOLLOWED = "not_followed"


class WarningType(str, Enum):
    CONTRADICTION = "contradiction"
    INCOMPATIBILITY = "incompatibility"
    REPETITION = "repetition"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ----------------------------
# Reference data
# ----------------------------

@dataclass(frozen=True)
class SymptomRef:
    id: uuid.UUID
    code: str
    name: str
    category: SymptomCategory
    synonyms: tuple[str, ...] = ()
    modality: str = "classical_homeopathy"


@dataclass(frozen=True)
class RubricRef:
    id: uuid.UUID
    repertory_type: str
    chapter: str
    rubric_text: str
    linked_symptoms: tuple[str, ...] = ()
    modality: str = "classical_homeopathy"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "repertoryType": self.repertory_type,
            "chapter": self.chapter,
            "rubricText": self.rubric_text,
            "linkedSymptoms": list(self.linked_symptoms),
        }


@dataclass(frozen=True)
class RemedyRef:
    id: uuid.UUID
    name: str
    category: str
    constitution_traits: tuple[str, ...] = ()
    modalities_better: tuple[str, ...] = ()
    modalities_worse: tuple[str, ...] = ()
    clinical_indications: tuple[str, ...] = ()
    incompatibilities: tuple[str, ...] = ()
    keynotes: tuple[str, ...] = ()
    pathogenesis: str = ""
    clinical_notes: str = ""
    supported_potencies: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "category": self.category,
            "constitutionTraits": list(self.constitution_traits),
            "modalities": {
                "better": list(self.modalities_better),
                "worse": list(self.modalities_worse),
            },
            "clinicalIndications": list(self.clinical_indications),
            "incompatibilities": list(self.incompatibilities),
            "materiaMedica": {
                "keynotes": list(self.keynotes),
                "pathogenesis": self.pathogenesis,
                "clinicalNotes": self.clinical_notes,
            },
            "supportedPotencies": list(self.supported_potencies),
        }


@dataclass(frozen=True)
class RubricRemedyRef:
    rubric_id: uuid.UUID
    remedy_id: uuid.UUID
    grade: int
    repertory_type: str


# ----------------------------
# Case input
# ----------------------------

@dataclass(frozen=True)
class SymptomMention:
    """One doctor-entered symptom: free text or a canonical code."""

    text: str
    weight: float | None = None
    location: str | None = None
    sensation: str | None = None
    modality_type: ModalityType | None = None


@dataclass(frozen=True)
class StructuredCase:
    mental: tuple[SymptomMention, ...] = ()
    generals: tuple[SymptomMention, ...] = ()
    particulars: tuple[SymptomMention, ...] = ()
    modalities: tuple[SymptomMention, ...] = ()
    pathology_tags: tuple[str, ...] = ()

    def mentions(self, category: SymptomCategory) -> tuple[SymptomMention, ...]:
        if category is SymptomCategory.MENTAL:
            return self.mental
        if category is SymptomCategory.GENERAL:
            return self.generals
        if category is SymptomCategory.PARTICULAR:
            return self.particulars
        if category is SymptomCategory.MODALITY:
            return self.modalities
        raise ValueError(f"Unknown symptom category: {category!r}")


# ----------------------------
# Normalizer output
# ----------------------------

UNMATCHED_PREFIX = "unmatched:"


@dataclass(frozen=True)
class SymptomMatch:
    code: str
    name: str
    confidence: MatchConfidence

    matched: ClassVar[bool] = True


@dataclass(frozen=True)
class UnmatchedSymptom:
    """Free text the reference data could not resolve; kept verbatim."""

    text: str

    matched: ClassVar[bool] = False
    confidence: ClassVar[MatchConfidence] = MatchConfidence.LOW

    @property
    def code(self) -> str:
        return f"{UNMATCHED_PREFIX}{self.text.strip().lower()}"

    @property
    def name(self) -> str:
        return self.text


NormalizedSymptom = SymptomMatch | UnmatchedSymptom


# ----------------------------
# Normalized case profile
# ----------------------------

@dataclass(frozen=True)
class CaseSymptom:
    code: str
    name: str
    category: SymptomCategory
    weight: float
    confidence: MatchConfidence = MatchConfidence.EXACT
    matched: bool = True
    location: str | None = None
    sensation: str | None = None
    modality_type: ModalityType | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "symptomCode": self.code,
            "symptomName": self.name,
            "category": self.category.value,
            "weight": self.weight,
            "confidence": self.confidence.value,
            "matched": self.matched,
        }
        if self.location is not None:
            out["location"] = self.location
        if self.sensation is not None:
            out["sensation"] = self.sensation
        if self.modality_type is not None:
            out["type"] = self.modality_type.value
        return out


@dataclass(frozen=True)
class NormalizedCaseProfile:
    mental: tuple[CaseSymptom, ...] = ()
    generals: tuple[CaseSymptom, ...] = ()
    particulars: tuple[CaseSymptom, ...] = ()
    modalities: tuple[CaseSymptom, ...] = ()
    pathology_tags: tuple[str, ...] = ()
    is_acute: bool = False
    is_chronic: bool = False

    def symptoms(self, category: SymptomCategory) -> tuple[CaseSymptom, ...]:
        if category is SymptomCategory.MENTAL:
            return self.mental
        if category is SymptomCategory.GENERAL:
            return self.generals
        if category is SymptomCategory.PARTICULAR:
            return self.particulars
        if category is SymptomCategory.MODALITY:
            return self.modalities
        raise ValueError(f"Unknown symptom category: {category!r}")

    def all_symptoms(self) -> tuple[CaseSymptom, ...]:
        return self.mental + self.generals + self.particulars + self.modalities

    def find(self, code: str) -> CaseSymptom | None:
        for symptom in self.all_symptoms():
            if symptom.code == code:
                return symptom
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mental": [s.to_dict() for s in self.mental],
            "generals": [s.to_dict() for s in self.generals],
            "particulars": [s.to_dict() for s in self.particulars],
            "modalities": [s.to_dict() for s in self.modalities],
            "pathologyTags": list(self.pathology_tags),
            "isAcute": self.is_acute,
            "isChronic": self.is_chronic,
        }


# ----------------------------
# Rubric mapping / repertory pool
# ----------------------------

@dataclass(frozen=True)
class RubricCandidate:
    rubric_id: uuid.UUID
    rubric_text: str
    repertory_type: str
    chapter: str
    matched_symptoms: tuple[str, ...]
    confidence: float
    auto_selected: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "rubricId": str(self.rubric_id),
            "rubricText": self.rubric_text,
            "repertoryType": self.repertory_type,
            "chapter": self.chapter,
            "matchedSymptoms": list(self.matched_symptoms),
            "confidence": round(self.confidence, 2),
            "autoSelected": self.auto_selected,
        }


@dataclass(frozen=True)
class RubricGrade:
    rubric_id: uuid.UUID
    grade: int
    repertory_type: str


@dataclass
class PoolEntry:
    remedy: RemedyRef
    rubric_grades: list[RubricGrade] = field(default_factory=list)
    total_base_score: int = 0

    @property
    def remedy_id(self) -> uuid.UUID:
        return self.remedy.id

    @property
    def remedy_name(self) -> str:
        return self.remedy.name


# ----------------------------
# Scored output
# ----------------------------

@dataclass(frozen=True)
class RemedyFinalScore:
    remedy: RemedyRef
    base_score: float
    constitution_bonus: float
    keynote_bonus: float
    modality_bonus: float
    pathology_support: float
    coverage_bonus: float
    final_score: float
    confidence: ConfidenceLabel
    matched_rubrics: tuple[str, ...] = ()
    matched_symptoms: tuple[str, ...] = ()
    contradiction_penalty: float = 0.0

    @property
    def remedy_id(self) -> uuid.UUID:
        return self.remedy.id

    @property
    def remedy_name(self) -> str:
        return self.remedy.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "remedyId": str(self.remedy.id),
            "remedyName": self.remedy.name,
            "finalScore": round(self.final_score, 4),
            "baseScore": round(self.base_score, 4),
            "constitutionBonus": self.constitution_bonus,
            "keynoteBonus": self.keynote_bonus,
            "modalityBonus": self.modality_bonus,
            "pathologySupport": self.pathology_support,
            "coverageBonus": self.coverage_bonus,
            "contradictionPenalty": self.contradiction_penalty,
            "matchedRubrics": list(self.matched_rubrics),
            "matchedSymptoms": list(self.matched_symptoms),
            "confidence": self.confidence.value,
        }


@dataclass(frozen=True)
class SafetyWarning:
    type: WarningType
    message: str
    severity: Severity
    remedy_id: uuid.UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "severity": self.severity.value,
            "remedyId": str(self.remedy_id) if self.remedy_id else None,
        }


@dataclass(frozen=True)
class SafetyCheckedRemedy:
    remedy: RemedyFinalScore
    warnings: tuple[SafetyWarning, ...] = ()
    penalty: float = 0.0


@dataclass(frozen=True)
class HistoryEntry:
    """A remedy previously given to the patient."""

    remedy_id: str
    date: datetime
