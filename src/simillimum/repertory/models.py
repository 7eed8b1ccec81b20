from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from simillimum.repertory.orm_base import Base, JsonType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Symptom(Base):
    __tablename__ = "symptoms"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String(120), nullable=False)
    name: Mapped[str] = mapped_column(String(250), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    modality: Mapped[str] = mapped_column(String(60), nullable=False, default="classical_homeopathy")

    __table_args__ = (
        UniqueConstraint("code", "modality", name="uq_symptoms_code_modality"),
        CheckConstraint(
            "category IN ('mental', 'general', 'particular', 'modality')",
            name="chk_symptoms_category",
        ),
    )


class SymptomSynonym(Base):
    __tablename__ = "symptom_synonyms"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    symptom_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("symptoms.id", ondelete="CASCADE"), nullable=False, index=True)
    synonym: Mapped[str] = mapped_column(String(250), nullable=False)


class Rubric(Base):
    __tablename__ = "rubrics"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    repertory_type: Mapped[str] = mapped_column(String(60), nullable=False, index=True)
    chapter: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    rubric_text: Mapped[str] = mapped_column(Text, nullable=False)
    modality: Mapped[str] = mapped_column(String(60), nullable=False, default="classical_homeopathy")

    __table_args__ = (CheckConstraint("length(rubric_text) > 0", name="chk_rubrics_nonempty_text"),)


class RubricSymptom(Base):
    """Link from a rubric to the canonical symptom codes it covers."""

    __tablename__ = "rubric_symptoms"

    rubric_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("rubrics.id", ondelete="CASCADE"), primary_key=True)
    symptom_code: Mapped[str] = mapped_column(String(120), primary_key=True)

    __table_args__ = (Index("ix_rubric_symptoms_code", "symptom_code"),)


class Remedy(Base):
    __tablename__ = "remedies"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(80), nullable=False, default="")

    constitution_traits: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    modalities_better: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    modalities_worse: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    clinical_indications: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    incompatibilities: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    keynotes: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    supported_potencies: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)

    pathogenesis: Mapped[str] = mapped_column(Text, nullable=False, default="")
    clinical_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")


class RubricRemedy(Base):
    __tablename__ = "rubric_remedies"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    rubric_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("rubrics.id", ondelete="CASCADE"), nullable=False, index=True)
    remedy_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("remedies.id", ondelete="CASCADE"), nullable=False, index=True)
    grade: Mapped[int] = mapped_column(Integer, nullable=False)
    repertory_type: Mapped[str] = mapped_column(String(60), nullable=False)

    __table_args__ = (
        UniqueConstraint("rubric_id", "remedy_id", "repertory_type", name="uq_rubric_remedy_repertory"),
        CheckConstraint("grade BETWEEN 1 AND 4", name="chk_rubric_remedies_grade_range"),
    )


class CaseRecord(Base):
    __tablename__ = "case_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    doctor_id: Mapped[str] = mapped_column(String(120), nullable=False)
    patient_id: Mapped[str] = mapped_column(String(120), nullable=False)

    normalized_case: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)
    selected_rubrics: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    engine_output: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)

    final_remedy: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    final_remedy_id: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)

    outcome_status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    follow_up_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_case_records_doctor_patient", "doctor_id", "patient_id", "created_at"),
        CheckConstraint(
            "outcome_status IN ('pending', 'improved', 'no_change', 'worsened', 'not_followed')",
            name="chk_case_records_outcome_status",
        ),
    )
