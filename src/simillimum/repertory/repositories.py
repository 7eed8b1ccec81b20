from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import String, cast, exists, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from simillimum.engine.types import (
    OutcomeStatus,
    RemedyRef,
    RubricRef,
    RubricRemedyRef,
    SymptomCategory,
    SymptomRef,
)
from simillimum.repertory import models
from simillimum.repertory.contracts import CaseRecordDTO, CaseRecordRepo, Page, ReferenceRepo

CLASSICAL = "classical_homeopathy"


def _remedy_ref(row: models.Remedy) -> RemedyRef:
    return RemedyRef(
        id=row.id,
        name=row.name,
        category=row.category or "",
        constitution_traits=tuple(row.constitution_traits or ()),
        modalities_better=tuple(row.modalities_better or ()),
        modalities_worse=tuple(row.modalities_worse or ()),
        clinical_indications=tuple(row.clinical_indications or ()),
        incompatibilities=tuple(str(x) for x in (row.incompatibilities or ())),
        keynotes=tuple(row.keynotes or ()),
        pathogenesis=row.pathogenesis or "",
        clinical_notes=row.clinical_notes or "",
        supported_potencies=tuple(row.supported_potencies or ()),
    )


def _case_dto(row: models.CaseRecord) -> CaseRecordDTO:
    return CaseRecordDTO(
        id=row.id,
        doctor_id=row.doctor_id,
        patient_id=row.patient_id,
        normalized_case=row.normalized_case or {},
        selected_rubrics=row.selected_rubrics or [],
        engine_output=row.engine_output or {},
        final_remedy=row.final_remedy,
        outcome_status=OutcomeStatus(row.outcome_status),
        follow_up_notes=row.follow_up_notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlReferenceRepo(ReferenceRepo):
    def __init__(self, session: AsyncSession, *, modality: str = CLASSICAL) -> None:
        self._session = session
        self._modality = modality

    # ----------------------------
    # Symptoms
    # ----------------------------

    async def _symptom_refs(self, rows: Sequence[models.Symptom]) -> list[SymptomRef]:
        if not rows:
            return []
        ids = [r.id for r in rows]
        res = await self._session.execute(
            select(models.SymptomSynonym.symptom_id, models.SymptomSynonym.synonym)
            .where(models.SymptomSynonym.symptom_id.in_(ids))
            .order_by(models.SymptomSynonym.synonym)
        )
        synonyms: dict[UUID, list[str]] = defaultdict(list)
        for sid, syn in res:
            synonyms[sid].append(syn)
        return [
            SymptomRef(
                id=r.id,
                code=r.code,
                name=r.name,
                category=SymptomCategory(r.category),
                synonyms=tuple(synonyms.get(r.id, ())),
                modality=r.modality,
            )
            for r in rows
        ]

    def _symptoms(self, category: SymptomCategory | None):
        stmt = select(models.Symptom).where(models.Symptom.modality == self._modality)
        if category is not None:
            stmt = stmt.where(models.Symptom.category == category.value)
        return stmt

    async def _first_symptom(self, stmt) -> SymptomRef | None:
        row = (await self._session.execute(stmt.limit(1))).scalars().first()
        if row is None:
            return None
        return (await self._symptom_refs([row]))[0]

    async def symptom_by_code(self, code: str) -> SymptomRef | None:
        stmt = self._symptoms(None).where(models.Symptom.code == code)
        return await self._first_symptom(stmt)

    async def symptom_by_name(self, name: str, category: SymptomCategory | None = None) -> SymptomRef | None:
        stmt = (
            self._symptoms(category)
            .where(func.lower(models.Symptom.name) == name.strip().lower())
            .order_by(models.Symptom.code)
        )
        return await self._first_symptom(stmt)

    async def symptom_by_synonym(self, text: str, category: SymptomCategory | None = None) -> SymptomRef | None:
        stmt = (
            self._symptoms(category)
            .join(models.SymptomSynonym, models.SymptomSynonym.symptom_id == models.Symptom.id)
            .where(func.lower(models.SymptomSynonym.synonym) == text.strip().lower())
            .order_by(models.Symptom.code)
        )
        return await self._first_symptom(stmt)

    async def search_symptoms(
        self, text: str, category: SymptomCategory | None = None, *, limit: int = 5
    ) -> list[SymptomRef]:
        needle = text.strip().lower()
        if not needle:
            return []
        name = func.lower(models.Symptom.name)
        synonym_hit = exists().where(
            models.SymptomSynonym.symptom_id == models.Symptom.id,
            func.lower(models.SymptomSynonym.synonym).contains(needle, autoescape=True),
        )
        stmt = (
            self._symptoms(category)
            .where(
                or_(
                    name.contains(needle, autoescape=True),
                    literal(needle, String).contains(name),
                    synonym_hit,
                )
            )
            .order_by(models.Symptom.name, models.Symptom.code)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return await self._symptom_refs(rows)

    # ----------------------------
    # Rubrics
    # ----------------------------

    async def _rubric_refs(self, rows: Sequence[models.Rubric]) -> list[RubricRef]:
        if not rows:
            return []
        res = await self._session.execute(
            select(models.RubricSymptom.rubric_id, models.RubricSymptom.symptom_code)
            .where(models.RubricSymptom.rubric_id.in_([r.id for r in rows]))
            .order_by(models.RubricSymptom.symptom_code)
        )
        links: dict[UUID, list[str]] = defaultdict(list)
        for rid, code in res:
            links[rid].append(code)
        return [
            RubricRef(
                id=r.id,
                repertory_type=r.repertory_type,
                chapter=r.chapter,
                rubric_text=r.rubric_text,
                linked_symptoms=tuple(links.get(r.id, ())),
                modality=r.modality,
            )
            for r in rows
        ]

    async def rubrics_for_symptom(
        self, code: str, terms: Sequence[str], *, repertory_type: str | None = None
    ) -> list[RubricRef]:
        linked = select(models.RubricSymptom.rubric_id).where(models.RubricSymptom.symptom_code == code)
        text = func.lower(models.Rubric.rubric_text)
        conditions = [models.Rubric.id.in_(linked)]
        conditions.extend(text.contains(t.lower(), autoescape=True) for t in terms if t)
        stmt = (
            select(models.Rubric)
            .where(models.Rubric.modality == self._modality, or_(*conditions))
            .order_by(models.Rubric.chapter, models.Rubric.rubric_text, models.Rubric.id)
        )
        if repertory_type:
            stmt = stmt.where(models.Rubric.repertory_type == repertory_type)
        rows = (await self._session.execute(stmt)).scalars().all()
        return await self._rubric_refs(rows)

    async def rubric_by_id(self, rubric_id: UUID) -> RubricRef | None:
        row = await self._session.get(models.Rubric, rubric_id)
        if row is None:
            return None
        return (await self._rubric_refs([row]))[0]

    async def list_rubrics(
        self,
        *,
        chapter: str | None = None,
        search: str | None = None,
        repertory_type: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page:
        stmt = select(models.Rubric).where(models.Rubric.modality == self._modality)
        if chapter:
            stmt = stmt.where(func.lower(models.Rubric.chapter) == chapter.lower())
        if search:
            stmt = stmt.where(func.lower(models.Rubric.rubric_text).contains(search.lower(), autoescape=True))
        if repertory_type:
            stmt = stmt.where(models.Rubric.repertory_type == repertory_type)

        total = (await self._session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
        rows = (
            await self._session.execute(
                stmt.order_by(models.Rubric.chapter, models.Rubric.rubric_text)
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).scalars().all()
        return Page(items=await self._rubric_refs(rows), total=int(total), page=page, limit=limit)

    # ----------------------------
    # Grades and remedies
    # ----------------------------

    async def grades_for_rubrics(self, rubric_ids: Sequence[UUID]) -> list[RubricRemedyRef]:
        if not rubric_ids:
            return []
        order = {rid: i for i, rid in enumerate(rubric_ids)}
        res = await self._session.execute(
            select(
                models.RubricRemedy.rubric_id,
                models.RubricRemedy.remedy_id,
                models.RubricRemedy.grade,
                models.RubricRemedy.repertory_type,
            ).where(models.RubricRemedy.rubric_id.in_(list(order)))
        )
        rows = [RubricRemedyRef(rubric_id=r.rubric_id, remedy_id=r.remedy_id, grade=r.grade, repertory_type=r.repertory_type) for r in res]
        rows.sort(key=lambda g: (order[g.rubric_id], -g.grade, str(g.remedy_id), g.repertory_type))
        return rows

    async def remedies_by_ids(self, remedy_ids: Sequence[UUID]) -> dict[UUID, RemedyRef]:
        if not remedy_ids:
            return {}
        rows = (
            await self._session.execute(select(models.Remedy).where(models.Remedy.id.in_(list(remedy_ids))))
        ).scalars().all()
        return {r.id: _remedy_ref(r) for r in rows}

    async def remedy_by_id(self, remedy_id: UUID) -> RemedyRef | None:
        row = await self._session.get(models.Remedy, remedy_id)
        return _remedy_ref(row) if row is not None else None

    async def list_remedies(
        self, *, search: str | None = None, category: str | None = None, page: int = 1, limit: int = 50
    ) -> Page:
        stmt = select(models.Remedy)
        if search:
            stmt = stmt.where(func.lower(models.Remedy.name).contains(search.lower(), autoescape=True))
        if category:
            stmt = stmt.where(func.lower(models.Remedy.category) == category.lower())

        total = (await self._session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
        rows = (
            await self._session.execute(
                stmt.order_by(models.Remedy.name).offset((page - 1) * limit).limit(limit)
            )
        ).scalars().all()
        return Page(items=[_remedy_ref(r) for r in rows], total=int(total), page=page, limit=limit)


class SqlCaseRecordRepo(CaseRecordRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        doctor_id: str,
        patient_id: str,
        normalized_case: dict,
        selected_rubrics: list,
        engine_output: dict,
    ) -> CaseRecordDTO:
        row = models.CaseRecord(
            doctor_id=doctor_id,
            patient_id=patient_id,
            normalized_case=normalized_case,
            selected_rubrics=selected_rubrics,
            engine_output=engine_output,
            final_remedy=None,
            outcome_status=OutcomeStatus.PENDING.value,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _case_dto(row)

    async def get(self, record_id: UUID) -> CaseRecordDTO | None:
        row = await self._session.get(models.CaseRecord, record_id)
        return _case_dto(row) if row is not None else None

    async def set_final_remedy(self, record_id: UUID, final_remedy: dict) -> CaseRecordDTO | None:
        row = await self._session.get(models.CaseRecord, record_id)
        if row is None:
            return None
        row.final_remedy = final_remedy
        rid = final_remedy.get("remedyId")
        row.final_remedy_id = str(rid) if rid is not None else None
        await self._session.flush()
        await self._session.refresh(row)
        return _case_dto(row)

    async def set_outcome(
        self, record_id: UUID, status: OutcomeStatus, follow_up_notes: str | None
    ) -> CaseRecordDTO | None:
        row = await self._session.get(models.CaseRecord, record_id)
        if row is None:
            return None
        row.outcome_status = status.value
        if follow_up_notes is not None:
            row.follow_up_notes = follow_up_notes
        await self._session.flush()
        await self._session.refresh(row)
        return _case_dto(row)

    async def list_for_patient(self, *, doctor_id: str, patient_id: str) -> list[CaseRecordDTO]:
        stmt = (
            select(models.CaseRecord)
            .where(models.CaseRecord.doctor_id == doctor_id, models.CaseRecord.patient_id == patient_id)
            .order_by(models.CaseRecord.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_case_dto(r) for r in rows]

    async def closed_for_remedy(
        self, remedy_id: str, *, start: datetime | None = None, end: datetime | None = None
    ) -> list[CaseRecordDTO]:
        stmt = select(models.CaseRecord).where(
            models.CaseRecord.final_remedy_id == str(remedy_id),
            models.CaseRecord.outcome_status != OutcomeStatus.PENDING.value,
        )
        if start is not None:
            stmt = stmt.where(models.CaseRecord.created_at >= start)
        if end is not None:
            stmt = stmt.where(models.CaseRecord.created_at <= end)
        rows = (await self._session.execute(stmt.order_by(models.CaseRecord.created_at))).scalars().all()
        return [_case_dto(r) for r in rows]

    async def improved_with_symptom(self, symptom_code: str) -> list[CaseRecordDTO]:
        # text match on the stored JSON narrows the rows; callers check the section
        stmt = (
            select(models.CaseRecord)
            .where(
                models.CaseRecord.outcome_status == OutcomeStatus.IMPROVED.value,
                models.CaseRecord.final_remedy_id.is_not(None),
                cast(models.CaseRecord.normalized_case, String).contains(f'"{symptom_code}"', autoescape=True),
            )
            .order_by(models.CaseRecord.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_case_dto(r) for r in rows]
