"""
Load a repertory document (symptoms, rubrics, remedies, grades) into the
reference tables.

Document shape::

    {
      "symptoms":  [{"code", "name", "category", "synonyms": [...]}],
      "rubrics":   [{"key"?, "repertoryType", "chapter", "rubricText", "linkedSymptoms": [...]}],
      "remedies":  [{"name", "category", "constitutionTraits", "modalities": {"better", "worse"},
                     "clinicalIndications", "incompatibilities",
                     "materiaMedica": {"keynotes", "pathogenesis", "clinicalNotes"},
                     "supportedPotencies"}],
      "rubricRemedies": [{"rubric": <key or rubricText>, "remedy": <name>, "grade", "repertoryType"?}]
    }
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from simillimum.core.errors import ValidationError
from simillimum.engine.types import SymptomCategory
from simillimum.repertory import models
from simillimum.repertory.repositories import CLASSICAL

log = logging.getLogger(__name__)

_CATEGORIES = {c.value for c in SymptomCategory}


def read_reference_file(path: str | Path) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


async def load_reference_data(session: AsyncSession, payload: dict[str, Any]) -> dict[str, int]:
    """Insert every entity of ``payload``; returns per-collection counts.

    Raises ``ValidationError`` before writing anything when a grade is
    outside 1-4, a (rubric, remedy, repertory) triple repeats, or a grade
    points at an unknown rubric or remedy.
    """
    symptoms = payload.get("symptoms") or []
    rubrics = payload.get("rubrics") or []
    remedies = payload.get("remedies") or []
    grades = payload.get("rubricRemedies") or []

    for s in symptoms:
        if s.get("category") not in _CATEGORIES:
            raise ValidationError(f"Symptom {s.get('code')!r} has invalid category {s.get('category')!r}")
        if not s.get("code") or not s.get("name"):
            raise ValidationError("Symptom requires code and name")

    rubric_rows: dict[str, models.Rubric] = {}
    rubric_links: list[tuple[str, list[str]]] = []
    for r in rubrics:
        text = (r.get("rubricText") or "").strip()
        if not text:
            raise ValidationError("Rubric text must not be empty")
        key = r.get("key") or text
        if key in rubric_rows:
            raise ValidationError(f"Duplicate rubric key {key!r}")
        rubric_rows[key] = models.Rubric(
            repertory_type=r.get("repertoryType") or "kent",
            chapter=r.get("chapter") or "",
            rubric_text=text,
            modality=r.get("modality") or CLASSICAL,
        )
        rubric_links.append((key, _str_list(r.get("linkedSymptoms"))))

    remedy_rows: dict[str, models.Remedy] = {}
    for m in remedies:
        name = (m.get("name") or "").strip()
        if not name:
            raise ValidationError("Remedy requires a name")
        if name in remedy_rows:
            raise ValidationError(f"Duplicate remedy {name!r}")
        modalities = m.get("modalities") or {}
        mm = m.get("materiaMedica") or {}
        remedy_rows[name] = models.Remedy(
            name=name,
            category=m.get("category") or "",
            constitution_traits=_str_list(m.get("constitutionTraits")),
            modalities_better=_str_list(modalities.get("better")),
            modalities_worse=_str_list(modalities.get("worse")),
            clinical_indications=_str_list(m.get("clinicalIndications")),
            incompatibilities=_str_list(m.get("incompatibilities")),
            keynotes=_str_list(mm.get("keynotes")),
            pathogenesis=mm.get("pathogenesis") or "",
            clinical_notes=mm.get("clinicalNotes") or "",
            supported_potencies=_str_list(m.get("supportedPotencies")),
        )

    seen: set[tuple[str, str, str]] = set()
    grade_specs: list[tuple[str, str, int, str]] = []
    for g in grades:
        rubric_key, remedy_name = g.get("rubric"), g.get("remedy")
        if rubric_key not in rubric_rows:
            raise ValidationError(f"Grade references unknown rubric {rubric_key!r}")
        if remedy_name not in remedy_rows:
            raise ValidationError(f"Grade references unknown remedy {remedy_name!r}")
        try:
            grade = int(g.get("grade"))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Grade must be an integer, got {g.get('grade')!r}") from e
        if not 1 <= grade <= 4:
            raise ValidationError(f"Grade must be between 1 and 4, got {grade}")
        repertory = g.get("repertoryType") or rubric_rows[rubric_key].repertory_type
        triple = (rubric_key, remedy_name, repertory)
        if triple in seen:
            raise ValidationError(f"Duplicate grade for rubric {rubric_key!r}, remedy {remedy_name!r}, repertory {repertory!r}")
        seen.add(triple)
        grade_specs.append((rubric_key, remedy_name, grade, repertory))

    for s in symptoms:
        row = models.Symptom(
            code=s["code"],
            name=s["name"],
            category=s["category"],
            modality=s.get("modality") or CLASSICAL,
        )
        session.add(row)
        await session.flush()
        for syn in _str_list(s.get("synonyms")):
            session.add(models.SymptomSynonym(symptom_id=row.id, synonym=syn))

    session.add_all(rubric_rows.values())
    session.add_all(remedy_rows.values())
    await session.flush()

    for key, codes in rubric_links:
        for code in dict.fromkeys(codes):
            session.add(models.RubricSymptom(rubric_id=rubric_rows[key].id, symptom_code=code))

    for rubric_key, remedy_name, grade, repertory in grade_specs:
        session.add(
            models.RubricRemedy(
                rubric_id=rubric_rows[rubric_key].id,
                remedy_id=remedy_rows[remedy_name].id,
                grade=grade,
                repertory_type=repertory,
            )
        )
    await session.flush()

    counts = {
        "symptoms": len(symptoms),
        "rubrics": len(rubric_rows),
        "remedies": len(remedy_rows),
        "rubricRemedies": len(grade_specs),
    }
    log.info("reference data loaded %s", counts)
    return counts
