from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from simillimum.engine.params import RuleEngineParams
from simillimum.engine.types import NormalizedCaseProfile, RubricCandidate, RubricRef
from simillimum.repertory.contracts import ReferenceRepo

log = logging.getLogger(__name__)


@dataclass
class _Hit:
    rubric: RubricRef
    codes: dict[str, None] = field(default_factory=dict)  # matched codes, first-hit order
    weight: float = 0.0  # summed over every matching mention


class RubricMapper:
    def __init__(self, repo: ReferenceRepo, params: RuleEngineParams) -> None:
        self.repo = repo
        self.params = params

    async def map_symptoms_to_rubrics(self, profile: NormalizedCaseProfile) -> list[RubricCandidate]:
        """Candidate rubrics for the case, most confident first.

        A rubric's confidence is the weight of the case symptoms it covers
        as a percentage of the weight of every symptom in the case.
        """
        symptoms = profile.all_symptoms()
        total_weight = sum(s.weight for s in symptoms)
        if total_weight <= 0:
            return []

        hits: dict[uuid.UUID, _Hit] = {}
        for symptom in symptoms:
            if not symptom.matched:
                continue
            terms = self.params.rubric_mapping.search_terms(symptom.name)
            for rubric in await self.repo.rubrics_for_symptom(symptom.code, terms):
                hit = hits.setdefault(rubric.id, _Hit(rubric=rubric))
                hit.codes.setdefault(symptom.code, None)
                hit.weight += symptom.weight

        threshold = self.params.rubric_mapping.auto_select_threshold
        candidates = []
        for hit in hits.values():
            confidence = min(100.0, hit.weight / total_weight * 100.0)
            candidates.append(
                RubricCandidate(
                    rubric_id=hit.rubric.id,
                    rubric_text=hit.rubric.rubric_text,
                    repertory_type=hit.rubric.repertory_type,
                    chapter=hit.rubric.chapter,
                    matched_symptoms=tuple(hit.codes),
                    confidence=confidence,
                    auto_selected=confidence >= threshold,
                )
            )
        # sorted() is stable, so ties keep first-hit order
        candidates = sorted(candidates, key=lambda c: c.confidence, reverse=True)
        log.info(
            "rubric mapping candidates=%d auto_selected=%d",
            len(candidates),
            sum(1 for c in candidates if c.auto_selected),
        )
        return candidates

    async def suggest_rubrics(self, symptom_code: str, repertory_type: str | None = None) -> list[dict[str, Any]]:
        rubrics = await self.repo.rubrics_for_symptom(symptom_code, (), repertory_type=repertory_type)
        out = [
            {
                "rubricId": str(r.id),
                "rubricText": r.rubric_text,
                "chapter": r.chapter,
                "repertoryType": r.repertory_type,
                "matchScore": len(r.linked_symptoms),
            }
            for r in rubrics
        ]
        return sorted(out, key=lambda d: d["matchScore"], reverse=True)


def select_rubric_ids(
    candidates: list[RubricCandidate], explicit: list[uuid.UUID] | None = None
) -> list[uuid.UUID]:
    """Rubrics handed to the repertory stage.

    Explicit ids win. Otherwise the auto-selected candidates are used, or
    every candidate when none reached the auto-select threshold.
    """
    if explicit:
        return list(dict.fromkeys(explicit))
    auto = [c.rubric_id for c in candidates if c.auto_selected]
    return auto or [c.rubric_id for c in candidates]
