"""
Classical homeopathy rule engine: structured case in, ranked remedies out.

    normalize case -> map rubrics -> build remedy pool -> score
        -> clinical filters -> contradiction check -> select -> persist

Every stage receives the same ``RuleEngineParams`` instance. One call of
:meth:`ClassicalRuleEngine.process_case` builds fresh transient state, so a
single engine may serve concurrent requests on separate sessions.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from simillimum.engine.case_engine import CaseEngine
from simillimum.engine.clinical import ClinicalIntelligence
from simillimum.engine.contradiction import Clock, ContradictionEngine, utcnow
from simillimum.engine.normalizer import SymptomNormalizer
from simillimum.engine.outcome import OutcomeLearningHook
from simillimum.engine.params import RuleEngineParams
from simillimum.engine.reasoning import present, summarize
from simillimum.engine.repertory import RepertoryEngine
from simillimum.engine.rubric_mapper import RubricMapper, select_rubric_ids
from simillimum.engine.scoring import ScoringEngine
from simillimum.engine.types import (
    HistoryEntry,
    NormalizedCaseProfile,
    RubricCandidate,
    SafetyCheckedRemedy,
    StructuredCase,
)
from simillimum.repertory.contracts import CaseRecordDTO, CaseRecordRepo, ReferenceRepo
from simillimum.repertory.repositories import SqlCaseRecordRepo, SqlReferenceRepo

log = logging.getLogger(__name__)


@dataclass
class CaseRun:
    profile: NormalizedCaseProfile
    candidates: list[RubricCandidate]
    selected: list[RubricCandidate]
    checked: list[SafetyCheckedRemedy]
    top_remedies: list[dict[str, Any]]
    summary: dict[str, int]
    record: CaseRecordDTO | None = None
    warnings: list[dict[str, Any]] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        return {
            "suggestions": {"topRemedies": self.top_remedies, "summary": self.summary},
            "caseRecordId": str(self.record.id) if self.record else None,
            "normalizedCase": self.profile.to_dict(),
            "rubricCandidates": [c.to_dict() for c in self.candidates],
        }


class ClassicalRuleEngine:
    def __init__(
        self,
        reference: ReferenceRepo,
        cases: CaseRecordRepo,
        params: RuleEngineParams,
        *,
        now: Clock = utcnow,
    ) -> None:
        self.reference = reference
        self.params = params
        self.normalizer = SymptomNormalizer(reference)
        self.case_engine = CaseEngine(self.normalizer, params)
        self.rubric_mapper = RubricMapper(reference, params)
        self.repertory = RepertoryEngine(reference)
        self.scoring = ScoringEngine(params)
        self.clinical = ClinicalIntelligence(params, self.scoring)
        self.contradiction = ContradictionEngine(params, self.scoring, now=now)
        self.outcome = OutcomeLearningHook(cases)

    @classmethod
    def for_session(
        cls, session: AsyncSession, params: RuleEngineParams, *, now: Clock = utcnow
    ) -> "ClassicalRuleEngine":
        return cls(SqlReferenceRepo(session), SqlCaseRecordRepo(session), params, now=now)

    async def _selection(
        self, candidates: list[RubricCandidate], explicit: Sequence[uuid.UUID] | None
    ) -> list[RubricCandidate]:
        ids = select_rubric_ids(candidates, list(explicit) if explicit else None)
        by_id = {c.rubric_id: c for c in candidates}
        selected = []
        for rid in ids:
            if rid in by_id:
                selected.append(by_id[rid])
                continue
            rubric = await self.reference.rubric_by_id(rid)
            if rubric is None:
                log.warning("selected rubric not found id=%s", rid)
                continue
            selected.append(
                RubricCandidate(
                    rubric_id=rubric.id,
                    rubric_text=rubric.rubric_text,
                    repertory_type=rubric.repertory_type,
                    chapter=rubric.chapter,
                    matched_symptoms=(),
                    confidence=0.0,
                    auto_selected=False,
                )
            )
        return selected

    async def process_case(
        self,
        doctor_id: str,
        patient_id: str,
        case: StructuredCase,
        *,
        history: Sequence[HistoryEntry] | None = None,
        selected_rubric_ids: Sequence[uuid.UUID] | None = None,
        persist: bool = True,
    ) -> CaseRun:
        profile = await self.case_engine.normalize_case(case)
        candidates = await self.rubric_mapper.map_symptoms_to_rubrics(profile)
        selected = await self._selection(candidates, selected_rubric_ids)

        rubric_ids = [c.rubric_id for c in selected]
        pool = await self.repertory.build_remedy_pool(rubric_ids)
        scored = self.scoring.calculate_scores(
            pool, profile, {c.rubric_id: c for c in selected}, len(rubric_ids)
        )
        adjusted = sorted(
            self.clinical.apply_clinical_filters(scored, profile),
            key=lambda s: s.final_score,
            reverse=True,
        )
        checked = sorted(
            self.contradiction.detect_contradictions(adjusted, history),
            key=lambda c: c.remedy.final_score,
            reverse=True,
        )

        chosen = self.scoring.select_suggestions(
            checked, key=lambda c: c.remedy.final_score, confidence=lambda c: c.remedy.confidence
        )
        top = [present(c, profile) for c in chosen]
        summary = summarize(len(checked), top)
        warnings = [w.to_dict() for c in checked for w in c.warnings]

        run = CaseRun(
            profile=profile,
            candidates=candidates,
            selected=selected,
            checked=checked,
            top_remedies=top,
            summary=summary,
            warnings=warnings,
        )
        if persist:
            run.record = await self.outcome.save_case_record(
                doctor_id,
                patient_id,
                normalized_case=profile.to_dict(),
                selected_rubrics=[
                    {
                        "rubricId": str(c.rubric_id),
                        "rubricText": c.rubric_text,
                        "repertoryType": c.repertory_type,
                        "autoSelected": c.auto_selected,
                    }
                    for c in selected
                ],
                engine_output={
                    "remedyScores": [c.remedy.to_dict() for c in checked],
                    "clinicalReasoning": "\n".join(
                        f"{t['remedy']['name']}: {t['clinicalReasoning']}" for t in top
                    ),
                    "warnings": warnings,
                },
            )
        log.info(
            "case processed rubrics=%d selected=%d remedies=%d suggested=%d",
            len(candidates),
            len(selected),
            len(checked),
            len(top),
        )
        return run
