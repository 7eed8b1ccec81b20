"""
Remedy scoring.

    final = base + constitution (traits + keynotes) + modality + pathology + coverage

``base`` is the sum of ``grade * grade_multiplier[grade]`` over every rubric
grade the remedy holds in the pool. All weights come from ``RuleEngineParams``.
"""
from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from simillimum.engine.params import RuleEngineParams
from simillimum.engine.types import (
    ConfidenceLabel,
    ModalityType,
    NormalizedCaseProfile,
    PoolEntry,
    RemedyFinalScore,
    RemedyRef,
    RubricCandidate,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


def _final_score(item: Any) -> float:
    return item.final_score


def _confidence(item: Any) -> ConfidenceLabel | None:
    return getattr(item, "confidence", None)


def intersects(a: str, b: str) -> bool:
    """Case-insensitive containment in either direction."""
    a, b = a.strip().lower(), b.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def any_intersect(values: Iterable[str], names: Sequence[str]) -> bool:
    return any(intersects(v, n) for v in values for n in names)


class ScoringEngine:
    def __init__(self, params: RuleEngineParams) -> None:
        self.params = params

    # ----------------------------
    # Components
    # ----------------------------

    def base_score(self, entry: PoolEntry) -> float:
        scoring = self.params.scoring
        return sum(g.grade * scoring.grade_multiplier(g.grade) for g in entry.rubric_grades)

    def trait_bonus(self, remedy: RemedyRef, profile: NormalizedCaseProfile) -> float:
        cb = self.params.bonuses.constitution
        mental = [s.name for s in profile.mental]
        generals = [s.name for s in profile.generals]
        bonus = 0.0
        for trait in remedy.constitution_traits:
            in_mental = any(intersects(trait, n) for n in mental)
            in_general = any(intersects(trait, n) for n in generals)
            if in_mental:
                bonus += cb.mental
            if in_general:
                bonus += cb.physical
            if in_mental or in_general:
                bonus += cb.emotional
        return bonus

    def keynote_bonus(self, remedy: RemedyRef, profile: NormalizedCaseProfile) -> float:
        names = [s.name for s in profile.mental + profile.generals + profile.particulars]
        hits = sum(1 for k in remedy.keynotes if any(intersects(k, n) for n in names))
        return hits * self.params.bonuses.keynote

    def modality_bonus(self, remedy: RemedyRef, profile: NormalizedCaseProfile) -> float:
        mb = self.params.bonuses.modality
        bonus = 0.0
        for m in profile.modalities:
            if m.modality_type is ModalityType.WORSE and any(intersects(m.name, w) for w in remedy.modalities_worse):
                bonus += mb.worse
            elif m.modality_type is ModalityType.BETTER and any(intersects(m.name, b) for b in remedy.modalities_better):
                bonus += mb.better
        return bonus

    def pathology_support(self, remedy: RemedyRef, profile: NormalizedCaseProfile) -> float:
        if any_intersect(profile.pathology_tags, remedy.clinical_indications):
            return self.params.bonuses.pathology
        return 0.0

    def coverage_bonus(self, matched_rubrics: int, selected_rubrics: int) -> float:
        if selected_rubrics <= 0:
            return 0.0
        cov = self.params.bonuses.coverage
        ratio = matched_rubrics / selected_rubrics
        if ratio > cov.high_ratio:
            return cov.high
        if ratio > cov.medium_ratio:
            return cov.medium
        return 0.0

    def confidence_label(self, score: float, rubric_count: int = 0) -> ConfidenceLabel:
        th = self.params.confidence
        if score >= th.very_high:
            label = ConfidenceLabel.VERY_HIGH
        elif score >= th.high:
            label = ConfidenceLabel.HIGH
        elif score >= th.medium:
            label = ConfidenceLabel.MEDIUM
        else:
            label = ConfidenceLabel.LOW
        if label is ConfidenceLabel.MEDIUM and rubric_count >= th.rubric_promotion_count:
            label = ConfidenceLabel.HIGH
        return label

    def with_final_score(self, score: RemedyFinalScore, final_score: float, **changes) -> RemedyFinalScore:
        """Copy of ``score`` with a new final score and a recomputed label."""
        return dataclasses.replace(
            score,
            final_score=final_score,
            confidence=self.confidence_label(final_score, len(score.matched_rubrics)),
            **changes,
        )

    # ----------------------------
    # Pool scoring
    # ----------------------------

    def calculate_scores(
        self,
        pool: Mapping[uuid.UUID, PoolEntry],
        profile: NormalizedCaseProfile,
        rubrics: Mapping[uuid.UUID, RubricCandidate] | None = None,
        selected_count: int | None = None,
    ) -> list[RemedyFinalScore]:
        rubrics = rubrics or {}
        if selected_count is None:
            selected_count = len(rubrics)

        scored = []
        for entry in pool.values():
            remedy = entry.remedy
            rubric_ids = list(dict.fromkeys(g.rubric_id for g in entry.rubric_grades))
            matched_rubrics = tuple(
                rubrics[r].rubric_text if r in rubrics else str(r) for r in rubric_ids
            )
            matched_symptoms = tuple(
                dict.fromkeys(code for r in rubric_ids if r in rubrics for code in rubrics[r].matched_symptoms)
            )

            base = self.base_score(entry)
            keynote = self.keynote_bonus(remedy, profile)
            constitution = self.trait_bonus(remedy, profile) + keynote
            modality = self.modality_bonus(remedy, profile)
            pathology = self.pathology_support(remedy, profile)
            coverage = self.coverage_bonus(len(rubric_ids), selected_count)
            final = base + constitution + modality + pathology + coverage

            scored.append(
                RemedyFinalScore(
                    remedy=remedy,
                    base_score=base,
                    constitution_bonus=constitution,
                    keynote_bonus=keynote,
                    modality_bonus=modality,
                    pathology_support=pathology,
                    coverage_bonus=coverage,
                    final_score=final,
                    confidence=self.confidence_label(final, len(rubric_ids)),
                    matched_rubrics=matched_rubrics,
                    matched_symptoms=matched_symptoms,
                )
            )

        scored.sort(key=lambda s: s.final_score, reverse=True)
        log.info("scored remedies=%d top=%.2f", len(scored), scored[0].final_score if scored else 0.0)
        return scored

    # ----------------------------
    # Suggestion filtering
    # ----------------------------

    def suggestion_limit(self, scores: Sequence[float]) -> int:
        """How many of the descending ``scores`` to present."""
        sp = self.params.scoring
        limit = sp.max_suggestions
        if len(scores) >= 2 and scores[0] > 0:
            gap = (scores[0] - scores[1]) / scores[0] * 100.0
            if gap > sp.score_gap_thresholds.large:
                limit = min(limit, 2)
            elif gap > sp.score_gap_thresholds.medium:
                limit = min(limit, 3)
        return limit

    def select_suggestions(
        self,
        items: Sequence[T],
        key: Callable[[T], float] = _final_score,
        confidence: Callable[[T], ConfidenceLabel | None] = _confidence,
    ) -> list[T]:
        """Suggestions to present, best first.

        Items under the minimum score are dropped, and so are low-confidence
        ones while anything better qualifies; the score gap then decides how
        many remain. When nothing reaches the minimum the top
        ``fallback_suggestions`` are returned anyway for the doctor to weigh.
        """
        sp = self.params.scoring
        ranked = sorted(items, key=key, reverse=True)
        qualified = [i for i in ranked if key(i) >= sp.minimum_score]
        if not qualified:
            return ranked[: sp.fallback_suggestions]
        confident = [i for i in qualified if confidence(i) is not ConfidenceLabel.LOW]
        shown = confident or qualified
        return shown[: self.suggestion_limit([key(i) for i in shown])]
