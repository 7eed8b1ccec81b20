from __future__ import annotations

import logging
from typing import Sequence

from simillimum.engine.params import RuleEngineParams
from simillimum.engine.scoring import ScoringEngine, any_intersect, intersects
from simillimum.engine.types import NormalizedCaseProfile, RemedyFinalScore, RemedyRef

log = logging.getLogger(__name__)

ACUTE = "acute"
CHRONIC_ONLY = "chronic only"
ACUTE_ONLY = "acute only"
CONSTITUTIONAL_CATEGORIES = {"mental", "constitutional"}


def has_indication(remedy: RemedyRef, tag: str) -> bool:
    return any(i.strip().lower() == tag for i in remedy.clinical_indications)


def mental_share(profile: NormalizedCaseProfile) -> float:
    """Mental symptoms as a percentage of mental, general and particular ones."""
    total = len(profile.mental) + len(profile.generals) + len(profile.particulars)
    return len(profile.mental) / total * 100.0 if total else 0.0


class ClinicalIntelligence:
    """Rescales scores for case framing; never drops or reorders remedies."""

    def __init__(self, params: RuleEngineParams, scoring: ScoringEngine | None = None) -> None:
        self.params = params
        self.scoring = scoring or ScoringEngine(params)

    def adjust(self, score: RemedyFinalScore, profile: NormalizedCaseProfile, share: float) -> float:
        ci = self.params.clinical_intelligence
        remedy = score.remedy
        value = score.final_score

        if profile.is_acute:
            if has_indication(remedy, ACUTE):
                value *= ci.acute.boost
            if has_indication(remedy, CHRONIC_ONLY):
                value *= ci.acute.penalty
        elif profile.is_chronic:
            if score.constitution_bonus > ci.chronic_constitution_threshold:
                value *= ci.chronic.boost
            if has_indication(remedy, ACUTE_ONLY):
                value *= ci.chronic.penalty

        md = ci.mental_dominance
        if share > md.threshold:
            if score.constitution_bonus > md.constitution_threshold:
                value *= md.boost
            mental_names = [s.name for s in profile.mental]
            if any(intersects(k, n) for k in remedy.keynotes for n in mental_names):
                value *= md.keynote_boost

        if any_intersect(profile.pathology_tags, remedy.clinical_indications):
            value += self.params.bonuses.pathology

        if (
            len(profile.mental) > len(profile.generals)
            and remedy.category.strip().lower() in CONSTITUTIONAL_CATEGORIES
        ):
            value *= ci.category_nudge

        return value

    def apply_clinical_filters(
        self, scored: Sequence[RemedyFinalScore], profile: NormalizedCaseProfile
    ) -> list[RemedyFinalScore]:
        share = mental_share(profile)
        out = [self.scoring.with_final_score(s, self.adjust(s, profile, share)) for s in scored]
        log.info(
            "clinical filters applied remedies=%d acute=%s chronic=%s mental_share=%.1f",
            len(out),
            profile.is_acute,
            profile.is_chronic,
            share,
        )
        return out
