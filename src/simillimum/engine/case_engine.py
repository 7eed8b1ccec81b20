from __future__ import annotations

import logging
from typing import Iterable

from simillimum.engine.normalizer import SymptomNormalizer
from simillimum.engine.params import ClinicalIntelligenceParams, RuleEngineParams
from simillimum.engine.types import (
    CaseSymptom,
    NormalizedCaseProfile,
    StructuredCase,
    SymptomCategory,
)

log = logging.getLogger(__name__)


def detect_framing(tags: Iterable[str], ci: ClinicalIntelligenceParams) -> tuple[bool, bool]:
    """Return ``(is_acute, is_chronic)``; both may be true."""
    lowered = [t.lower() for t in tags]
    is_acute = any(k in t for t in lowered for k in ci.acute_keywords)
    is_chronic = any(k in t for t in lowered for k in ci.chronic_keywords)
    return is_acute, is_chronic


class CaseEngine:
    def __init__(self, normalizer: SymptomNormalizer, params: RuleEngineParams) -> None:
        self.normalizer = normalizer
        self.params = params

    async def _category(self, case: StructuredCase, category: SymptomCategory) -> tuple[CaseSymptom, ...]:
        default_weight = self.params.scoring.weights.for_category(category)
        out = []
        for mention in case.mentions(category):
            hit = await self.normalizer.normalize(mention.text, category)
            out.append(
                CaseSymptom(
                    code=hit.code,
                    name=hit.name,
                    category=category,
                    weight=float(mention.weight) if mention.weight is not None else default_weight,
                    confidence=hit.confidence,
                    matched=hit.matched,
                    location=mention.location,
                    sensation=mention.sensation,
                    modality_type=mention.modality_type,
                )
            )
        return tuple(out)

    async def normalize_case(self, case: StructuredCase) -> NormalizedCaseProfile:
        is_acute, is_chronic = detect_framing(case.pathology_tags, self.params.clinical_intelligence)
        profile = NormalizedCaseProfile(
            mental=await self._category(case, SymptomCategory.MENTAL),
            generals=await self._category(case, SymptomCategory.GENERAL),
            particulars=await self._category(case, SymptomCategory.PARTICULAR),
            modalities=await self._category(case, SymptomCategory.MODALITY),
            pathology_tags=tuple(case.pathology_tags),
            is_acute=is_acute,
            is_chronic=is_chronic,
        )
        log.info(
            "case normalized mental=%d generals=%d particulars=%d modalities=%d unmatched=%d acute=%s chronic=%s",
            len(profile.mental),
            len(profile.generals),
            len(profile.particulars),
            len(profile.modalities),
            sum(1 for s in profile.all_symptoms() if not s.matched),
            is_acute,
            is_chronic,
        )
        return profile
