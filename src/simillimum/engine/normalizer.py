from __future__ import annotations

import logging
import re
from typing import Sequence

from simillimum.engine.types import (
    MatchConfidence,
    NormalizedSymptom,
    SymptomCategory,
    SymptomMatch,
    SymptomRef,
    UnmatchedSymptom,
)
from simillimum.repertory.contracts import ReferenceRepo

log = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^SYM_[A-Z0-9_]+$")
FUZZY_CANDIDATES = 5


def _match(ref: SymptomRef, confidence: MatchConfidence) -> SymptomMatch:
    return SymptomMatch(code=ref.code, name=ref.name, confidence=confidence)


class SymptomNormalizer:
    """Resolve doctor-entered symptom text to a canonical symptom.

    Lookups run in order and the first hit wins: stored code, exact name,
    synonym, then a substring search over names and synonyms. Text that
    resolves to nothing comes back as :class:`UnmatchedSymptom`.
    """

    def __init__(self, repo: ReferenceRepo) -> None:
        self.repo = repo

    async def normalize(self, text: str, category: SymptomCategory | None = None) -> NormalizedSymptom:
        cleaned = (text or "").strip()
        if not cleaned:
            return UnmatchedSymptom(text=text or "")

        if CODE_PATTERN.match(cleaned):
            ref = await self.repo.symptom_by_code(cleaned)
            if ref is not None:
                return _match(ref, MatchConfidence.EXACT)

        ref = await self.repo.symptom_by_name(cleaned, category)
        if ref is not None:
            return _match(ref, MatchConfidence.EXACT)

        ref = await self.repo.symptom_by_synonym(cleaned, category)
        if ref is not None:
            return _match(ref, MatchConfidence.HIGH)

        candidates = await self.repo.search_symptoms(cleaned, category, limit=FUZZY_CANDIDATES)
        if candidates:
            needle = cleaned.lower()
            best = next((c for c in candidates if needle in c.name.lower()), candidates[0])
            return _match(best, MatchConfidence.MEDIUM)

        log.debug("no symptom match category=%s", category.value if category else None)
        return UnmatchedSymptom(text=cleaned)

    async def normalize_many(
        self, texts: Sequence[str], category: SymptomCategory | None = None
    ) -> list[NormalizedSymptom]:
        return [await self.normalize(t, category) for t in texts]
