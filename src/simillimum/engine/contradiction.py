from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Sequence

from simillimum.engine.params import RuleEngineParams
from simillimum.engine.scoring import ScoringEngine
from simillimum.engine.types import (
    HistoryEntry,
    RemedyFinalScore,
    SafetyCheckedRemedy,
    SafetyWarning,
    Severity,
    WarningType,
)

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _refers_to(ref: str, score: RemedyFinalScore) -> bool:
    ref = ref.strip().lower()
    return ref == str(score.remedy.id).lower() or ref == score.remedy.name.strip().lower()


class ContradictionEngine:
    """Incompatibility and repetition checks over the candidate set.

    Only the remedy's own incompatibility list is consulted; a conflict
    declared solely on the other remedy is not reported for this one.
    """

    def __init__(
        self,
        params: RuleEngineParams,
        scoring: ScoringEngine | None = None,
        now: Clock = utcnow,
    ) -> None:
        self.params = params
        self.scoring = scoring or ScoringEngine(params)
        self.now = now

    def _incompatibility(
        self, score: RemedyFinalScore, candidates: Sequence[RemedyFinalScore]
    ) -> tuple[float, SafetyWarning | None]:
        declared = score.remedy.incompatibilities
        if not declared:
            return 0.0, None
        conflicts = [
            other.remedy.name
            for other in candidates
            if other.remedy.id != score.remedy.id and any(_refers_to(ref, other) for ref in declared)
        ]
        if not conflicts:
            return 0.0, None
        warning = SafetyWarning(
            type=WarningType.INCOMPATIBILITY,
            message=f"Incompatible with: {', '.join(conflicts)}",
            severity=Severity.HIGH,
            remedy_id=score.remedy.id,
        )
        return self.params.penalties.incompatibility, warning

    def _repetition(
        self, score: RemedyFinalScore, history: Sequence[HistoryEntry], now: datetime
    ) -> tuple[float, SafetyWarning | None]:
        uses = [h.date for h in history if _refers_to(h.remedy_id, score)]
        if not uses:
            return 0.0, None
        days = (now - _aware(max(uses, key=_aware))).days
        ru = self.params.penalties.recent_use
        if days <= ru.very_recent_days:
            return ru.very_recent, SafetyWarning(
                type=WarningType.REPETITION,
                message=f"This remedy was used {days} days ago. Consider waiting or using a different remedy.",
                severity=Severity.HIGH,
                remedy_id=score.remedy.id,
            )
        if days <= ru.recent_days:
            return ru.recent, SafetyWarning(
                type=WarningType.REPETITION,
                message=f"This remedy was used {days} days ago.",
                severity=Severity.MEDIUM,
                remedy_id=score.remedy.id,
            )
        if days <= ru.moderate_days:
            return ru.moderate, None
        return 0.0, None

    def detect_contradictions(
        self,
        scored: Sequence[RemedyFinalScore],
        history: Sequence[HistoryEntry] | None = None,
    ) -> list[SafetyCheckedRemedy]:
        now = _aware(self.now())
        results = []
        for score in scored:
            warnings = []
            penalty = 0.0

            amount, warning = self._incompatibility(score, scored)
            penalty += amount
            if warning is not None:
                warnings.append(warning)

            if history:
                amount, warning = self._repetition(score, history, now)
                penalty += amount
                if warning is not None:
                    warnings.append(warning)

            adjusted = self.scoring.with_final_score(
                score, score.final_score - penalty, contradiction_penalty=penalty
            )
            results.append(SafetyCheckedRemedy(remedy=adjusted, warnings=tuple(warnings), penalty=penalty))

        log.info(
            "contradiction check remedies=%d warnings=%d penalized=%d",
            len(results),
            sum(len(r.warnings) for r in results),
            sum(1 for r in results if r.penalty > 0),
        )
        return results
