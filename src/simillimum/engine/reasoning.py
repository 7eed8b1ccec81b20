from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from simillimum.engine.scoring import intersects
from simillimum.engine.types import (
    ConfidenceLabel,
    NormalizedCaseProfile,
    RemedyFinalScore,
    SafetyCheckedRemedy,
)

tpl_dir = Path(__file__).parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(tpl_dir)),
    autoescape=False,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)
env.filters["num"] = lambda v: f"{v:g}" if isinstance(v, (int, float)) else v


@dataclass(frozen=True)
class PotencySuggestion:
    potency: str
    repetition: str


def suggest_potency(final_score: float, is_acute: bool) -> PotencySuggestion:
    if is_acute:
        if final_score >= 80:
            return PotencySuggestion("200C", "Every 1-2 hours")
        if final_score >= 50:
            return PotencySuggestion("30C", "Every 2-4 hours")
        return PotencySuggestion("6C", "Every 4-6 hours")
    if final_score >= 80:
        return PotencySuggestion("200C", "Once daily")
    if final_score >= 60:
        return PotencySuggestion("30C", "Twice daily")
    return PotencySuggestion("6C", "Three times daily")


def mental_keynotes(score: RemedyFinalScore, profile: NormalizedCaseProfile) -> list[str]:
    names = [s.name for s in profile.mental]
    return [k for k in score.remedy.keynotes if any(intersects(k, n) for n in names)]


def clinical_reasoning(score: RemedyFinalScore, profile: NormalizedCaseProfile) -> str:
    text = env.get_template("clinical_reasoning.j2").render(
        s=score,
        pathology_tags=list(profile.pathology_tags),
        mental_keynotes=mental_keynotes(score, profile),
    )
    return ". ".join(line.strip() for line in text.splitlines() if line.strip())


def present(checked: SafetyCheckedRemedy, profile: NormalizedCaseProfile) -> dict[str, Any]:
    score = checked.remedy
    potency = suggest_potency(score.final_score, profile.is_acute)
    return {
        "remedy": {
            "id": str(score.remedy.id),
            "name": score.remedy.name,
            "category": score.remedy.category or "Unknown",
        },
        "matchScore": round(score.final_score, 4),
        "confidence": score.confidence.value,
        "score": score.to_dict(),
        "matchedSymptoms": list(score.matched_symptoms),
        "matchedRubrics": list(score.matched_rubrics),
        "clinicalReasoning": clinical_reasoning(score, profile),
        "suggestedPotency": potency.potency,
        "repetition": potency.repetition,
        "warnings": [w.to_dict() for w in checked.warnings],
    }


def summarize(evaluated: int, top: Sequence[dict[str, Any]]) -> dict[str, int]:
    strong = {ConfidenceLabel.HIGH.value, ConfidenceLabel.VERY_HIGH.value}
    return {
        "totalRemedies": evaluated,
        "highConfidence": sum(1 for t in top if t["confidence"] in strong),
        "warnings": sum(len(t["warnings"]) for t in top),
    }
