"""
Tunable weights, bonuses, penalties and thresholds of the rule engine.

``RuleEngineParams`` is an immutable value handed to each engine at
construction time. Defaults reproduce the shipped ``rule_engine_config.json``;
``load_params`` overlays any JSON file on top of them.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, Tuple

from simillimum.engine.types import SymptomCategory

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "rule_engine_config.json"


def _grade_multipliers() -> Dict[int, float]:
    return {4: 1.5, 3: 1.2, 2: 1.0, 1: 0.8}


@dataclass(frozen=True)
class CategoryWeights:
    mental: float = 3.0
    general: float = 2.0
    particular: float = 1.0
    modality: float = 1.5

    def for_category(self, category: SymptomCategory) -> float:
        if category is SymptomCategory.MENTAL:
            return self.mental
        if category is SymptomCategory.GENERAL:
            return self.general
        if category is SymptomCategory.PARTICULAR:
            return self.particular
        if category is SymptomCategory.MODALITY:
            return self.modality
        raise ValueError(f"Unknown symptom category: {category!r}")


@dataclass(frozen=True)
class ScoreGapThresholds:
    large: float = 50.0   # gap % above which only the top 2 are shown
    medium: float = 30.0  # gap % above which only the top 3 are shown


@dataclass(frozen=True)
class ScoringParams:
    weights: CategoryWeights = field(default_factory=CategoryWeights)
    minimum_score: float = 30.0
    max_suggestions: int = 5
    fallback_suggestions: int = 3  # shown when nothing reaches minimum_score
    score_gap_thresholds: ScoreGapThresholds = field(default_factory=ScoreGapThresholds)
    grade_multipliers: Dict[int, float] = field(default_factory=_grade_multipliers)

    def grade_multiplier(self, grade: int) -> float:
        return float(self.grade_multipliers.get(int(grade), 1.0))


@dataclass(frozen=True)
class ConstitutionBonus:
    mental: float = 3.0
    physical: float = 2.0
    emotional: float = 2.5


@dataclass(frozen=True)
class CoverageBonus:
    high: float = 10.0
    medium: float = 5.0
    high_ratio: float = 0.7
    medium_ratio: float = 0.5


@dataclass(frozen=True)
class ModalityBonus:
    worse: float = 3.0
    better: float = 2.0


@dataclass(frozen=True)
class BonusParams:
    constitution: ConstitutionBonus = field(default_factory=ConstitutionBonus)
    keynote: float = 3.0
    pathology: float = 15.0
    coverage: CoverageBonus = field(default_factory=CoverageBonus)
    modality: ModalityBonus = field(default_factory=ModalityBonus)


@dataclass(frozen=True)
class RecentUsePenalty:
    very_recent: float = 50.0  # used within very_recent_days
    recent: float = 20.0       # used within recent_days
    moderate: float = 5.0      # used within moderate_days
    very_recent_days: int = 7
    recent_days: int = 30
    moderate_days: int = 90


@dataclass(frozen=True)
class PenaltyParams:
    recent_use: RecentUsePenalty = field(default_factory=RecentUsePenalty)
    incompatibility: float = 20.0


@dataclass(frozen=True)
class BoostPenalty:
    boost: float
    penalty: float


@dataclass(frozen=True)
class MentalDominance:
    threshold: float = 50.0
    boost: float = 1.2
    keynote_boost: float = 1.15
    constitution_threshold: float = 3.0


@dataclass(frozen=True)
class ClinicalIntelligenceParams:
    acute: BoostPenalty = field(default_factory=lambda: BoostPenalty(boost=1.25, penalty=0.8))
    chronic: BoostPenalty = field(default_factory=lambda: BoostPenalty(boost=1.2, penalty=0.7))
    chronic_constitution_threshold: float = 5.0
    mental_dominance: MentalDominance = field(default_factory=MentalDominance)
    category_nudge: float = 1.1
    acute_keywords: Tuple[str, ...] = ("acute", "sudden", "fever")
    chronic_keywords: Tuple[str, ...] = ("chronic", "long-standing")


@dataclass(frozen=True)
class ConfidenceThresholds:
    very_high: float = 100.0
    high: float = 70.0
    medium: float = 40.0
    low: float = 0.0
    # a medium label is promoted to high once a remedy covers this many rubrics
    rubric_promotion_count: int = 5


@dataclass(frozen=True)
class RubricMappingParams:
    auto_select_threshold: float = 70.0
    language_map: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def search_terms(self, name: str) -> Tuple[str, ...]:
        """Lowercased terms a rubric text may contain for ``name`` to hit it.

        The phrase itself comes first, then its mapped terms, then the terms
        mapped for each of its words. Order is stable and duplicates dropped.
        """
        key = name.strip().lower()
        terms = [key]
        terms.extend(self.language_map.get(key, ()))
        for word in key.split():
            terms.extend(self.language_map.get(word, ()))
        return tuple(dict.fromkeys(t.lower() for t in terms if t))


@dataclass(frozen=True)
class RuleEngineParams:
    scoring: ScoringParams = field(default_factory=ScoringParams)
    bonuses: BonusParams = field(default_factory=BonusParams)
    penalties: PenaltyParams = field(default_factory=PenaltyParams)
    clinical_intelligence: ClinicalIntelligenceParams = field(default_factory=ClinicalIntelligenceParams)
    confidence: ConfidenceThresholds = field(default_factory=ConfidenceThresholds)
    rubric_mapping: RubricMappingParams = field(default_factory=RubricMappingParams)


# ----------------------------
# Config loading
# ----------------------------

def _read_text_best_effort(path: str | Path) -> str:
    data = Path(path).read_bytes()
    for enc in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1", errors="replace")


def _coerce(current: Any, value: Any) -> Any:
    if isinstance(current, bool):
        return bool(value)
    if isinstance(current, int) and not isinstance(current, bool):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, tuple):
        if isinstance(value, str):
            value = [value]
        return tuple(str(v) for v in value)
    return value


def _overlay(base: Any, overrides: Dict[str, Any]) -> Any:
    """Return ``base`` with ``overrides`` applied; unknown keys are ignored."""
    changes: Dict[str, Any] = {}
    for f in fields(base):
        if f.name not in overrides:
            continue
        current = getattr(base, f.name)
        value = overrides[f.name]
        if is_dataclass(current) and isinstance(value, dict):
            changes[f.name] = _overlay(current, value)
        elif f.name == "grade_multipliers":
            changes[f.name] = {int(k): float(v) for k, v in value.items()}
        elif f.name == "language_map":
            changes[f.name] = {
                str(k).lower(): tuple(str(t) for t in (v if isinstance(v, list) else [v]))
                for k, v in value.items()
            }
        else:
            changes[f.name] = _coerce(current, value)
    return replace(base, **changes)


def params_from_dict(cfg: Dict[str, Any]) -> RuleEngineParams:
    return _overlay(RuleEngineParams(), cfg)


def load_params(config_path: str | Path | None = None) -> RuleEngineParams:
    """Read a JSON config; missing keys keep their defaults."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    cfg = json.loads(_read_text_best_effort(path))
    return params_from_dict(cfg)
