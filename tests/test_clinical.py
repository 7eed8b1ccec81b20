import uuid

import pytest

from simillimum.engine.clinical import ClinicalIntelligence, has_indication, mental_share
from simillimum.engine.types import (
    CaseSymptom,
    ConfidenceLabel,
    NormalizedCaseProfile,
    RemedyFinalScore,
    RemedyRef,
    SymptomCategory,
)


def _sym(name, category=SymptomCategory.MENTAL):
    return CaseSymptom(code=f"SYM_{name.upper()}", name=name, category=category, weight=1.0)


def _score(final, constitution=0.0, **remedy):
    remedy.setdefault("category", "")
    return RemedyFinalScore(
        remedy=RemedyRef(id=uuid.uuid4(), name=remedy.pop("name", "Testium"), **remedy),
        base_score=final,
        constitution_bonus=constitution,
        keynote_bonus=0.0,
        modality_bonus=0.0,
        pathology_support=0.0,
        coverage_bonus=0.0,
        final_score=final,
        confidence=ConfidenceLabel.LOW,
    )


@pytest.fixture
def clinical(params):
    return ClinicalIntelligence(params)


def _run(clinical, score, profile):
    (out,) = clinical.apply_clinical_filters([score], profile)
    return out


def test_acute_boosts_acute_remedies(clinical):
    out = _run(clinical, _score(40, clinical_indications=("Acute",)), NormalizedCaseProfile(is_acute=True))
    assert out.final_score == pytest.approx(50.0)
    assert out.confidence is ConfidenceLabel.MEDIUM


def test_acute_penalizes_chronic_only(clinical):
    out = _run(clinical, _score(40, clinical_indications=("Chronic Only",)), NormalizedCaseProfile(is_acute=True))
    assert out.final_score == pytest.approx(32.0)


def test_chronic_boosts_constitutional_match(clinical):
    out = _run(clinical, _score(40, constitution=6.0), NormalizedCaseProfile(is_chronic=True))
    assert out.final_score == pytest.approx(48.0)


def test_chronic_penalizes_acute_only(clinical):
    out = _run(clinical, _score(40, clinical_indications=("acute only",)), NormalizedCaseProfile(is_chronic=True))
    assert out.final_score == pytest.approx(28.0)


def test_acute_takes_precedence_over_chronic(clinical):
    score = _score(40, constitution=6.0, clinical_indications=("acute only",))
    out = _run(clinical, score, NormalizedCaseProfile(is_acute=True, is_chronic=True))
    assert out.final_score == pytest.approx(40.0)


def test_mental_dominance_and_category_nudge(clinical):
    profile = NormalizedCaseProfile(
        mental=(_sym("Anxiety"), _sym("Fear of death")),
        generals=(_sym("Thirst", SymptomCategory.GENERAL),),
    )
    score = _score(40, constitution=4.0, category="Constitutional", keynotes=("fear",))
    out = _run(clinical, score, profile)
    assert out.final_score == pytest.approx(40 * 1.2 * 1.15 * 1.1)


def test_exactly_half_mental_is_not_dominant(clinical):
    profile = NormalizedCaseProfile(
        mental=(_sym("Anxiety"),),
        generals=(_sym("Thirst", SymptomCategory.GENERAL),),
    )
    out = _run(clinical, _score(40, constitution=4.0, keynotes=("anxiety",)), profile)
    assert out.final_score == pytest.approx(40.0)


def test_pathology_tag_adds_support(clinical):
    profile = NormalizedCaseProfile(pathology_tags=("eczema",))
    out = _run(clinical, _score(40, clinical_indications=("Eczema of scalp",)), profile)
    assert out.final_score == pytest.approx(55.0)


def test_relabels_after_adjustment(clinical):
    out = _run(clinical, _score(60, clinical_indications=("acute",)), NormalizedCaseProfile(is_acute=True))
    assert out.final_score == pytest.approx(75.0)
    assert out.confidence is ConfidenceLabel.HIGH


def test_keeps_every_remedy_in_order(clinical):
    scores = [_score(s, name=f"R{s}") for s in (90, 50, 10)]
    out = clinical.apply_clinical_filters(scores, NormalizedCaseProfile(is_acute=True))
    assert [o.remedy_name for o in out] == ["R90", "R50", "R10"]


def test_mental_share_counts_mental_general_particular_only():
    profile = NormalizedCaseProfile(
        mental=(_sym("Anxiety"),),
        particulars=(_sym("Headache", SymptomCategory.PARTICULAR),),
        modalities=(_sym("Cold", SymptomCategory.MODALITY),) * 4,
    )
    assert mental_share(profile) == pytest.approx(50.0)
    assert mental_share(NormalizedCaseProfile()) == 0.0


def test_has_indication_is_exact_tag():
    remedy = RemedyRef(id=uuid.uuid4(), name="X", category="", clinical_indications=(" ACUTE ",))
    assert has_indication(remedy, "acute")
    assert not has_indication(remedy, "acute only")
