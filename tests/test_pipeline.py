"""
End-to-end runs of ClassicalRuleEngine against the seeded repertory.

Expected numbers for the acute Anxiety / High Fever case (default params):

  Aconitum   base 15.2 (grades 3,4,3,2) + constitution 8.5 + pathology 15 + coverage 10 = 48.7
             acute x1.25 -> 60.875, pathology +15 -> 75.875
  Belladonna base 6 + keynote 3 + pathology 15 = 24, acute x1.25 -> 30, +15 -> 45
  Arsenicum  18.1, chronic-only x0.8 -> 14.48 (below minimum)
"""
from datetime import timedelta

import pytest

from simillimum.engine.reasoning import suggest_potency
from simillimum.engine.types import (
    HistoryEntry,
    OutcomeStatus,
    StructuredCase,
    SymptomMention,
)


def _acute_case():
    return StructuredCase(
        mental=(SymptomMention("Anxiety", weight=3),),
        generals=(SymptomMention("High Fever", weight=2),),
        pathology_tags=("Acute",),
    )


async def test_acute_case_end_to_end(rule_engine):
    run = await rule_engine.process_case("dr-a", "patient-1", _acute_case())

    assert run.profile.is_acute is True
    assert len(run.candidates) == 4
    assert len(run.selected) == 4

    names = [t["remedy"]["name"] for t in run.top_remedies]
    assert names == ["Aconitum napellus", "Belladonna"]

    aconite, belladonna = run.top_remedies
    assert aconite["matchScore"] == pytest.approx(75.875)
    assert aconite["confidence"] == "high"
    assert aconite["score"]["coverageBonus"] == 10.0
    assert aconite["suggestedPotency"] == "30C"
    assert aconite["repetition"] == "Every 2-4 hours"
    assert belladonna["matchScore"] == pytest.approx(45.0)
    assert belladonna["confidence"] == "medium"

    assert run.summary == {"totalRemedies": 4, "highConfidence": 1, "warnings": 0}

    assert run.record is not None
    assert run.record.outcome_status is OutcomeStatus.PENDING
    assert run.record.doctor_id == "dr-a"
    assert [s["remedyName"] for s in run.record.engine_output["remedyScores"]] == [
        "Aconitum napellus",
        "Belladonna",
        "Arsenicum album",
        "Nux vomica",
    ]


async def test_acute_boost_only_for_acute_remedies(rule_engine):
    run = await rule_engine.process_case("dr-a", "p", _acute_case(), persist=False)
    scores = {c.remedy.remedy_name: c.remedy.final_score for c in run.checked}

    assert scores["Arsenicum album"] == pytest.approx(18.1 * 0.8)
    assert scores["Nux vomica"] == pytest.approx(0.8)


async def test_reasoning_narrative(rule_engine):
    run = await rule_engine.process_case("dr-a", "p", _acute_case(), persist=False)
    text = run.top_remedies[0]["clinicalReasoning"]

    assert text.startswith("Base score: 15.20 (from 4 matched rubrics)")
    assert "Constitution match: +8.5" in text
    assert "Pathology support: +15 (indicated for Acute)" in text
    assert "Keynote match: +3" in text
    assert "Keynotes match: anxiety" in text
    assert "Safety adjustment" not in text


async def test_recent_use_removes_remedy(rule_engine, ids):
    aconite = await ids.remedy("Aconitum napellus")
    history = [HistoryEntry(remedy_id=str(aconite), date=rule_engine.contradiction.now() - timedelta(days=5))]

    run = await rule_engine.process_case("dr-a", "p", _acute_case(), history=history)

    assert [t["remedy"]["name"] for t in run.top_remedies] == ["Belladonna"]
    penalized = next(c for c in run.checked if c.remedy.remedy_id == aconite)
    assert penalized.penalty == 50.0
    assert penalized.remedy.final_score == pytest.approx(25.875)
    assert run.record.engine_output["warnings"][0]["type"] == "repetition"


async def test_explicit_rubric_selection(rule_engine, ids):
    headache = await ids.rubric("HEAD - PAIN - throbbing")

    run = await rule_engine.process_case("dr-a", "p", _acute_case(), selected_rubric_ids=[headache], persist=False)

    assert [c.rubric_id for c in run.selected] == [headache]
    (top,) = run.top_remedies
    assert top["remedy"]["name"] == "Belladonna"
    assert top["matchScore"] == pytest.approx(57.5)
    assert top["matchedRubrics"] == ["HEAD - PAIN - throbbing"]


async def test_unmatched_case_degrades(rule_engine):
    case = StructuredCase(mental=(SymptomMention("Glowing Toenails"),))

    run = await rule_engine.process_case("dr-a", "p", case)

    assert run.top_remedies == []
    assert run.summary["totalRemedies"] == 0
    symptom = run.to_response()["normalizedCase"]["mental"][0]
    assert symptom["confidence"] == "low"
    assert symptom["symptomCode"].startswith("unmatched:")
    assert not symptom["symptomCode"].startswith("SYM_")
    assert run.record.outcome_status is OutcomeStatus.PENDING


async def test_no_persist(rule_engine):
    run = await rule_engine.process_case("dr-a", "p", _acute_case(), persist=False)
    assert run.record is None
    assert run.to_response()["caseRecordId"] is None


async def test_response_shape(rule_engine):
    body = (await rule_engine.process_case("dr-a", "p", _acute_case())).to_response()

    assert set(body) == {"suggestions", "caseRecordId", "normalizedCase", "rubricCandidates"}
    assert set(body["suggestions"]) == {"topRemedies", "summary"}
    assert body["normalizedCase"]["isAcute"] is True


@pytest.mark.parametrize(
    "score, acute, potency, repetition",
    [
        (85, True, "200C", "Every 1-2 hours"),
        (55, True, "30C", "Every 2-4 hours"),
        (35, True, "6C", "Every 4-6 hours"),
        (80, False, "200C", "Once daily"),
        (60, False, "30C", "Twice daily"),
        (59.9, False, "6C", "Three times daily"),
    ],
)
def test_suggest_potency(score, acute, potency, repetition):
    s = suggest_potency(score, acute)
    assert (s.potency, s.repetition) == (potency, repetition)


async def test_synonym_mentions_auto_select_rubric(rule_engine):
    case = StructuredCase(mental=(SymptomMention("Anxiety"), SymptomMention("worry")))

    run = await rule_engine.process_case("dr-a", "p", case, persist=False)
    by_text = {c.rubric_text: c for c in run.candidates}

    assert by_text["MIND - ANXIETY"].confidence == pytest.approx(100.0)
    assert by_text["MIND - ANXIETY"].auto_selected is True
    assert by_text["GEMÜT - Angst, nachts"].auto_selected is True


async def test_weak_case_still_offers_top_remedies(rule_engine):
    case = StructuredCase(particulars=(SymptomMention("Headache"),))

    run = await rule_engine.process_case("dr-a", "p", case, persist=False)

    assert [(t["remedy"]["name"], t["matchScore"]) for t in run.top_remedies] == [
        ("Belladonna", pytest.approx(19.0)),
        ("Nux vomica", pytest.approx(12.0)),
    ]
    assert all(t["confidence"] == "low" for t in run.top_remedies)
    assert run.summary["totalRemedies"] == 2
