"""
HTTP surface: suggestion, case record lifecycle, statistics and repertory lookups.
"""
from __future__ import annotations

import uuid

import pytest

DOCTOR = {"X-Doctor-Id": "dr-a"}
OTHER_DOCTOR = {"X-Doctor-Id": "dr-b"}


async def _suggest(api, body, headers=DOCTOR):
    return await api.post("/classical-homeopathy/suggest", json=body, headers=headers)


@pytest.fixture
async def case_id(api, acute_case) -> str:
    resp = await _suggest(api, acute_case)
    assert resp.status_code == 200
    return resp.json()["caseRecordId"]


# ── suggest ───────────────────────────────────────────────────────────────────

async def test_suggest_returns_ranked_remedies(api, acute_case):
    resp = await _suggest(api, acute_case)

    assert resp.status_code == 200
    body = resp.json()
    assert body["caseRecordId"]
    top = body["suggestions"]["topRemedies"]
    assert [t["remedy"]["name"] for t in top] == ["Aconitum napellus", "Belladonna"]
    assert top[0]["matchScore"] == pytest.approx(75.875)
    assert body["suggestions"]["summary"] == {"totalRemedies": 4, "highConfidence": 1, "warnings": 0}
    assert body["normalizedCase"]["mental"][0]["symptomCode"] == "SYM_ANXIETY"
    assert "x-request-id" in resp.headers


async def test_suggest_with_history_penalizes_recent_remedy(api, acute_case):
    first = (await _suggest(api, acute_case)).json()
    aconite_id = first["suggestions"]["topRemedies"][0]["remedy"]["id"]

    acute_case["patientHistory"] = [{"remedyId": aconite_id, "date": "2026-02-24T12:00:00+00:00"}]
    body = (await _suggest(api, acute_case)).json()

    assert [t["remedy"]["name"] for t in body["suggestions"]["topRemedies"]] == ["Belladonna"]


@pytest.mark.parametrize(
    "mutate",
    [
        lambda b: b.pop("patientId"),
        lambda b: b.update(patientId="   "),
        lambda b: b.pop("structuredCase"),
        lambda b: b.update(structuredCase=["Anxiety"]),
        lambda b: b.update(structuredCase={"mental": [{"symptomText": ""}]}),
    ],
)
async def test_suggest_rejects_bad_envelope(api, acute_case, mutate):
    mutate(acute_case)
    resp = await _suggest(api, acute_case)

    assert resp.status_code == 400
    body = resp.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert body["code"] == 400


async def test_suggest_requires_doctor(api, acute_case):
    resp = await _suggest(api, acute_case, headers={})
    assert resp.status_code == 401
    assert resp.json()["error_code"] == "UNAUTHORIZED"


# ── case records ──────────────────────────────────────────────────────────────

async def test_case_record_roundtrip(api, case_id):
    resp = await api.get(f"/classical-homeopathy/case/{case_id}", headers=DOCTOR)

    assert resp.status_code == 200
    record = resp.json()["caseRecord"]
    assert record["id"] == case_id
    assert record["outcomeStatus"] == "pending"
    assert record["finalRemedy"] is None
    assert record["doctorId"] == "dr-a"


async def test_case_record_hidden_from_other_doctor(api, case_id):
    resp = await api.get(f"/classical-homeopathy/case/{case_id}", headers=OTHER_DOCTOR)
    assert resp.status_code == 403

    resp = await api.put(
        f"/classical-homeopathy/case/{case_id}/outcome",
        json={"outcomeStatus": "improved"},
        headers=OTHER_DOCTOR,
    )
    assert resp.status_code == 403

    still = (await api.get(f"/classical-homeopathy/case/{case_id}", headers=DOCTOR)).json()["caseRecord"]
    assert still["outcomeStatus"] == "pending"


async def test_decision_on_unknown_case(api):
    missing = uuid.uuid4()
    resp = await api.put(
        f"/classical-homeopathy/case/{missing}/decision",
        json={"finalRemedy": {"remedyId": "x", "remedyName": "Sulphur", "potency": "30C", "repetition": "Once"}},
        headers=DOCTOR,
    )
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "NOT_FOUND"

    listed = (await api.get("/classical-homeopathy/case/patient/patient-1", headers=DOCTOR)).json()
    assert listed["count"] == 0


async def test_outcome_status_must_be_recordable(api, case_id):
    for status in ("bogus", "pending", None):
        resp = await api.put(
            f"/classical-homeopathy/case/{case_id}/outcome",
            json={"outcomeStatus": status},
            headers=DOCTOR,
        )
        assert resp.status_code == 400, status


async def test_decision_outcome_and_statistics(api, case_id):
    record = (await api.get(f"/classical-homeopathy/case/{case_id}", headers=DOCTOR)).json()["caseRecord"]
    top = record["engineOutput"]["remedyScores"][0]
    assert top["remedyName"] == "Aconitum napellus"
    remedy_id = top["remedyId"]

    decision = await api.put(
        f"/classical-homeopathy/case/{case_id}/decision",
        json={
            "finalRemedy": {
                "remedyId": remedy_id,
                "remedyName": "Aconitum napellus",
                "potency": "30C",
                "repetition": "Every 2-4 hours",
                "notes": "sudden onset after cold wind",
            }
        },
        headers=DOCTOR,
    )
    assert decision.status_code == 200
    assert decision.json()["caseRecord"]["finalRemedy"]["notes"] == "sudden onset after cold wind"

    outcome = await api.put(
        f"/classical-homeopathy/case/{case_id}/outcome",
        json={"outcomeStatus": "improved", "followUpNotes": "fever broke overnight"},
        headers=DOCTOR,
    )
    assert outcome.status_code == 200
    assert outcome.json()["caseRecord"]["outcomeStatus"] == "improved"

    stats = (await api.get(f"/classical-homeopathy/statistics/remedy/{remedy_id}", headers=DOCTOR)).json()
    assert stats["totalCases"] == 1
    assert stats["improved"] == 1
    assert stats["successRate"] == 100.0

    patterns = (
        await api.get("/classical-homeopathy/statistics/patterns", params={"symptomCode": "SYM_ANXIETY"}, headers=DOCTOR)
    ).json()
    assert patterns["patterns"] == [
        {"remedyId": remedy_id, "remedyName": "Aconitum napellus", "frequency": 1, "successRate": 100.0}
    ]


async def test_statistics_rejects_inverted_range(api):
    resp = await api.get(
        "/classical-homeopathy/statistics/remedy/any",
        params={"start": "2026-02-01T00:00:00", "end": "2026-01-01T00:00:00"},
        headers=DOCTOR,
    )
    assert resp.status_code == 400


async def test_patient_case_list_scoped_to_doctor(api, acute_case):
    await _suggest(api, acute_case)
    await _suggest(api, acute_case)
    await _suggest(api, acute_case, headers=OTHER_DOCTOR)

    mine = (await api.get("/classical-homeopathy/case/patient/patient-1", headers=DOCTOR)).json()
    theirs = (await api.get("/classical-homeopathy/case/patient/patient-1", headers=OTHER_DOCTOR)).json()

    assert mine["count"] == 2
    assert theirs["count"] == 1


# ── reference data ────────────────────────────────────────────────────────────

async def test_remedy_listing_paginates(api):
    body = (await api.get("/classical-homeopathy/remedies", params={"limit": 2})).json()

    assert [r["name"] for r in body["items"]] == ["Aconitum napellus", "Arsenicum album"]
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 4, "pages": 2}

    acute = (await api.get("/classical-homeopathy/remedies", params={"category": "acute"})).json()
    assert acute["pagination"]["total"] == 2


async def test_rubric_listing_by_chapter(api):
    body = (await api.get("/repertory/rubrics", params={"chapter": "Mind"})).json()
    assert body["pagination"]["total"] == 3
    assert all(r["chapter"] == "Mind" for r in body["items"])

    boger = (await api.get("/repertory/rubrics", params={"repertoryType": "boger"})).json()
    assert [r["rubricText"] for r in boger["items"]] == ["GEMÜT - Angst, nachts"]


async def test_rubric_suggestions_for_symptom(api):
    body = (await api.get("/repertory/rubrics/suggest", params={"symptomCode": "SYM_ANXIETY"})).json()

    assert [i["rubricText"] for i in body["items"]] == ["MIND - FEAR - death, of", "MIND - ANXIETY"]
    assert body["items"][0]["matchScore"] == 2


async def test_rubric_and_remedy_details(api):
    rubric = (await api.get("/repertory/rubrics", params={"search": "throbbing"})).json()["items"][0]
    resp = await api.get(f"/repertory/rubrics/{rubric['id']}")
    assert resp.status_code == 200
    assert resp.json()["rubric"]["linkedSymptoms"] == ["SYM_HEADACHE"]

    remedy = (await api.get("/classical-homeopathy/remedies", params={"search": "bella"})).json()["items"][0]
    resp = await api.get(f"/repertory/remedies/{remedy['id']}")
    assert resp.status_code == 200
    assert resp.json()["remedy"]["materiaMedica"]["keynotes"] == ["high fever", "throbbing headache"]


@pytest.mark.parametrize("path", ["/repertory/rubrics/{id}", "/repertory/remedies/{id}"])
async def test_unknown_reference_ids(api, path):
    resp = await api.get(path.format(id=uuid.uuid4()))
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "NOT_FOUND"


async def test_malformed_uuid_is_422(api):
    resp = await api.get("/classical-homeopathy/case/not-a-uuid", headers=DOCTOR)
    assert resp.status_code == 422
    assert resp.json()["error_code"] == "VALIDATION_ERROR"


async def test_version(api):
    body = (await api.get("/version")).json()
    assert body["engine_version"] == "classical_rule_engine_v1"
    assert body["api_version"]
