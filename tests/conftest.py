import os

# simillimum.db builds its module-level engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone
from typing import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from simillimum.engine.params import RuleEngineParams, load_params
from simillimum.engine.pipeline import ClassicalRuleEngine
from simillimum.repertory import models
from simillimum.repertory.orm_base import Base
from simillimum.repertory.repositories import SqlCaseRecordRepo, SqlReferenceRepo
from simillimum.repertory.seed import load_reference_data


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def reference_document() -> dict:
    """A small Kent-style repertory with one German (Boger) rubric."""
    return {
        "symptoms": [
            {"code": "SYM_ANXIETY", "name": "Anxiety", "category": "mental", "synonyms": ["worry", "apprehension"]},
            {"code": "SYM_FEAR_DEATH", "name": "Fear of death", "category": "mental"},
            {"code": "SYM_IRRITABILITY", "name": "Irritability", "category": "mental"},
            {"code": "SYM_HIGH_FEVER", "name": "High Fever", "category": "general", "synonyms": ["pyrexia"]},
            {"code": "SYM_THIRST", "name": "Thirst", "category": "general"},
            {"code": "SYM_HEADACHE", "name": "Headache", "category": "particular", "synonyms": ["head pain"]},
            {"code": "SYM_COLD", "name": "Cold", "category": "modality"},
        ],
        "rubrics": [
            {"key": "anxiety", "repertoryType": "kent", "chapter": "Mind", "rubricText": "MIND - ANXIETY",
             "linkedSymptoms": ["SYM_ANXIETY"]},
            {"key": "fear_death", "repertoryType": "kent", "chapter": "Mind", "rubricText": "MIND - FEAR - death, of",
             "linkedSymptoms": ["SYM_FEAR_DEATH", "SYM_ANXIETY"]},
            {"key": "irritability", "repertoryType": "kent", "chapter": "Mind", "rubricText": "MIND - IRRITABILITY",
             "linkedSymptoms": ["SYM_IRRITABILITY"]},
            {"key": "fever", "repertoryType": "kent", "chapter": "Fever", "rubricText": "FEVER - HEAT - intense",
             "linkedSymptoms": ["SYM_HIGH_FEVER"]},
            {"key": "thirst", "repertoryType": "kent", "chapter": "Stomach",
             "rubricText": "STOMACH - THIRST - large quantities", "linkedSymptoms": ["SYM_THIRST"]},
            {"key": "headache", "repertoryType": "kent", "chapter": "Head", "rubricText": "HEAD - PAIN - throbbing",
             "linkedSymptoms": ["SYM_HEADACHE"]},
            {"key": "angst", "repertoryType": "boger", "chapter": "Gemüt", "rubricText": "GEMÜT - Angst, nachts",
             "linkedSymptoms": []},
        ],
        "remedies": [
            {
                "name": "Aconitum napellus",
                "category": "acute",
                "constitutionTraits": ["anxiety", "fear"],
                "modalities": {"better": ["open air"], "worse": ["cold", "night"]},
                "clinicalIndications": ["Acute", "fever", "shock"],
                "incompatibilities": [],
                "materiaMedica": {
                    "keynotes": ["anxiety", "fear of death", "sudden onset"],
                    "pathogenesis": "Sudden violent onset after exposure to dry cold wind.",
                    "clinicalNotes": "First stage of inflammation.",
                },
                "supportedPotencies": ["30C", "200C"],
            },
            {
                "name": "Belladonna",
                "category": "acute",
                "constitutionTraits": ["heat"],
                "modalities": {"better": ["rest"], "worse": ["touch", "light"]},
                "clinicalIndications": ["Acute", "fever"],
                "materiaMedica": {"keynotes": ["high fever", "throbbing headache"]},
                "supportedPotencies": ["30C", "200C"],
            },
            {
                "name": "Arsenicum album",
                "category": "constitutional",
                "constitutionTraits": ["anxiety", "restlessness"],
                "modalities": {"better": ["warmth"], "worse": ["cold", "midnight"]},
                "clinicalIndications": ["chronic only"],
                "materiaMedica": {"keynotes": ["anxiety", "restlessness"]},
                "supportedPotencies": ["6C", "30C", "200C"],
            },
            {
                "name": "Nux vomica",
                "category": "polychrest",
                "constitutionTraits": ["irritability"],
                "modalities": {"better": ["warmth"], "worse": ["morning"]},
                "clinicalIndications": ["chronic"],
                "materiaMedica": {"keynotes": ["irritability"]},
                "supportedPotencies": ["30C"],
            },
        ],
        "rubricRemedies": [
            {"rubric": "anxiety", "remedy": "Aconitum napellus", "grade": 3},
            {"rubric": "anxiety", "remedy": "Arsenicum album", "grade": 4},
            {"rubric": "anxiety", "remedy": "Nux vomica", "grade": 1},
            {"rubric": "fear_death", "remedy": "Aconitum napellus", "grade": 4},
            {"rubric": "fear_death", "remedy": "Arsenicum album", "grade": 3},
            {"rubric": "irritability", "remedy": "Nux vomica", "grade": 4},
            {"rubric": "fever", "remedy": "Aconitum napellus", "grade": 3},
            {"rubric": "fever", "remedy": "Belladonna", "grade": 4},
            {"rubric": "thirst", "remedy": "Arsenicum album", "grade": 2},
            {"rubric": "headache", "remedy": "Belladonna", "grade": 4},
            {"rubric": "headache", "remedy": "Nux vomica", "grade": 2},
            {"rubric": "angst", "remedy": "Aconitum napellus", "grade": 2},
        ],
    }


def acute_case_body(patient_id: str = "patient-1") -> dict:
    return {
        "patientId": patient_id,
        "structuredCase": {
            "mental": [{"symptomText": "Anxiety", "weight": 3}],
            "generals": [{"symptomText": "High Fever", "weight": 2}],
            "particulars": [],
            "modalities": [],
            "pathologyTags": ["Acute"],
        },
    }


@pytest.fixture
def reference_doc() -> dict:
    return reference_document()


@pytest.fixture
def acute_case() -> dict:
    return acute_case_body()


@pytest.fixture
def params() -> RuleEngineParams:
    return load_params()


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def seeded(session_factory) -> dict[str, int]:
    async with session_factory() as session:
        async with session.begin():
            return await load_reference_data(session, reference_document())


@pytest.fixture
async def session(session_factory, seeded) -> AsyncIterator[AsyncSession]:
    async with session_factory() as s:
        async with s.begin():
            yield s


@pytest.fixture
def reference_repo(session) -> SqlReferenceRepo:
    return SqlReferenceRepo(session)


@pytest.fixture
def case_repo(session) -> SqlCaseRecordRepo:
    return SqlCaseRecordRepo(session)


@pytest.fixture
def rule_engine(session, params) -> ClassicalRuleEngine:
    return ClassicalRuleEngine.for_session(session, params, now=lambda: FIXED_NOW)


@pytest.fixture
def ids(session):
    """Lookup helpers: rubric id by text, remedy id by name."""

    class _Ids:
        async def rubric(self, text: str):
            return (await session.execute(select(models.Rubric.id).where(models.Rubric.rubric_text == text))).scalar_one()

        async def remedy(self, name: str):
            return (await session.execute(select(models.Remedy.id).where(models.Remedy.name == name))).scalar_one()

    return _Ids()


@pytest.fixture
async def api(session_factory, seeded) -> AsyncIterator[AsyncClient]:
    from simillimum.api.deps import get_clock
    from simillimum.api.main import create_app
    from simillimum.db import get_session

    app = create_app()

    async def _session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as s:
            async with s.begin():
                yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
