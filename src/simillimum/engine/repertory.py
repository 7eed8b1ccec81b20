from __future__ import annotations

import logging
import uuid
from typing import Sequence

from simillimum.engine.types import PoolEntry, RemedyRef, RubricGrade
from simillimum.repertory.contracts import ReferenceRepo

log = logging.getLogger(__name__)


class RepertoryEngine:
    def __init__(self, repo: ReferenceRepo) -> None:
        self.repo = repo

    async def build_remedy_pool(self, rubric_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, PoolEntry]:
        """Aggregate every grade of the selected rubrics per remedy.

        Remedy reference records are resolved in a single lookup here so
        later stages never go back to storage.
        """
        if not rubric_ids:
            return {}

        grades = await self.repo.grades_for_rubrics(list(dict.fromkeys(rubric_ids)))
        remedies = await self.repo.remedies_by_ids(list(dict.fromkeys(g.remedy_id for g in grades)))

        pool: dict[uuid.UUID, PoolEntry] = {}
        for g in grades:
            remedy = remedies.get(g.remedy_id)
            if remedy is None:
                continue
            entry = pool.setdefault(g.remedy_id, PoolEntry(remedy=remedy))
            entry.rubric_grades.append(RubricGrade(rubric_id=g.rubric_id, grade=g.grade, repertory_type=g.repertory_type))
            entry.total_base_score += g.grade

        log.info("remedy pool rubrics=%d grades=%d remedies=%d", len(rubric_ids), len(grades), len(pool))
        return pool

    async def get_remedy_details(self, remedy_id: uuid.UUID) -> RemedyRef | None:
        return await self.repo.remedy_by_id(remedy_id)
