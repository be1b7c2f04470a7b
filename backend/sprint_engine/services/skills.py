"""
Skill Tracking

Performance analysis and progress reporting delegate struggling/mastered
skill detection to a SkillTracker. The built-in ReviewHistorySkillTracker
derives both from stored sprint reviews:

    - struggling areas: review "missing" items that recur in at least
      MIN_RECURRENCE of the most recent reviewed sprints
    - mastered skills: the objective's required skills, when the recent
      average review score is at least MASTERY_SCORE and the skill is not
      named in a struggling area
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

from sprint_engine.store.base import SprintLifecycleStore

logger = logging.getLogger(__name__)


@dataclass
class SkillMap:
    struggling_areas: list[str] = field(default_factory=list)
    mastered_skills: list[str] = field(default_factory=list)


class SkillTracker(Protocol):
    async def get_user_skill_map(self, user_id: str, objective_id: str) -> SkillMap: ...


class ReviewHistorySkillTracker:
    """SkillTracker backed by the review history in the store."""

    WINDOW = 5
    MIN_RECURRENCE = 2
    MASTERY_SCORE = 0.85

    def __init__(self, store: SprintLifecycleStore):
        self.store = store

    async def get_user_skill_map(self, user_id: str, objective_id: str) -> SkillMap:
        objective = await self.store.get_objective(objective_id)
        if objective is None or objective.user_id != user_id:
            return SkillMap()

        reviewed = [
            s
            for s in await self.store.list_sprints(objective_id)
            if s.score is not None and s.reviewer_summary
        ][-self.WINDOW:]
        if not reviewed:
            return SkillMap()

        missing_counts: Counter = Counter()
        for sprint in reviewed:
            for item in set(sprint.reviewer_summary.get("missing") or []):
                missing_counts[item] += 1
        struggling = [
            item for item, count in missing_counts.most_common() if count >= self.MIN_RECURRENCE
        ]

        average = sum(s.score for s in reviewed) / len(reviewed)
        mastered: list[str] = []
        if average >= self.MASTERY_SCORE:
            lowered = " ".join(struggling).lower()
            mastered = [s for s in objective.required_skills if s.lower() not in lowered]

        return SkillMap(struggling_areas=struggling, mastered_skills=mastered)
