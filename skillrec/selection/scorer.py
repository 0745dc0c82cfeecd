"""Composite resource scorer: effectiveness + difficulty match + recency + preference.

Score = (w_eff * effectiveness) + (w_diff * difficulty_match) + (w_rec * recency) + (w_pref * preference)

Every factor lies in [0, 1] and the default weights sum to 1, so the
composite does too.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

from skillrec.constants import DEFAULT_SCORE, RECENCY_HORIZON_DAYS
from skillrec.models import ScoredResource

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skillrec.models import HistoryRow, RecommendationType, Resource, SkillGap
    from skillrec.repository import ReadRepository

NEUTRAL_FACTOR = 0.5


class ResourceScoreWeights(BaseModel):
    """Configurable weights for composite resource scoring."""

    effectiveness: float = 0.4
    difficulty_match: float = 0.3
    recency: float = 0.2
    preference: float = 0.1


def difficulty_match(grade_level: int, user_score: float) -> float:
    """Grade level stands in for difficulty: grade 5 is treated as a 500 score."""
    return max(0.0, 1.0 - abs(grade_level * 100 - user_score) / 500)


def recency(created_at: datetime, now: datetime | None = None, horizon_days: float = RECENCY_HORIZON_DAYS) -> float:
    """Linear decay from 1 for a brand-new resource to 0 at *horizon_days*."""
    now = now or datetime.now(UTC)
    age_days = max(0.0, (now - created_at).total_seconds() / 86_400)
    return max(0.0, 1.0 - age_days / horizon_days)


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class ResourceScorer:
    """Scores candidate resources for one skill gap of one user."""

    def __init__(
        self,
        repository: ReadRepository,
        weights: ResourceScoreWeights | None = None,
        recency_horizon_days: float = RECENCY_HORIZON_DAYS,
    ) -> None:
        self._repo = repository
        self.weights = weights or ResourceScoreWeights()
        self._horizon = recency_horizon_days

    async def effectiveness(self, resource_id: str) -> float:
        """Blend of completion rate and average score gain across everyone who got it.

        Resources nobody has been recommended yet score exactly 0.5.
        """
        history = await self._repo.history_for_resource(resource_id)
        if not history:
            return NEUTRAL_FACTOR

        completion_rate = sum(1 for h in history if h.is_completed) / len(history)
        deltas: list[float] = []
        for row in history:
            before = await self._repo.score_before(row.user_id, row.skill_id, row.created_at)
            after = await self._repo.score_after(row.user_id, row.skill_id, row.created_at)
            deltas.append(
                (after.score if after is not None else DEFAULT_SCORE)
                - (before.score if before is not None else DEFAULT_SCORE)
            )
        improvement = _clamp01(sum(deltas) / len(deltas) / 100)
        return completion_rate * 0.6 + improvement * 0.4

    async def preference(self, user_history: Sequence[HistoryRow], resource_type: RecommendationType) -> float:
        """The user's completion rate on resources of *resource_type*."""
        if not user_history:
            return NEUTRAL_FACTOR
        completed = total = 0
        for row in user_history:
            resource = await self._repo.get_resource(row.resource_id)
            if resource is None or resource.type != resource_type:
                continue
            total += 1
            completed += int(row.is_completed)
        if total == 0:
            return NEUTRAL_FACTOR
        return completed / total

    async def score(
        self,
        resource: Resource,
        gap: SkillGap,
        user_history: Sequence[HistoryRow],
        now: datetime | None = None,
    ) -> ScoredResource:
        """Compute the composite score for a single resource."""
        eff = await self.effectiveness(resource.id)
        diff = difficulty_match(resource.grade_level, gap.score)
        rec = recency(resource.created_at, now, self._horizon)
        pref = await self.preference(user_history, resource.type)

        w = self.weights
        composite = (
            w.effectiveness * eff + w.difficulty_match * diff + w.recency * rec + w.preference * pref
        )
        return ScoredResource(
            resource=resource,
            composite_score=_clamp01(composite),
            effectiveness=eff,
            difficulty_match=diff,
            recency=rec,
            preference=pref,
        )
