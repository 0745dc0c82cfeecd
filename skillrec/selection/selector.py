"""Standard resource selection: exclude, score, shortlist, pick by difficulty."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from skillrec.constants import CANDIDATE_POOL_SIZE, RECOMMENDATION_COOLDOWN_DAYS, TOP_CANDIDATES
from skillrec.models import RecommendationType
from skillrec.repository import ResourceFilter
from skillrec.selection.scorer import ResourceScorer

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skillrec.models import Resource, ScoredResource, SkillGap, User
    from skillrec.repository import ReadRepository

logger = structlog.get_logger()


def pick_closest_difficulty(shortlist: Sequence[ScoredResource], user_score: float) -> ScoredResource | None:
    """Return the entry whose grade level best matches *user_score*; first wins ties."""
    if not shortlist:
        return None
    return min(shortlist, key=lambda s: abs(s.resource.grade_level * 100 - user_score))


class ResourceSelector:
    """Picks the best non-AI resource for a skill gap, or ``None`` if there is none."""

    def __init__(
        self,
        repository: ReadRepository,
        scorer: ResourceScorer | None = None,
        *,
        cooldown_days: int = RECOMMENDATION_COOLDOWN_DAYS,
        pool_size: int = CANDIDATE_POOL_SIZE,
        shortlist_size: int = TOP_CANDIDATES,
    ) -> None:
        self._repo = repository
        self.scorer = scorer or ResourceScorer(repository)
        self._cooldown = timedelta(days=cooldown_days)
        self._pool_size = pool_size
        self._shortlist_size = shortlist_size

    async def excluded_resource_ids(self, user_id: str, skill_id: str, now: datetime | None = None) -> set[str]:
        """Resources completed for this skill, or recommended for it within the cooldown."""
        now = now or datetime.now(UTC)
        cutoff = now - self._cooldown
        return {
            row.resource_id
            for row in await self._repo.history_for(user_id, skill_id)
            if row.is_completed or row.created_at > cutoff
        }

    async def candidates(
        self,
        user: User,
        gap: SkillGap,
        requested_type: RecommendationType | None = None,
        now: datetime | None = None,
    ) -> list[Resource]:
        flt = ResourceFilter(
            skill_id=gap.skill_id,
            grade_level=user.grade_level,
            is_ai_generated=False,
            exclude_ids=await self.excluded_resource_ids(user.id, gap.skill_id, now),
            limit=self._pool_size,
        )
        if requested_type is not None and requested_type != RecommendationType.PERSONALIZED:
            flt.type = requested_type
        return await self._repo.find_resources(flt)

    async def rank(
        self, user: User, gap: SkillGap, pool: Sequence[Resource], now: datetime | None = None
    ) -> list[ScoredResource]:
        """Score every candidate and order by composite score, highest first."""
        user_history = await self._repo.history_for_user(user.id)
        scored = [await self.scorer.score(resource, gap, user_history, now) for resource in pool]
        return sorted(scored, key=lambda s: s.composite_score, reverse=True)

    async def select(
        self,
        user: User,
        gap: SkillGap,
        requested_type: RecommendationType | None = None,
        now: datetime | None = None,
    ) -> ScoredResource | None:
        pool = await self.candidates(user, gap, requested_type, now)
        if not pool:
            logger.warning(
                "no standard resources available",
                user_id=user.id,
                skill_id=gap.skill_id,
                grade_level=user.grade_level,
            )
            return None
        ranked = await self.rank(user, gap, pool, now)
        chosen = pick_closest_difficulty(ranked[: self._shortlist_size], gap.score)
        if chosen is not None:
            logger.debug(
                "standard resource selected",
                user_id=user.id,
                skill_id=gap.skill_id,
                resource_id=chosen.resource.id,
                composite_score=round(chosen.composite_score, 4),
            )
        return chosen
