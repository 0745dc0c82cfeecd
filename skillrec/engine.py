"""RecommendationEngine: the entry point callers use to get and manage recommendations.

For each skill gap the engine tries the AI path when the gap is critical (or a
personalized resource was asked for) and falls back to standard selection.
Every returned recommendation is written to the user's history so it can
later be completed and rated.
"""

from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING, Any

import structlog

from skillrec.cleanup import sweep_ai_resources
from skillrec.constants import (
    AI_GENERATED_TAG,
    AI_RESOURCE_ESTIMATED_MINUTES,
    AI_TARGET_SCORE,
    CRITICAL_THRESHOLD,
    DEFAULT_SCORE,
    MAX_SCORE,
    MIN_SCORE,
    STANDARD_TARGET_SCORE,
)
from skillrec.errors import (
    ExplanationUnavailableError,
    HistoryNotFoundError,
    NotFoundError,
    PersistenceError,
    SkillNotFoundError,
    UserNotFoundError,
)
from skillrec.feedback.stats import FeedbackStatsCollector
from skillrec.feedback.validation import FeedbackValidator
from skillrec.gaps import determine_priority, latest_by_skill, standard_explanation
from skillrec.models import (
    FeedbackRow,
    FeedbackType,
    HistoryItem,
    HistoryRow,
    RecommendationPriority,
    RecommendationQuery,
    RecommendationResult,
    RecommendationSet,
    RecommendationType,
    Resource,
    utcnow,
)
from skillrec.repository import ResourceFilter

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from redis.asyncio import Redis

    from skillrec.gaps import SkillGapAnalyzer
    from skillrec.generation.service import AiRecommendationService
    from skillrec.metrics import AiMetrics
    from skillrec.models import AssessmentScore, FeedbackStats, FeedbackSubmission, SkillGap, User
    from skillrec.repository import Repository
    from skillrec.selection.selector import ResourceSelector

logger = structlog.get_logger()

SUMMARY_NONE = "No specific recommendations at this time. Keep up the good work!"
SUMMARY_CRITICAL = "You have critical skill gaps that need attention. Focus on these recommendations."
SUMMARY_DEFAULT = "Here are some recommendations based on your recent performance."


def limit_gaps(gaps: Sequence[SkillGap], limit: int, requested_skill_id: str | None = None) -> list[SkillGap]:
    """Keep the first *limit* gaps; a requested skill replaces the last slot if it was cut."""
    chosen = list(gaps[:limit])
    if requested_skill_id is None or any(g.skill_id == requested_skill_id for g in chosen):
        return chosen
    requested = next((g for g in gaps if g.skill_id == requested_skill_id), None)
    if requested is None:
        return chosen
    return [*chosen[: limit - 1], requested]


def overall_progress(latest: Iterable[AssessmentScore]) -> int:
    """Average latest score mapped from the 400-800 scale onto 0-100."""
    scores = [row.score for row in latest]
    average = sum(scores) / len(scores) if scores else DEFAULT_SCORE
    scaled = min(100.0, max(0.0, (average - MIN_SCORE) * 100 / (MAX_SCORE - MIN_SCORE)))
    return math.floor(scaled + 0.5)


def summarize(recommendations: Sequence[RecommendationResult]) -> str:
    if not recommendations:
        return SUMMARY_NONE
    if any(r.priority == RecommendationPriority.CRITICAL for r in recommendations):
        return SUMMARY_CRITICAL
    return SUMMARY_DEFAULT


class RecommendationEngine:
    """Generates recommendation sets and manages their history and feedback."""

    def __init__(
        self,
        repository: Repository,
        gaps: SkillGapAnalyzer,
        selector: ResourceSelector,
        generator: AiRecommendationService,
        metrics: AiMetrics,
        validator: FeedbackValidator | None = None,
        stats: FeedbackStatsCollector | None = None,
        *,
        reuse_match_grade: bool = False,
    ) -> None:
        self._repo = repository
        self._gaps = gaps
        self._selector = selector
        self._generator = generator
        self._metrics = metrics
        self._validator = validator or FeedbackValidator()
        self._stats = stats or FeedbackStatsCollector(repository)
        self._reuse_match_grade = reuse_match_grade

    # -- Recommendations --------------------------------------------------------

    async def get_recommendations(self, user_id: str, query: RecommendationQuery | None = None) -> RecommendationSet:
        """Build a recommendation set for *user_id*.

        Raises:
            UserNotFoundError: the user does not exist.
        """
        query = query or RecommendationQuery()
        user = await self._repo.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        analysis = await self._gaps.gaps_to_address(user_id, query.skill_id)
        selected = limit_gaps(analysis.gaps, query.limit, analysis.requested_skill_id)
        now = utcnow()

        results = await asyncio.gather(*(self._recommend_for_gap(user, gap, query.type, now) for gap in selected))
        recommendations = [r for r in results if r is not None]

        logger.info(
            "recommendations generated",
            user_id=user_id,
            gaps=len(selected),
            recommendations=len(recommendations),
            ai_generated=sum(1 for r in recommendations if r.ai_generated),
        )
        return RecommendationSet(
            user_id=user_id,
            generated_at=now,
            recommendations=recommendations,
            overall_progress=overall_progress(analysis.latest.values()),
            summary=summarize(recommendations),
        )

    async def _recommend_for_gap(
        self,
        user: User,
        gap: SkillGap,
        requested_type: RecommendationType | None,
        now: datetime,
    ) -> RecommendationResult | None:
        wants_ai = gap.score < CRITICAL_THRESHOLD or requested_type == RecommendationType.PERSONALIZED
        result: RecommendationResult | None = None
        if wants_ai and self._generator.is_enabled():
            result = await self._ai_recommendation(user, gap)
        if result is None:
            result = await self._standard_recommendation(user, gap, requested_type, now)
        return result

    async def _ai_recommendation(self, user: User, gap: SkillGap) -> RecommendationResult | None:
        try:
            existing = await self._newest_ai_resource(user, gap)
        except Exception:
            logger.exception("ai resource lookup failed", user_id=user.id, skill_id=gap.skill_id)
            return None
        if existing is not None:
            logger.info("reusing ai resource", user_id=user.id, skill_id=gap.skill_id, resource_id=existing.id)
            result = RecommendationResult(
                id=f"ai-reuse-{existing.id}",
                skill_id=gap.skill_id,
                skill_name=gap.skill.name,
                priority=determine_priority(gap.score),
                score=gap.score,
                target_score=AI_TARGET_SCORE,
                explanation=standard_explanation(gap.skill.name, gap.score),
                ai_generated=True,
                resource=existing,
            )
            return await self._record_history(user.id, result)

        try:
            payload = await self._generator.generate_recommendation(user.id, gap.skill, gap.score)
            if payload is None:
                logger.warning("ai generation returned nothing, using standard path", skill_id=gap.skill_id)
                return None
            resource = await self._repo.save_resource(
                Resource(
                    title=payload.resource_title,
                    description=payload.resource_description,
                    url=payload.resource_url,
                    type=payload.resource_type,
                    estimated_time_minutes=AI_RESOURCE_ESTIMATED_MINUTES,
                    grade_level=user.grade_level,
                    tags=[AI_GENERATED_TAG, gap.skill.name],
                    skill_ids=[gap.skill_id],
                    is_ai_generated=True,
                )
            )
        except Exception:
            logger.exception("ai recommendation failed", user_id=user.id, skill_id=gap.skill_id)
            return None

        priority = determine_priority(gap.score)
        if payload.priority != priority:
            logger.debug("model priority overridden", suggested=payload.priority.value, used=priority.value)
        logger.info("saved ai resource", user_id=user.id, skill_id=gap.skill_id, resource_id=resource.id)
        result = RecommendationResult(
            id=f"ai-new-{resource.id}",
            skill_id=gap.skill_id,
            skill_name=gap.skill.name,
            priority=priority,
            score=gap.score,
            target_score=AI_TARGET_SCORE,
            explanation=payload.explanation,
            ai_generated=True,
            resource=resource,
        )
        return await self._record_history(user.id, result)

    async def _newest_ai_resource(self, user: User, gap: SkillGap) -> Resource | None:
        flt = ResourceFilter(skill_id=gap.skill_id, is_ai_generated=True, limit=1)
        if self._reuse_match_grade:
            flt.grade_level = user.grade_level
        found = await self._repo.find_resources(flt)
        return found[0] if found else None

    async def _standard_recommendation(
        self,
        user: User,
        gap: SkillGap,
        requested_type: RecommendationType | None,
        now: datetime,
    ) -> RecommendationResult | None:
        try:
            chosen = await self._selector.select(user, gap, requested_type, now)
        except Exception:
            logger.exception("standard selection failed", user_id=user.id, skill_id=gap.skill_id)
            return None
        if chosen is None:
            return None
        result = RecommendationResult(
            id=f"std-{gap.skill_id}-{int(now.timestamp() * 1000)}",
            skill_id=gap.skill_id,
            skill_name=gap.skill.name,
            priority=determine_priority(gap.score),
            score=gap.score,
            target_score=STANDARD_TARGET_SCORE,
            explanation=standard_explanation(gap.skill.name, gap.score),
            resource=chosen.resource,
        )
        return await self._record_history(user.id, result)

    async def _record_history(self, user_id: str, result: RecommendationResult) -> RecommendationResult:
        """Persist *result* to history. A failed write is logged and the result is returned without an id."""
        row = HistoryRow(
            user_id=user_id,
            skill_id=result.skill_id,
            resource_id=result.resource.id,
            priority=result.priority,
            user_score=result.score,
            target_score=result.target_score,
            explanation=result.explanation,
            is_ai_generated=result.ai_generated,
        )
        try:
            saved = await self._repo.save_history(row)
        except Exception:
            logger.exception("failed to save recommendation history", user_id=user_id, resource_id=row.resource_id)
            return result
        return result.model_copy(update={"history_id": saved.id})

    # -- History ------------------------------------------------------------------

    async def _owned_history(self, user_id: str, history_id: str) -> HistoryRow:
        row = await self._repo.get_history(history_id)
        if row is None or row.user_id != user_id:
            raise HistoryNotFoundError(history_id, user_id)
        return row

    async def mark_completed(self, user_id: str, history_id: str, was_helpful: bool | None = None) -> bool:
        """Mark a history entry completed.

        Completing an already completed entry is a no-op that still succeeds.

        Raises:
            HistoryNotFoundError: no such entry for this user.
            PersistenceError: the update could not be stored.
        """
        row = await self._owned_history(user_id, history_id)
        if row.is_completed:
            logger.warning("recommendation already completed", user_id=user_id, history_id=history_id)
            return True

        updated = row.model_copy(update={"is_completed": True, "completed_at": utcnow(), "was_helpful": was_helpful})
        try:
            await self._repo.update_history(updated)
        except Exception as exc:
            logger.exception("failed to mark recommendation completed", user_id=user_id, history_id=history_id)
            msg = f"could not mark recommendation {history_id} as completed"
            raise PersistenceError(msg) from exc
        logger.info("recommendation completed", user_id=user_id, history_id=history_id, was_helpful=was_helpful)
        return True

    async def get_history(
        self,
        user_id: str,
        *,
        limit: int | None = None,
        offset: int = 0,
        skill_id: str | None = None,
        completed: bool | None = None,
    ) -> list[HistoryItem]:
        """List the user's history newest first. Non-positive limits mean no limit."""
        rows = await self._repo.list_history(
            user_id,
            limit=limit if limit is not None and limit > 0 else None,
            offset=max(0, offset),
            skill_id=skill_id,
            completed=completed,
        )
        skill_names: dict[str, str] = {}
        items: list[HistoryItem] = []
        for row in rows:
            if row.skill_id not in skill_names:
                skill = await self._repo.get_skill(row.skill_id)
                skill_names[row.skill_id] = skill.name if skill is not None else ""
            items.append(
                HistoryItem(
                    history=row,
                    resource=await self._repo.get_resource(row.resource_id),
                    skill_name=skill_names[row.skill_id],
                )
            )
        return items

    # -- Feedback -------------------------------------------------------------------

    async def add_feedback(self, user_id: str, history_id: str, submission: FeedbackSubmission) -> FeedbackRow:
        """Validate and store feedback on a history entry.

        Invalid feedback is still stored in its sanitized form; the issues
        are logged. HELPFUL and NOT_HELPFUL also set ``was_helpful``.
        """
        row = await self._owned_history(user_id, history_id)
        report = self._validator.validate(submission)
        if not report.is_valid:
            logger.warning("feedback has validation issues", history_id=history_id, issues=report.issues)

        clean = report.sanitized
        resource = await self._repo.get_resource(row.resource_id)
        feedback = FeedbackRow(
            user_id=user_id,
            history_id=history_id,
            skill_id=row.skill_id,
            feedback_type=clean.feedback_type,
            source=clean.source,
            comment=clean.comment,
            impact_score=clean.impact_score,
            resource_type=resource.type if resource is not None else None,
            metadata=clean.metadata,
        )

        helpful = {FeedbackType.HELPFUL: True, FeedbackType.NOT_HELPFUL: False}.get(clean.feedback_type)
        if helpful is not None:
            await self._repo.update_history(row.model_copy(update={"was_helpful": helpful}))

        saved = await self._repo.save_feedback(feedback)
        logger.info(
            "feedback stored",
            user_id=user_id,
            history_id=history_id,
            feedback_type=clean.feedback_type.value,
            quality_score=report.quality_score,
        )
        return saved

    async def get_feedback(self, user_id: str, history_id: str) -> list[FeedbackRow]:
        await self._owned_history(user_id, history_id)
        return await self._repo.feedback_for_history(history_id)

    async def get_feedback_stats(self, user_id: str, now: datetime | None = None) -> FeedbackStats:
        """Totals by feedback type, mean impact, helpfulness per resource type and weekly trends."""
        stats = await self._stats.collect(user_id, now)
        logger.debug("feedback stats computed", user_id=user_id, total_feedback=stats.total_feedback)
        return stats

    # -- Explanations ---------------------------------------------------------------

    async def explain_skill_gap(self, user_id: str, skill_id: str) -> str:
        """Ask the model to explain the user's gap on one skill.

        Raises:
            SkillNotFoundError: the skill does not exist.
            NotFoundError: the user has no score for the skill.
            ExplanationUnavailableError: AI is disabled or produced nothing usable.
        """
        skill = await self._repo.get_skill(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)
        latest = latest_by_skill(await self._repo.latest_scores_by_user(user_id)).get(skill_id)
        if latest is None:
            msg = f"no assessment score for skill {skill_id} and user {user_id}"
            raise NotFoundError(msg)
        if not self._generator.is_enabled():
            msg = "AI generation is disabled"
            raise ExplanationUnavailableError(msg)

        payload = await self._generator.generate_recommendation(user_id, skill, latest.score)
        if payload is None:
            logger.warning("no ai explanation available", user_id=user_id, skill_id=skill_id)
            msg = f"AI service failed to explain the gap for skill {skill_id}"
            raise ExplanationUnavailableError(msg)
        return payload.explanation

    # -- Operations -----------------------------------------------------------------

    def ai_metrics(self) -> dict[str, Any]:
        """Generation metrics, parser metrics and cache stats in one dict."""
        return {
            "enabled": self._generator.is_enabled(),
            "provider": self._generator.current_provider(),
            "available_providers": self._generator.providers.available_providers(),
            "generation": self._metrics.snapshot().model_dump(),
            "parser": self._generator.parser.metrics(),
            "cache": self._generator.providers.cache_stats(),
        }

    def reset_metrics(self) -> None:
        self._metrics.reset()
        self._generator.parser.reset()
        self._generator.providers.reset_cache_metrics()
        logger.info("ai metrics reset")

    async def cleanup_ai_resources(self, now: datetime | None = None) -> int:
        return await sweep_ai_resources(self._repo, now)

    def purge_expired_cache(self) -> int:
        cache = self._generator.providers.cache
        return cache.purge_expired() if cache is not None else 0

    async def flush_metrics(self, store: Redis) -> bool:
        return await self._metrics.flush(store)

    async def load_metrics(self, store: Redis) -> bool:
        return await self._metrics.load(store)

    async def close(self) -> None:
        await self._generator.providers.close()
