"""Summary statistics over a user's feedback: totals, impact, per-type helpfulness, weekly trends."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from skillrec.constants import FEEDBACK_TREND_DAYS, FEEDBACK_TREND_PERIOD_DAYS, MAX_COMMON_ISSUES
from skillrec.feedback.insights import resource_type_of
from skillrec.models import (
    FeedbackStats,
    FeedbackTrend,
    FeedbackType,
    IssueCount,
    RecommendationType,
    ResourceTypeStats,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skillrec.models import FeedbackRow
    from skillrec.repository import ReadRepository


def average_impact(rows: Sequence[FeedbackRow]) -> float:
    """Mean impact score over rows that have one; 0 when none do."""
    scores = [row.impact_score for row in rows if row.impact_score is not None]
    return sum(scores) / len(scores) if scores else 0.0


def helpful_percentage(rows: Sequence[FeedbackRow]) -> float:
    if not rows:
        return 0.0
    helpful = sum(1 for row in rows if row.feedback_type == FeedbackType.HELPFUL)
    return helpful * 100 / len(rows)


def top_issues(rows: Sequence[FeedbackRow], limit: int = MAX_COMMON_ISSUES) -> list[IssueCount]:
    counts = Counter(row.comment for row in rows if row.comment and row.comment.strip())
    return [IssueCount(issue=issue, count=count) for issue, count in counts.most_common(limit)]


def weekly_trends(
    rows: Sequence[FeedbackRow],
    start: datetime,
    end: datetime,
    period_days: int = FEEDBACK_TREND_PERIOD_DAYS,
) -> list[FeedbackTrend]:
    """Bucket *rows* into consecutive periods from *start*; empty periods are skipped."""
    step = timedelta(days=period_days)
    trends: list[FeedbackTrend] = []
    period_start = start
    while period_start < end:
        period_end = min(period_start + step, end)
        bucket = [row for row in rows if period_start <= row.created_at < period_end]
        if bucket:
            trends.append(
                FeedbackTrend(
                    period=f"Week of {period_start.date().isoformat()}",
                    total_feedback=len(bucket),
                    helpful_percentage=helpful_percentage(bucket),
                    average_impact_score=average_impact(bucket),
                    most_common_issues=top_issues(bucket),
                )
            )
        period_start = period_end
    return trends


def resource_type_stats(rows: Sequence[FeedbackRow]) -> list[ResourceTypeStats]:
    """Helpfulness per resource type, most used first. Rows without a type are ignored."""
    by_type: dict[RecommendationType, list[FeedbackRow]] = defaultdict(list)
    for row in rows:
        rtype = resource_type_of(row)
        if rtype is not None:
            by_type[rtype].append(row)
    stats = [
        ResourceTypeStats(
            type=rtype,
            total_usage=len(group),
            helpful_percentage=helpful_percentage(group),
            average_impact_score=average_impact(group),
        )
        for rtype, group in by_type.items()
    ]
    return sorted(stats, key=lambda s: (-s.total_usage, s.type.value))


def summarize_feedback(
    user_id: str,
    rows: Sequence[FeedbackRow],
    now: datetime,
    trend_days: int = FEEDBACK_TREND_DAYS,
) -> FeedbackStats:
    counts = Counter(row.feedback_type for row in rows)
    return FeedbackStats(
        user_id=user_id,
        total_feedback=len(rows),
        feedback_by_type=dict(counts),
        average_impact_score=average_impact(rows),
        resource_types=resource_type_stats(rows),
        trends=weekly_trends(rows, now - timedelta(days=trend_days), now),
    )


class FeedbackStatsCollector:
    """Loads every feedback row of a user and summarizes them."""

    def __init__(self, repository: ReadRepository, trend_days: int = FEEDBACK_TREND_DAYS) -> None:
        self._repo = repository
        self._trend_days = trend_days

    async def collect(self, user_id: str, now: datetime | None = None) -> FeedbackStats:
        now = now or datetime.now(UTC)
        rows = await self._repo.feedback_for_user(user_id)
        return summarize_feedback(user_id, rows, now, self._trend_days)
