"""Tests for per-user feedback statistics."""

from __future__ import annotations

from datetime import timedelta

import pytest

from skillrec.feedback.stats import FeedbackStatsCollector, summarize_feedback, weekly_trends
from skillrec.models import FeedbackRow, FeedbackType, IssueCount, RecommendationType
from skillrec.repository import InMemoryRepository
from tests.conftest import NOW, days_ago


def _row(
    feedback_type: FeedbackType,
    age_days: float,
    *,
    resource_type: RecommendationType | None = None,
    impact: float | None = None,
    comment: str | None = None,
    user_id: str = "u1",
) -> FeedbackRow:
    return FeedbackRow(
        user_id=user_id,
        history_id="h1",
        skill_id="fractions",
        feedback_type=feedback_type,
        resource_type=resource_type,
        impact_score=impact,
        comment=comment,
        created_at=days_ago(age_days),
    )


ROWS = [
    _row(FeedbackType.TOO_EASY, 200, impact=60),
    _row(FeedbackType.HELPFUL, 3, resource_type=RecommendationType.PRACTICE),
    _row(FeedbackType.NOT_HELPFUL, 2, resource_type=RecommendationType.VIDEO, impact=20, comment="too long"),
    _row(FeedbackType.HELPFUL, 1, resource_type=RecommendationType.VIDEO, impact=80, comment="too long"),
]


def test_empty_feedback_gives_zeroes() -> None:
    stats = summarize_feedback("u1", [], NOW)
    assert stats.total_feedback == 0
    assert stats.feedback_by_type == {}
    assert stats.average_impact_score == 0.0
    assert stats.resource_types == []
    assert stats.trends == []


def test_totals_and_average_impact() -> None:
    """Impact is averaged only over rows that carry a score."""
    stats = summarize_feedback("u1", ROWS, NOW)

    assert stats.total_feedback == 4
    assert stats.feedback_by_type == {
        FeedbackType.HELPFUL: 2,
        FeedbackType.NOT_HELPFUL: 1,
        FeedbackType.TOO_EASY: 1,
    }
    assert stats.average_impact_score == pytest.approx(160 / 3)


def test_resource_types_ordered_by_usage() -> None:
    """Rows without a resource type are left out of the per-type breakdown."""
    video, practice = summarize_feedback("u1", ROWS, NOW).resource_types

    assert (video.type, video.total_usage) == (RecommendationType.VIDEO, 2)
    assert video.helpful_percentage == pytest.approx(50.0)
    assert video.average_impact_score == pytest.approx(50.0)
    assert (practice.type, practice.total_usage) == (RecommendationType.PRACTICE, 1)
    assert practice.helpful_percentage == pytest.approx(100.0)
    assert practice.average_impact_score == 0.0


def test_weekly_trends_cover_recent_window_only() -> None:
    """The 200-day-old row is outside the 90-day window; empty weeks are skipped."""
    trends = summarize_feedback("u1", ROWS, NOW).trends

    assert len(trends) == 1
    week = trends[0]
    assert week.period == f"Week of {(NOW - timedelta(days=6)).date().isoformat()}"
    assert week.total_feedback == 3
    assert week.helpful_percentage == pytest.approx(200 / 3)
    assert week.average_impact_score == pytest.approx(50.0)
    assert week.most_common_issues == [IssueCount(issue="too long", count=2)]


def test_weekly_trends_split_into_periods() -> None:
    rows = [_row(FeedbackType.HELPFUL, 13), _row(FeedbackType.NOT_HELPFUL, 12), _row(FeedbackType.HELPFUL, 1)]

    trends = weekly_trends(rows, NOW - timedelta(days=14), NOW)

    assert [t.total_feedback for t in trends] == [2, 1]
    assert [t.helpful_percentage for t in trends] == [pytest.approx(50.0), pytest.approx(100.0)]


async def test_collector_reads_only_the_users_feedback() -> None:
    repo = InMemoryRepository()
    for row in ROWS:
        repo.add_feedback(row)
    repo.add_feedback(_row(FeedbackType.IRRELEVANT, 1, user_id="u2"))

    stats = await FeedbackStatsCollector(repo).collect("u1", NOW)

    assert stats.user_id == "u1"
    assert stats.total_feedback == 4
    assert FeedbackType.IRRELEVANT not in stats.feedback_by_type
