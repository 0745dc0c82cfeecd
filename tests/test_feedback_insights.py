"""Tests for feedback insight extraction."""

from __future__ import annotations

from skillrec.feedback.insights import FeedbackInsightExtractor, extract_insights
from skillrec.models import DifficultyPreference, FeedbackRow, FeedbackType, RecommendationType
from skillrec.repository import InMemoryRepository
from tests.conftest import days_ago


def _row(
    feedback_type: FeedbackType,
    resource_type: RecommendationType | None = None,
    comment: str | None = None,
    age_days: float = 1,
    metadata: dict | None = None,
) -> FeedbackRow:
    return FeedbackRow(
        user_id="u1",
        history_id="h1",
        skill_id="fractions",
        feedback_type=feedback_type,
        resource_type=resource_type,
        comment=comment,
        metadata=metadata or {},
        created_at=days_ago(age_days),
    )


def test_no_feedback_gives_neutral_insights() -> None:
    """Empty input yields empty lists and an appropriate difficulty."""
    insights = extract_insights([])
    assert insights.preferred_types == []
    assert insights.avoided_types == []
    assert insights.difficulty_preference == DifficultyPreference.APPROPRIATE
    assert insights.common_issues == []


def test_preferred_and_avoided_types() -> None:
    """Types with at least two ratings are split on 70% and 30% helpful rates."""
    rows = [
        _row(FeedbackType.HELPFUL, RecommendationType.VIDEO),
        _row(FeedbackType.HELPFUL, RecommendationType.VIDEO),
        _row(FeedbackType.NOT_HELPFUL, RecommendationType.PRACTICE),
        _row(FeedbackType.NOT_HELPFUL, RecommendationType.PRACTICE),
        _row(FeedbackType.HELPFUL, RecommendationType.PRACTICE),
        _row(FeedbackType.NOT_HELPFUL, RecommendationType.PRACTICE),
        _row(FeedbackType.HELPFUL, RecommendationType.LESSON),
    ]
    insights = extract_insights(rows)
    assert insights.preferred_types == [RecommendationType.VIDEO]
    assert insights.avoided_types == [RecommendationType.PRACTICE]


def test_single_rating_is_not_enough() -> None:
    """One rating of a type never makes it preferred."""
    insights = extract_insights([_row(FeedbackType.HELPFUL, RecommendationType.VIDEO)])
    assert insights.preferred_types == []


def test_resource_type_read_from_metadata() -> None:
    """Rows without a resource type fall back to metadata['resourceType']."""
    rows = [
        _row(FeedbackType.HELPFUL, metadata={"resourceType": "Interactive"}),
        _row(FeedbackType.HELPFUL, metadata={"resourceType": "interactive"}),
        _row(FeedbackType.HELPFUL, metadata={"resourceType": "hologram"}),
    ]
    assert extract_insights(rows).preferred_types == [RecommendationType.INTERACTIVE]


def test_difficulty_preference_harder_and_easier() -> None:
    """More than half too-easy means harder; more than half too-difficult means easier."""
    harder = extract_insights([_row(FeedbackType.TOO_EASY), _row(FeedbackType.TOO_EASY), _row(FeedbackType.HELPFUL)])
    easier = extract_insights(
        [_row(FeedbackType.TOO_DIFFICULT), _row(FeedbackType.HELPFUL), _row(FeedbackType.TOO_DIFFICULT)]
    )
    even = extract_insights([_row(FeedbackType.TOO_EASY), _row(FeedbackType.HELPFUL)])

    assert harder.difficulty_preference == DifficultyPreference.HARDER
    assert easier.difficulty_preference == DifficultyPreference.EASIER
    assert even.difficulty_preference == DifficultyPreference.APPROPRIATE


def test_common_issues_top_three_by_frequency() -> None:
    """The three most repeated comments are reported, most frequent first."""
    rows = [
        _row(FeedbackType.NOT_HELPFUL, comment="too long"),
        _row(FeedbackType.NOT_HELPFUL, comment="too long"),
        _row(FeedbackType.NOT_HELPFUL, comment="too long"),
        _row(FeedbackType.NOT_HELPFUL, comment="broken link"),
        _row(FeedbackType.NOT_HELPFUL, comment="broken link"),
        _row(FeedbackType.NOT_HELPFUL, comment="boring"),
        _row(FeedbackType.NOT_HELPFUL, comment="off topic"),
        _row(FeedbackType.NOT_HELPFUL, comment="   "),
    ]
    assert extract_insights(rows).common_issues == ["too long", "broken link", "boring"]


async def test_extractor_reads_only_recent_window() -> None:
    """Only the ten newest rows for the (user, skill) pair are considered."""
    repo = InMemoryRepository()
    for i in range(10):
        repo.add_feedback(_row(FeedbackType.NOT_HELPFUL, RecommendationType.VIDEO, age_days=i))
    for i in range(5):
        repo.add_feedback(_row(FeedbackType.HELPFUL, RecommendationType.VIDEO, age_days=30 + i))

    insights = await FeedbackInsightExtractor(repo).extract("u1", "fractions")

    assert insights.avoided_types == [RecommendationType.VIDEO]
    assert insights.preferred_types == []
