"""Tests for the composite resource scorer."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from skillrec.models import (
    AssessmentScore,
    HistoryRow,
    RecommendationPriority,
    RecommendationType,
    Resource,
    Skill,
    SkillGap,
)
from skillrec.repository import InMemoryRepository
from skillrec.selection.scorer import ResourceScorer, ResourceScoreWeights, difficulty_match, recency

NOW = datetime(2026, 3, 1, tzinfo=UTC)


def _history(
    user_id: str,
    resource_id: str,
    *,
    completed: bool = False,
    created_at: datetime = NOW - timedelta(days=20),
) -> HistoryRow:
    return HistoryRow(
        user_id=user_id,
        skill_id="s",
        resource_id=resource_id,
        priority=RecommendationPriority.HIGH,
        user_score=480,
        target_score=600,
        is_completed=completed,
        created_at=created_at,
    )


def _resource(rid: str, rtype: RecommendationType = RecommendationType.PRACTICE, grade: int = 5) -> Resource:
    return Resource(id=rid, title=rid, type=rtype, grade_level=grade, skill_ids=["s"], created_at=NOW)


@pytest.mark.parametrize(
    ("grade", "user_score", "expected"),
    [(5, 500, 1.0), (5, 300, 0.6), (6, 450, 0.7), (1, 800, 0.0)],
)
def test_difficulty_match(grade: int, user_score: float, expected: float) -> None:
    """Match falls off linearly with the distance between grade*100 and score."""
    assert difficulty_match(grade, user_score) == pytest.approx(expected)


def test_recency_decays_over_a_year() -> None:
    """New resources score 1, half a year scores 0.5, a year or more scores 0."""
    assert recency(NOW, NOW) == 1.0
    assert recency(NOW - timedelta(days=182.5), NOW) == pytest.approx(0.5)
    assert recency(NOW - timedelta(days=400), NOW) == 0.0


def test_default_weights_sum_to_one() -> None:
    w = ResourceScoreWeights()
    assert w.effectiveness + w.difficulty_match + w.recency + w.preference == pytest.approx(1.0)


async def test_effectiveness_without_history_is_neutral() -> None:
    """A resource nobody has been recommended scores exactly 0.5."""
    scorer = ResourceScorer(InMemoryRepository())
    assert await scorer.effectiveness("fresh") == 0.5


async def test_effectiveness_blends_completion_and_improvement() -> None:
    """0.6 * completion rate + 0.4 * clamped mean score gain / 100."""
    repo = InMemoryRepository()
    shown_at = NOW - timedelta(days=20)
    repo.add_history(_history("u1", "r", completed=True, created_at=shown_at))
    repo.add_history(_history("u2", "r", created_at=shown_at))
    for points, offset in ((450, -1), (520, 1)):
        when = shown_at + timedelta(days=offset)
        repo.add_score(AssessmentScore(user_id="u1", skill_id="s", score=points, last_assessed_at=when))

    value = await ResourceScorer(repo).effectiveness("r")

    # u1 gained 70, u2 has no scores on either side (500 - 500).
    assert value == pytest.approx(0.5 * 0.6 + 0.35 * 0.4)


async def test_preference_is_completion_rate_for_type() -> None:
    """Only the user's history on resources of the same type counts."""
    repo = InMemoryRepository()
    repo.add_resource(_resource("p1"))
    repo.add_resource(_resource("p2"))
    repo.add_resource(_resource("p3"))
    repo.add_resource(_resource("v1", RecommendationType.VIDEO))
    history = [
        _history("u1", "p1", completed=True),
        _history("u1", "p2", completed=True),
        _history("u1", "p3"),
        _history("u1", "v1"),
    ]
    scorer = ResourceScorer(repo)

    assert await scorer.preference(history, RecommendationType.PRACTICE) == pytest.approx(2 / 3)
    assert await scorer.preference(history, RecommendationType.VIDEO) == 0.0
    assert await scorer.preference(history, RecommendationType.LESSON) == 0.5
    assert await scorer.preference([], RecommendationType.PRACTICE) == 0.5


async def test_score_combines_weighted_factors() -> None:
    """The composite is the weighted sum of the four factors."""
    repo = InMemoryRepository()
    resource = repo.add_resource(_resource("r", grade=5))
    gap = SkillGap(skill_id="s", score=450, skill=Skill(id="s", name="S"))

    scored = await ResourceScorer(repo).score(resource, gap, [], NOW)

    assert scored.effectiveness == 0.5
    assert scored.difficulty_match == pytest.approx(0.9)
    assert scored.recency == 1.0
    assert scored.preference == 0.5
    assert scored.composite_score == pytest.approx(0.4 * 0.5 + 0.3 * 0.9 + 0.2 * 1.0 + 0.1 * 0.5)
