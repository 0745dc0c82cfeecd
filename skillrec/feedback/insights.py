"""Aggregate a user's recent feedback on a skill into preference signals."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from skillrec.constants import (
    AVOIDED_TYPE_RATE,
    FEEDBACK_WINDOW,
    MAX_COMMON_ISSUES,
    MIN_FEEDBACK_PER_TYPE,
    PREFERRED_TYPE_RATE,
)
from skillrec.models import DifficultyPreference, FeedbackInsights, FeedbackType, RecommendationType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skillrec.models import FeedbackRow
    from skillrec.repository import ReadRepository


@dataclass
class _TypeCounter:
    helpful: int = 0
    not_helpful: int = 0

    @property
    def total(self) -> int:
        return self.helpful + self.not_helpful

    @property
    def helpful_rate(self) -> float:
        return self.helpful / self.total if self.total else 0.0


def resource_type_of(row: FeedbackRow) -> RecommendationType | None:
    if row.resource_type is not None:
        return row.resource_type
    raw = row.metadata.get("resourceType")
    if raw is None:
        return None
    try:
        return RecommendationType(str(raw).lower())
    except ValueError:
        return None


def extract_insights(rows: Sequence[FeedbackRow]) -> FeedbackInsights:
    """Build insights from feedback rows ordered newest first."""
    insights = FeedbackInsights()
    if not rows:
        return insights

    counters: dict[RecommendationType, _TypeCounter] = {}
    for row in rows:
        rtype = resource_type_of(row)
        if rtype is None:
            continue
        counter = counters.setdefault(rtype, _TypeCounter())
        if row.feedback_type == FeedbackType.HELPFUL:
            counter.helpful += 1
        elif row.feedback_type == FeedbackType.NOT_HELPFUL:
            counter.not_helpful += 1

    for rtype, counter in counters.items():
        if counter.total < MIN_FEEDBACK_PER_TYPE:
            continue
        if counter.helpful_rate >= PREFERRED_TYPE_RATE:
            insights.preferred_types.append(rtype)
        elif counter.helpful_rate <= AVOIDED_TYPE_RATE:
            insights.avoided_types.append(rtype)

    kinds = Counter(row.feedback_type for row in rows)
    too_easy = kinds[FeedbackType.TOO_EASY]
    too_difficult = kinds[FeedbackType.TOO_DIFFICULT]
    total = too_easy + too_difficult + kinds[FeedbackType.HELPFUL]
    if total:
        if too_easy / total > 0.5:
            insights.difficulty_preference = DifficultyPreference.HARDER
        elif too_difficult / total > 0.5:
            insights.difficulty_preference = DifficultyPreference.EASIER

    # Counter.most_common keeps first-seen order on ties.
    issues = Counter(row.comment for row in rows if row.comment and row.comment.strip())
    insights.common_issues = [comment for comment, _ in issues.most_common(MAX_COMMON_ISSUES)]
    return insights


class FeedbackInsightExtractor:
    """Loads the last feedback rows for (user, skill) and extracts insights."""

    def __init__(self, repository: ReadRepository, window: int = FEEDBACK_WINDOW) -> None:
        self._repo = repository
        self._window = window

    async def extract(self, user_id: str, skill_id: str) -> FeedbackInsights:
        rows = await self._repo.feedback_for(user_id, skill_id, limit=self._window)
        return extract_insights(rows[: self._window])
