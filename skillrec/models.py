"""Pydantic models for the recommendation engine.

Records reference each other by id only; relations are resolved through
explicit repository lookups.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from skillrec.constants import AI_RESOURCE_ESTIMATED_MINUTES, MAX_RECOMMENDATIONS


def utcnow() -> datetime:
    return datetime.now(UTC)


class RecommendationType(StrEnum):
    """Kind of learning resource."""

    PRACTICE = "practice"
    LESSON = "lesson"
    VIDEO = "video"
    INTERACTIVE = "interactive"
    PERSONALIZED = "personalized"


class RecommendationPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FeedbackType(StrEnum):
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"
    PARTIALLY_HELPFUL = "partially_helpful"
    IRRELEVANT = "irrelevant"
    TOO_DIFFICULT = "too_difficult"
    TOO_EASY = "too_easy"


class FeedbackSource(StrEnum):
    USER = "user"
    ASSESSMENT = "assessment"
    AI = "ai"
    SYSTEM = "system"


class DifficultyPreference(StrEnum):
    EASIER = "easier"
    HARDER = "harder"
    APPROPRIATE = "appropriate"


# -- Stored records ----------------------------------------------------------


class User(BaseModel):
    id: str
    grade_level: int


class Skill(BaseModel):
    id: str
    name: str
    description: str = ""
    grade_level: int = 0


class AssessmentScore(BaseModel):
    """One assessed score for a (user, skill) pair on the 400-800 scale."""

    user_id: str
    skill_id: str
    score: float
    last_assessed_at: datetime = Field(default_factory=utcnow)


class AssessmentEvent(BaseModel):
    """A single answered assessment question."""

    user_id: str
    skill_id: str
    is_correct: bool
    answered_at: datetime = Field(default_factory=utcnow)


class Resource(BaseModel):
    """A learning resource that can be recommended for one or more skills."""

    id: str = ""
    title: str
    description: str = ""
    url: str = ""
    type: RecommendationType
    estimated_time_minutes: int = AI_RESOURCE_ESTIMATED_MINUTES
    grade_level: int
    tags: list[str] = Field(default_factory=list)
    skill_ids: list[str] = Field(default_factory=list)
    is_ai_generated: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class HistoryRow(BaseModel):
    """Audit record of one recommendation shown to a user.

    ``was_helpful`` is tri-state: ``None`` until the user rates it.
    """

    id: str = ""
    user_id: str
    skill_id: str
    resource_id: str
    priority: RecommendationPriority
    user_score: float
    target_score: float
    explanation: str = ""
    is_completed: bool = False
    completed_at: datetime | None = None
    was_helpful: bool | None = None
    is_ai_generated: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class FeedbackRow(BaseModel):
    id: str = ""
    user_id: str
    history_id: str
    skill_id: str
    feedback_type: FeedbackType
    source: FeedbackSource = FeedbackSource.USER
    comment: str | None = None
    impact_score: float | None = None
    resource_type: RecommendationType | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


# -- Per-request values ------------------------------------------------------


class SkillGap(BaseModel):
    skill_id: str
    score: float
    skill: Skill


class ScoredResource(BaseModel):
    """A candidate resource with its composite score and the factors behind it."""

    resource: Resource
    composite_score: float = Field(ge=0.0, le=1.0)
    effectiveness: float = 0.0
    difficulty_match: float = 0.0
    recency: float = 0.0
    preference: float = 0.0


class RecommendationResult(BaseModel):
    id: str
    skill_id: str
    skill_name: str
    priority: RecommendationPriority
    score: float
    target_score: float
    explanation: str
    ai_generated: bool = False
    resource: Resource
    history_id: str | None = None


class RecommendationQuery(BaseModel):
    limit: int = Field(default=MAX_RECOMMENDATIONS, ge=1)
    skill_id: str | None = None
    type: RecommendationType | None = None


class RecommendationSet(BaseModel):
    user_id: str
    generated_at: datetime = Field(default_factory=utcnow)
    recommendations: list[RecommendationResult] = Field(default_factory=list)
    overall_progress: int = Field(default=0, ge=0, le=100)
    summary: str = ""


class FeedbackInsights(BaseModel):
    """Preference signals aggregated from a user's recent feedback on one skill."""

    preferred_types: list[RecommendationType] = Field(default_factory=list)
    avoided_types: list[RecommendationType] = Field(default_factory=list)
    difficulty_preference: DifficultyPreference = DifficultyPreference.APPROPRIATE
    common_issues: list[str] = Field(default_factory=list)


class IssueCount(BaseModel):
    issue: str
    count: int


class FeedbackTrend(BaseModel):
    """Feedback totals for one period, e.g. ``Week of 2026-03-02``."""

    period: str
    total_feedback: int
    helpful_percentage: float
    average_impact_score: float
    most_common_issues: list[IssueCount] = Field(default_factory=list)


class ResourceTypeStats(BaseModel):
    type: RecommendationType
    total_usage: int
    helpful_percentage: float
    average_impact_score: float


class FeedbackStats(BaseModel):
    """A user's feedback summarized over all time, plus recent weekly trends."""

    user_id: str
    total_feedback: int = 0
    feedback_by_type: dict[FeedbackType, int] = Field(default_factory=dict)
    average_impact_score: float = 0.0
    resource_types: list[ResourceTypeStats] = Field(default_factory=list)
    trends: list[FeedbackTrend] = Field(default_factory=list)


class FeedbackSubmission(BaseModel):
    """Feedback as submitted by a caller, before validation."""

    feedback_type: FeedbackType
    source: FeedbackSource = FeedbackSource.USER
    comment: str | None = None
    impact_score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class HistoryItem(BaseModel):
    """A history row joined with its resource and skill name for listings."""

    history: HistoryRow
    resource: Resource | None = None
    skill_name: str = ""
