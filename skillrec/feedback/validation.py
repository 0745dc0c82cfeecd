"""Validation and sanitization of user-submitted feedback.

Feedback is never rejected outright: problems are reported as issues and
the sanitized copy is what gets stored. The sanitized metadata carries the
computed quality score, priority score and sentiment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from skillrec.constants import MAX_COMMENT_LENGTH, MAX_METADATA_STRING_LENGTH
from skillrec.feedback.sentiment import Sentiment, analyze, tokenize
from skillrec.models import FeedbackSubmission, FeedbackType

COMMENT_BLACKLIST = ("script", "javascript", "eval(", "onload", "onerror", "<", ">")
URGENCY_KEYWORDS = frozenset(
    {"urgent", "critical", "important", "asap", "immediately", "broken", "error", "issue", "problem", "bug"}
)

_TAG_RE = re.compile(r"<[^>]*>")
_BLACKLIST_RE = re.compile("|".join(re.escape(term) for term in COMMENT_BLACKLIST), re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

_PRIMITIVES = (str, int, float, bool)


@dataclass(frozen=True)
class PriorityScore:
    """How urgently a piece of feedback should be looked at, in [0, 1]."""

    score: float
    sentiment: float
    impact: float
    urgency: float
    user_engagement: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "factors": {
                "sentiment": self.sentiment,
                "impact": self.impact,
                "urgency": self.urgency,
                "userEngagement": self.user_engagement,
            },
        }


@dataclass
class ValidationReport:
    sanitized: FeedbackSubmission
    issues: list[str] = field(default_factory=list)
    sentiment: Sentiment | None = None
    priority: PriorityScore | None = None
    quality_score: float = 0.0

    @property
    def is_valid(self) -> bool:
        return not self.issues


def sanitize_comment(comment: str) -> str:
    """Strip tags, blank out blacklisted terms and collapse whitespace."""
    cleaned = _TAG_RE.sub("", comment)
    cleaned = _BLACKLIST_RE.sub("[REMOVED]", cleaned)
    return _WS_RE.sub(" ", cleaned).strip()


def sanitize_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Keep primitives, lists of primitives and (recursively) nested dicts.

    Long strings are cut to MAX_METADATA_STRING_LENGTH.
    """
    clean: dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, str):
            clean[str(key)] = value[:MAX_METADATA_STRING_LENGTH]
        elif value is None or isinstance(value, _PRIMITIVES):
            clean[str(key)] = value
        elif isinstance(value, list | tuple):
            clean[str(key)] = [item for item in value if isinstance(item, _PRIMITIVES)]
        elif isinstance(value, dict):
            clean[str(key)] = sanitize_metadata(value)
    return clean


def quality_score(feedback: FeedbackSubmission, sentiment: Sentiment | None) -> float:
    """Five equally weighted signals of how informative the feedback is."""
    score = 0.0
    if feedback.comment and len(feedback.comment) > 20:
        score += 0.2
    if feedback.impact_score is not None:
        score += 0.2
    if feedback.metadata:
        score += 0.2
    if feedback.impact_score is not None and (
        (feedback.feedback_type == FeedbackType.HELPFUL and feedback.impact_score > 50)
        or (feedback.feedback_type == FeedbackType.NOT_HELPFUL and feedback.impact_score < 50)
    ):
        score += 0.2
    if sentiment is not None and (
        (feedback.feedback_type == FeedbackType.HELPFUL and sentiment.comparative > 0)
        or (feedback.feedback_type == FeedbackType.NOT_HELPFUL and sentiment.comparative < 0)
    ):
        score += 0.2
    return min(1.0, round(score, 4))


def priority_score(feedback: FeedbackSubmission, sentiment: Sentiment | None) -> PriorityScore:
    sentiment_factor = min(1.0, abs(sentiment.comparative)) if sentiment is not None else 0.0
    impact = feedback.impact_score / 100 if feedback.impact_score is not None else 0.0

    urgency = 0.0
    if feedback.comment:
        hits = sum(1 for word in tokenize(feedback.comment) if word in URGENCY_KEYWORDS)
        urgency = min(1.0, hits / 3)

    engagement = 0.0
    raw = feedback.metadata.get("userEngagement")
    if isinstance(raw, int | float) and not isinstance(raw, bool):
        engagement = max(0.0, min(1.0, raw / 100))

    score = sentiment_factor * 0.3 + impact * 0.3 + urgency * 0.2 + engagement * 0.2
    return PriorityScore(
        score=score,
        sentiment=sentiment_factor,
        impact=impact,
        urgency=urgency,
        user_engagement=engagement,
    )


class FeedbackValidator:
    """Checks feedback for unsafe content and inconsistencies and scores it."""

    def __init__(self, max_comment_length: int = MAX_COMMENT_LENGTH) -> None:
        self._max_comment_length = max_comment_length

    def validate(self, feedback: FeedbackSubmission) -> ValidationReport:
        issues: list[str] = []
        comment = feedback.comment
        impact = feedback.impact_score
        sentiment: Sentiment | None = None

        if comment:
            if len(comment) > self._max_comment_length:
                issues.append(f"Comment exceeds maximum length of {self._max_comment_length} characters")
                comment = comment[: self._max_comment_length]
            lowered = comment.lower()
            if any(term in lowered for term in COMMENT_BLACKLIST):
                issues.append("Comment contains potentially unsafe content")
                comment = sanitize_comment(comment)
            sentiment = analyze(comment)

        if impact is not None and not 0 <= impact <= 100:
            issues.append("Impact score must be between 0 and 100")
            impact = max(0.0, min(100.0, impact))

        if feedback.impact_score is not None:
            if feedback.feedback_type == FeedbackType.HELPFUL and feedback.impact_score < 50:
                issues.append("Inconsistent feedback: HELPFUL feedback with low impact score")
            if feedback.feedback_type == FeedbackType.NOT_HELPFUL and feedback.impact_score > 50:
                issues.append("Inconsistent feedback: NOT_HELPFUL feedback with high impact score")

        sanitized = feedback.model_copy(
            update={
                "comment": comment,
                "impact_score": impact,
                "metadata": sanitize_metadata(feedback.metadata),
            }
        )
        quality = quality_score(sanitized, sentiment)
        priority = priority_score(sanitized, sentiment)
        sanitized.metadata = {
            **sanitized.metadata,
            "priority": priority.as_dict(),
            "qualityScore": quality,
            "sentiment": sentiment.as_dict() if sentiment is not None else None,
        }
        return ValidationReport(
            sanitized=sanitized,
            issues=issues,
            sentiment=sentiment,
            priority=priority,
            quality_score=quality,
        )
