"""Feedback handling: preference insights, statistics, validation and sentiment."""

from skillrec.feedback.insights import FeedbackInsightExtractor, extract_insights
from skillrec.feedback.stats import FeedbackStatsCollector, summarize_feedback
from skillrec.feedback.validation import FeedbackValidator, ValidationReport

__all__ = [
    "FeedbackInsightExtractor",
    "FeedbackStatsCollector",
    "FeedbackValidator",
    "ValidationReport",
    "extract_insights",
    "summarize_feedback",
]
