"""Prompt construction for AI recommendation generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from skillrec.constants import PROMPT_HISTORY_LIMIT
from skillrec.models import RecommendationPriority, RecommendationType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skillrec.models import AssessmentEvent, FeedbackInsights, Skill

SYSTEM_PROMPT = (
    "You are an educational AI advisor that creates personalized learning recommendations "
    "for students based on their performance data and previous feedback on recommendations."
)

_RESPONSE_SCHEMA = """{{
  "explanation": "Brief explanation of why this resource will help",
  "resourceTitle": "Title of the learning resource",
  "resourceDescription": "Description of the learning resource",
  "resourceType": "{types}",
  "resourceUrl": "URL to a relevant teaching resource (can be a popular educational site)",
  "priority": "{priorities}"
}}"""


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


def _format_score(score: float) -> str:
    return f"{score:g}"


def format_history(events: Sequence[AssessmentEvent], limit: int = PROMPT_HISTORY_LIMIT) -> str:
    if not events:
        return "- No recent assessment activity"
    return "\n".join(
        f"- Skill: {e.skill_id}, Correct: {str(e.is_correct).lower()}, Date: {e.answered_at.isoformat()}"
        for e in events[:limit]
    )


def format_insights(insights: FeedbackInsights) -> str:
    preferred = ", ".join(t.value for t in insights.preferred_types) or "No clear preference"
    avoided = ", ".join(t.value for t in insights.avoided_types) or "None"
    issues = ", ".join(insights.common_issues[:3]) or "None identified"
    return (
        "Based on previous feedback:\n"
        f"- Preferred resource types: {preferred}\n"
        f"- Resource types to avoid: {avoided}\n"
        f"- Difficulty preference: {insights.difficulty_preference.value}\n"
        f"- Common issues: {issues}"
    )


def response_schema() -> str:
    return _RESPONSE_SCHEMA.format(
        types="|".join(t.value for t in RecommendationType),
        priorities="|".join(p.value for p in RecommendationPriority),
    )


class PromptBuilder:
    """Renders the deterministic system and user prompts for one skill gap."""

    def __init__(self, history_limit: int = PROMPT_HISTORY_LIMIT) -> None:
        self._history_limit = history_limit

    def build(
        self,
        user_id: str,
        skill: Skill,
        score: float,
        events: Sequence[AssessmentEvent],
        insights: FeedbackInsights,
    ) -> Prompt:
        user = "\n".join(
            [
                "Generate a personalized learning recommendation for a student with the following:",
                "",
                f"- User ID: {user_id}",
                f"- Skill Name: {skill.name}",
                f"- Skill Description: {skill.description or 'No description available'}",
                f"- Current Score: {_format_score(score)} (scores range from 400-800, where 650+ is proficient)",
                f"- Grade Level: {skill.grade_level}",
                "",
                "Recent assessment history:",
                format_history(events, self._history_limit),
                "",
                format_insights(insights),
                "",
                "Create a personalized recommendation for this student to improve this skill.",
                "Consider their feedback history to provide more effective recommendations.",
                "Respond ONLY with the JSON object, without any additional text or markdown formatting.",
                "The JSON object must have the following fields:",
                response_schema(),
            ]
        )
        return Prompt(system=SYSTEM_PROMPT, user=user)
