"""Skill gap analysis: reduce a user's score history to a prioritized gap list."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from skillrec.constants import CRITICAL_THRESHOLD, DEFAULT_SCORE, LOW_THRESHOLD
from skillrec.models import RecommendationPriority, SkillGap

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skillrec.models import AssessmentScore
    from skillrec.repository import ReadRepository

logger = structlog.get_logger()


def determine_priority(
    score: float,
    *,
    low_threshold: float = LOW_THRESHOLD,
    critical_threshold: float = CRITICAL_THRESHOLD,
) -> RecommendationPriority:
    """Map a score to a priority. This is the only place priority is derived."""
    if score < critical_threshold:
        return RecommendationPriority.CRITICAL
    if score < low_threshold:
        return RecommendationPriority.HIGH
    return RecommendationPriority.MEDIUM


_EXPLANATIONS: dict[RecommendationPriority, str] = {
    RecommendationPriority.CRITICAL: (
        "You seem to be struggling with {name}. Focus on this area to build a stronger foundation."
    ),
    RecommendationPriority.HIGH: "Improving your skills in {name} is recommended. This resource can help.",
    RecommendationPriority.MEDIUM: "Practice {name} to improve your understanding.",
}


def standard_explanation(skill_name: str, score: float) -> str:
    """Return the threshold-derived explanation for *score*."""
    return _EXPLANATIONS[determine_priority(score)].format(name=skill_name)


def latest_by_skill(scores: Iterable[AssessmentScore]) -> dict[str, AssessmentScore]:
    """Keep only the most recently assessed row per skill."""
    latest: dict[str, AssessmentScore] = {}
    for row in scores:
        current = latest.get(row.skill_id)
        if current is None or row.last_assessed_at > current.last_assessed_at:
            latest[row.skill_id] = row
    return latest


@dataclass
class GapAnalysis:
    """Gaps to address plus the latest score per skill they were derived from."""

    gaps: list[SkillGap] = field(default_factory=list)
    latest: dict[str, AssessmentScore] = field(default_factory=dict)
    requested_skill_id: str | None = None


class SkillGapAnalyzer:
    """Identifies skills below the proficiency threshold."""

    def __init__(self, repository: ReadRepository, low_threshold: float = LOW_THRESHOLD) -> None:
        self._repo = repository
        self._low_threshold = low_threshold

    def identify(self, latest: dict[str, AssessmentScore]) -> list[AssessmentScore]:
        """Return latest rows under the threshold, lowest score first."""
        below = [row for row in latest.values() if row.score < self._low_threshold]
        return sorted(below, key=lambda row: row.score)

    async def gaps_to_address(self, user_id: str, skill_id: str | None = None) -> GapAnalysis:
        """Load scores for *user_id* and build the gap list.

        When *skill_id* is given and is not already a gap, a synthetic gap is
        appended after the real ones using the latest score for that skill,
        or the untested baseline when the user has never been assessed on it.
        """
        latest = latest_by_skill(await self._repo.latest_scores_by_user(user_id))
        analysis = GapAnalysis(latest=latest)

        for row in self.identify(latest):
            skill = await self._repo.get_skill(row.skill_id)
            if skill is None:
                logger.warning("scored skill missing, skipping gap", user_id=user_id, skill_id=row.skill_id)
                continue
            analysis.gaps.append(SkillGap(skill_id=row.skill_id, score=row.score, skill=skill))

        if skill_id is None or any(g.skill_id == skill_id for g in analysis.gaps):
            analysis.requested_skill_id = skill_id
            return analysis

        skill = await self._repo.get_skill(skill_id)
        if skill is None:
            logger.warning("requested skill not found", user_id=user_id, skill_id=skill_id)
            return analysis

        row = latest.get(skill_id)
        score = row.score if row is not None else DEFAULT_SCORE
        analysis.gaps.append(SkillGap(skill_id=skill_id, score=score, skill=skill))
        analysis.requested_skill_id = skill_id
        logger.debug("added requested skill as gap", user_id=user_id, skill_id=skill_id, score=score)
        return analysis
