"""Shared fixtures and builders for the skillrec test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from skillrec.engine import RecommendationEngine
from skillrec.gaps import SkillGapAnalyzer
from skillrec.generation.parser import ResponseParser
from skillrec.generation.retry import RetryOrchestrator, RetryPolicy
from skillrec.generation.service import AiRecommendationService
from skillrec.llm._base import LLMResponse
from skillrec.llm.cache import ResponseCache
from skillrec.llm.factory import ProviderFactory
from skillrec.metrics import AiMetrics
from skillrec.models import AssessmentScore, RecommendationType, Resource, Skill, User
from skillrec.repository import InMemoryRepository
from skillrec.selection.selector import ResourceSelector
from tests.fake_llm import FakeProvider

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def seed_repository() -> InMemoryRepository:
    """One grade-5 student, three skills, and a standard resource per skill."""
    repo = InMemoryRepository()
    repo.add_user(User(id="u1", grade_level=5))
    for skill_id, name in (("fractions", "Fractions"), ("decimals", "Decimals"), ("geometry", "Geometry")):
        repo.add_skill(Skill(id=skill_id, name=name, description=f"{name} basics", grade_level=5))
        repo.add_resource(
            Resource(
                id=f"res-{skill_id}",
                title=f"{name} practice set",
                url=f"https://example.org/{skill_id}",
                type=RecommendationType.PRACTICE,
                grade_level=5,
                skill_ids=[skill_id],
                created_at=days_ago(10),
            )
        )
    return repo


def set_score(repo: InMemoryRepository, skill_id: str, value: float, when: datetime | None = None) -> None:
    repo.add_score(AssessmentScore(user_id="u1", skill_id=skill_id, score=value, last_assessed_at=when or days_ago(1)))


def build_test_engine(
    repo: InMemoryRepository,
    responses: list[LLMResponse | str] | None = None,
    *,
    enabled: bool = True,
    use_ai: bool = True,
    max_attempts: int = 3,
) -> tuple[RecommendationEngine, FakeProvider]:
    """Wire an engine around *repo* with a scripted provider and no retry sleeps."""
    metrics = AiMetrics()
    cache = ResponseCache(metrics=metrics)
    provider = FakeProvider(responses, cache=cache, enabled=enabled)
    providers = ProviderFactory(cache=cache)
    providers.add(provider)
    retry = RetryOrchestrator(metrics, RetryPolicy(max_attempts=max_attempts), sleep=AsyncMock())
    generator = AiRecommendationService(repo, providers, ResponseParser(), retry, use_ai=use_ai)
    engine = RecommendationEngine(repo, SkillGapAnalyzer(repo), ResourceSelector(repo), generator, metrics)
    return engine, provider


@pytest.fixture
def repo() -> InMemoryRepository:
    return seed_repository()
