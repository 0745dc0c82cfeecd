"""Tests for the AI recommendation service."""

from __future__ import annotations

from unittest.mock import AsyncMock

from skillrec.generation.parser import ResponseParser
from skillrec.generation.retry import RetryOrchestrator
from skillrec.generation.service import AiRecommendationService
from skillrec.llm._base import LLMErrorCode, LLMResponse
from skillrec.llm.cache import ResponseCache
from skillrec.llm.factory import ProviderFactory
from skillrec.metrics import AiMetrics
from skillrec.models import AssessmentEvent, FeedbackRow, FeedbackType, RecommendationType, Skill
from skillrec.repository import InMemoryRepository
from tests.conftest import days_ago
from tests.fake_llm import FakeProvider, recommendation_json

SKILL = Skill(id="fractions", name="Fractions", description="Fractions basics", grade_level=5)


def _service(
    repo: InMemoryRepository, responses: list[LLMResponse | str], *, use_ai: bool = True
) -> tuple[AiRecommendationService, FakeProvider, AiMetrics]:
    metrics = AiMetrics()
    cache = ResponseCache(metrics=metrics)
    provider = FakeProvider(responses, cache=cache)
    providers = ProviderFactory(cache=cache)
    providers.add(provider)
    retry = RetryOrchestrator(metrics, sleep=AsyncMock())
    return AiRecommendationService(repo, providers, ResponseParser(), retry, use_ai=use_ai), provider, metrics


async def test_valid_answer_is_cached_across_requests(repo: InMemoryRepository) -> None:
    service, provider, metrics = _service(repo, [recommendation_json()])

    first = await service.generate_recommendation("u1", SKILL, 430)
    second = await service.generate_recommendation("u1", SKILL, 430)

    assert first == second
    assert len(provider.calls) == 1
    assert (metrics.cache_hits, metrics.cache_misses) == (1, 1)
    assert service.parser.metrics()["average_attempts_per_request"] == 1.0


async def test_unparseable_answer_is_evicted_before_retry(repo: InMemoryRepository) -> None:
    """A bad cached answer must not be replayed on the next attempt."""
    service, provider, _ = _service(repo, ["I think you should watch a video.", recommendation_json()])

    payload = await service.generate_recommendation("u1", SKILL, 430)

    assert payload is not None
    assert len(provider.calls) == 2
    assert service.parser.invalid_responses == 1
    assert service.parser.valid_responses == 1


async def test_empty_response_is_retried(repo: InMemoryRepository) -> None:
    service, provider, metrics = _service(
        repo,
        [LLMResponse.failure(LLMErrorCode.EMPTY_RESPONSE, "Empty response from gemini"), recommendation_json()],
    )

    payload = await service.generate_recommendation("u1", SKILL, 430)

    assert payload is not None
    assert len(provider.calls) == 2
    assert [e.code for e in service.parser.parse_errors] == ["EMPTY_RESPONSE"]
    assert metrics.errors_by_type == {"NULL_RESPONSE": 1}


async def test_two_empty_responses_then_success_within_three_attempts(repo: InMemoryRepository) -> None:
    empty = LLMResponse.failure(LLMErrorCode.EMPTY_RESPONSE, "Empty response from gemini")
    service, provider, metrics = _service(repo, [empty, empty, recommendation_json()])

    payload = await service.generate_recommendation("u1", SKILL, 430)

    assert payload is not None
    assert payload.resource_title == "Visual Fractions"
    assert len(provider.calls) == 3
    assert metrics.errors_by_type == {"NULL_RESPONSE": 2}
    assert (metrics.successful_requests, metrics.failed_requests) == (1, 0)
    assert service.parser.metrics()["average_attempts_per_request"] == 3.0


async def test_transient_provider_error_is_retried(repo: InMemoryRepository) -> None:
    service, provider, metrics = _service(
        repo,
        [LLMResponse.failure(LLMErrorCode.RATE_LIMITED, "slow down"), recommendation_json()],
    )

    assert await service.generate_recommendation("u1", SKILL, 430) is not None
    assert len(provider.calls) == 2
    assert metrics.errors_by_type == {"RATE_LIMITED": 1}


async def test_disabled_service_makes_no_calls(repo: InMemoryRepository) -> None:
    service, provider, _ = _service(repo, [recommendation_json()], use_ai=False)

    assert not service.is_enabled()
    assert await service.generate_recommendation("u1", SKILL, 430) is None
    assert provider.calls == []


async def test_prompt_includes_history_and_feedback(repo: InMemoryRepository) -> None:
    repo.add_event(AssessmentEvent(user_id="u1", skill_id="fractions", is_correct=False, answered_at=days_ago(2)))
    for _ in range(2):
        repo.add_feedback(
            FeedbackRow(
                user_id="u1",
                history_id="h1",
                skill_id="fractions",
                feedback_type=FeedbackType.HELPFUL,
                resource_type=RecommendationType.VIDEO,
                created_at=days_ago(3),
            )
        )
    service, _, _ = _service(repo, [])

    prompt = await service.build_prompt("u1", SKILL, 430)

    assert "- Skill: fractions, Correct: false" in prompt.user
    assert "- Preferred resource types: video" in prompt.user
    assert service.current_provider() == "gemini"
