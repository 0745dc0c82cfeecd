"""AI recommendation generation: prompt, provider call, parse and validate, with retries."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from skillrec.constants import PROMPT_HISTORY_LIMIT
from skillrec.feedback.insights import FeedbackInsightExtractor
from skillrec.generation.prompts import Prompt, PromptBuilder
from skillrec.generation.retry import LLMCallError
from skillrec.llm._base import LLMErrorCode

if TYPE_CHECKING:
    from skillrec.generation.parser import AiRecommendationPayload, ResponseParser
    from skillrec.generation.retry import RetryOrchestrator
    from skillrec.llm._base import LLMProvider
    from skillrec.llm.factory import ProviderFactory
    from skillrec.models import Skill
    from skillrec.repository import ReadRepository

logger = structlog.get_logger()


class AiRecommendationService:
    """Generates a validated recommendation payload for one skill gap, or ``None``."""

    def __init__(
        self,
        repository: ReadRepository,
        providers: ProviderFactory,
        parser: ResponseParser,
        retry: RetryOrchestrator,
        prompts: PromptBuilder | None = None,
        insights: FeedbackInsightExtractor | None = None,
        *,
        use_ai: bool = True,
    ) -> None:
        self._repo = repository
        self.providers = providers
        self.parser = parser
        self.retry = retry
        self._prompts = prompts or PromptBuilder()
        self._insights = insights or FeedbackInsightExtractor(repository)
        self.use_ai = use_ai

    def is_enabled(self) -> bool:
        """AI needs both the feature flag and at least one usable provider."""
        return self.use_ai and self.providers.any_enabled()

    def current_provider(self) -> str:
        return self.providers.default_provider().name

    async def build_prompt(self, user_id: str, skill: Skill, score: float) -> Prompt:
        events = await self._repo.assessment_events(user_id, skill.id, PROMPT_HISTORY_LIMIT)
        insights = await self._insights.extract(user_id, skill.id)
        return self._prompts.build(user_id, skill, score, events, insights)

    async def attempt(self, prompt: Prompt, provider: LLMProvider) -> AiRecommendationPayload | None:
        """One generation attempt.

        Raises :class:`LLMCallError` for provider failures so the retry loop
        can classify them. Returns ``None`` for empty or unusable output.
        """
        self.parser.record_attempt()
        response = await provider.send_with_cache(prompt.user, prompt.system)

        if response.is_error:
            self.parser.record_result(valid=False)
            if response.error_code == LLMErrorCode.EMPTY_RESPONSE:
                self.parser.record_parse_error("EMPTY_RESPONSE", "LLM returned empty response", "")
                return None
            raise LLMCallError.from_response(response, provider.name)

        payload = self.parser.parse_and_validate(response.content)
        if payload is None:
            self.parser.record_result(valid=False)
            # Otherwise the next attempt would be served the same bad answer.
            await provider.invalidate_cached(prompt.user, prompt.system)
            return None

        self.parser.record_result(valid=True)
        return payload

    async def generate_recommendation(self, user_id: str, skill: Skill, score: float) -> AiRecommendationPayload | None:
        """Run the full generation with retries. ``None`` means use the standard path."""
        if not self.is_enabled():
            logger.info("ai generation skipped, disabled", user_id=user_id, skill_id=skill.id)
            return None

        provider = self.providers.default_provider()
        prompt = await self.build_prompt(user_id, skill, score)
        self.parser.record_request()

        async def operation(_attempt: int) -> AiRecommendationPayload | None:
            return await self.attempt(prompt, provider)

        outcome = await self.retry.run(
            operation,
            provider=provider.name,
            context={"user_id": user_id, "skill_id": skill.id},
        )
        if outcome.success:
            logger.info(
                "ai recommendation generated",
                user_id=user_id,
                skill_id=skill.id,
                provider=provider.name,
                attempts=outcome.attempts,
            )
        return outcome.value
