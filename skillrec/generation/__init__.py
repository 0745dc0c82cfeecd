"""AI recommendation generation: prompts, parsing, retries."""

from skillrec.generation.parser import AiRecommendationPayload, ResponseParser
from skillrec.generation.prompts import SYSTEM_PROMPT, Prompt, PromptBuilder
from skillrec.generation.retry import (
    FATAL_ERROR_CODES,
    LLMCallError,
    RetryOrchestrator,
    RetryOutcome,
    RetryPolicy,
    is_fatal_error,
)
from skillrec.generation.service import AiRecommendationService

__all__ = [
    "FATAL_ERROR_CODES",
    "SYSTEM_PROMPT",
    "AiRecommendationPayload",
    "AiRecommendationService",
    "LLMCallError",
    "Prompt",
    "PromptBuilder",
    "ResponseParser",
    "RetryOrchestrator",
    "RetryOutcome",
    "RetryPolicy",
    "is_fatal_error",
]
