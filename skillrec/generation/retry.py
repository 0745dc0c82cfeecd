"""Retry orchestration for AI generation.

Each attempt runs under its own deadline. Fatal errors abort at once;
anything else, including an attempt that returns ``None``, is retried
after ``base_delay * attempt`` seconds.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from skillrec.constants import (
    DEFAULT_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
)
from skillrec.llm._base import LLMErrorCode
from skillrec.metrics import LLMErrorRecord

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from skillrec.llm._base import LLMResponse
    from skillrec.metrics import AiMetrics

logger = structlog.get_logger()

NULL_RESPONSE = "NULL_RESPONSE"
INTERNAL_ERROR = "INTERNAL_ERROR"

FATAL_ERROR_CODES: frozenset[str] = frozenset(
    {
        LLMErrorCode.INVALID_API_KEY.value,
        LLMErrorCode.QUOTA_EXCEEDED.value,
        LLMErrorCode.INVALID_REQUEST.value,
        LLMErrorCode.CONTENT_POLICY_VIOLATION.value,
    }
)


class LLMCallError(Exception):
    """A classified provider failure raised out of one generation attempt."""

    def __init__(self, code: str, message: str, provider: str = "") -> None:
        self.code = code
        self.provider = provider
        super().__init__(message)

    @classmethod
    def from_response(cls, response: LLMResponse, provider: str = "") -> LLMCallError:
        code = response.error_code or LLMErrorCode.UNKNOWN_ERROR.value
        return cls(code, response.error_message or code, provider)


def is_fatal_error(exc: BaseException) -> bool:
    """Fatal when the error code, or failing that the message, names a fatal code."""
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code in FATAL_ERROR_CODES:
        return True
    message = str(exc)
    return any(fatal in message for fatal in FATAL_ERROR_CODES)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    base_delay: float = DEFAULT_RETRY_DELAY_SECONDS
    attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT_SECONDS

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * attempt


T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    value: T | None = None
    attempts: int = 0
    fatal: bool = False
    errors: list[LLMErrorRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.value is not None


class RetryOrchestrator:
    """Runs an async operation up to ``policy.max_attempts`` times, recording metrics."""

    def __init__(
        self,
        metrics: AiMetrics,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.metrics = metrics
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock

    async def run(
        self,
        operation: Callable[[int], Awaitable[T | None]],
        *,
        provider: str = "",
        context: dict[str, Any] | None = None,
    ) -> RetryOutcome[T]:
        """Call ``operation(attempt)`` until it returns a value, fails fatally, or attempts run out."""
        log = logger.bind(provider=provider, **(context or {}))
        outcome: RetryOutcome[T] = RetryOutcome()
        started = self._clock()

        for attempt in range(1, self.policy.max_attempts + 1):
            outcome.attempts = attempt
            try:
                async with asyncio.timeout(self.policy.attempt_timeout):
                    value = await operation(attempt)
            except TimeoutError:
                message = f"attempt {attempt} exceeded deadline"
                self._record(outcome, LLMErrorCode.TIMEOUT.value, message, provider, attempt)
                log.warning("ai generation attempt timed out", attempt=attempt, timeout=self.policy.attempt_timeout)
            except Exception as exc:
                code = getattr(exc, "code", None) or INTERNAL_ERROR
                self._record(outcome, str(code), str(exc), provider, attempt)
                if is_fatal_error(exc):
                    log.error("ai generation failed with fatal error", attempt=attempt, code=code, error=str(exc))
                    outcome.fatal = True
                    self._finish(started, success=False)
                    return outcome
                log.warning("ai generation attempt failed", attempt=attempt, code=code, error=str(exc))
            else:
                if value is not None:
                    outcome.value = value
                    self._finish(started, success=True)
                    return outcome
                self._record(outcome, NULL_RESPONSE, f"attempt {attempt} returned no result", provider, attempt)
                log.warning("ai generation attempt returned null", attempt=attempt)

            if attempt < self.policy.max_attempts:
                await self._sleep(self.policy.delay_for(attempt))

        log.warning("ai generation exhausted retries", attempts=outcome.attempts)
        self._finish(started, success=False)
        return outcome

    def _record(self, outcome: RetryOutcome[Any], code: str, message: str, provider: str, attempt: int) -> None:
        record = LLMErrorRecord(code=code, message=message, provider=provider, attempt=attempt)
        outcome.errors.append(record)
        self.metrics.record_error(record)

    def _finish(self, started: float, *, success: bool) -> None:
        self.metrics.record_request(success=success, elapsed_ms=(self._clock() - started) * 1000)
