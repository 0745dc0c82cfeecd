"""AI generation metrics accumulator.

One instance is built at start-up and handed to every component that
records into it. Nothing is persisted implicitly: ``flush`` and ``load``
move a snapshot to and from a Redis key when the caller asks.
"""

from __future__ import annotations

import json
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field
from redis.exceptions import RedisError

from skillrec.constants import ERROR_BUFFER_SIZE, METRICS_STORE_KEY

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()


@dataclass(frozen=True)
class LLMErrorRecord:
    """One failed LLM attempt."""

    code: str
    message: str
    provider: str = ""
    attempt: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "provider": self.provider,
            "attempt": self.attempt,
            "timestamp": self.timestamp.isoformat(),
        }


class AiMetricsSnapshot(BaseModel):
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    success_rate: float = 0.0
    cache_hits: int = 0
    cache_misses: int = 0
    cache_hit_rate: float = 0.0
    average_response_time_ms: float = 0.0
    total_response_time_ms: float = 0.0
    errors_by_type: dict[str, int] = Field(default_factory=dict)
    recent_errors: list[dict[str, Any]] = Field(default_factory=list)


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


@dataclass
class AiMetrics:
    """Accumulates request, cache and error counters for AI generation."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    total_response_time_ms: float = 0.0
    average_response_time_ms: float = 0.0
    errors_by_type: Counter[str] = field(default_factory=Counter)
    recent_errors: deque[LLMErrorRecord] = field(default_factory=lambda: deque(maxlen=ERROR_BUFFER_SIZE))

    def record_request(self, *, success: bool, elapsed_ms: float) -> None:
        """Record the outcome of one generation request (all of its attempts)."""
        self.total_requests += 1
        if success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1
        self.total_response_time_ms += max(0.0, elapsed_ms)
        finished = self.successful_requests + self.failed_requests
        self.average_response_time_ms = self.total_response_time_ms / finished

    def record_error(self, error: LLMErrorRecord) -> None:
        self.errors_by_type[error.code] += 1
        self.recent_errors.append(error)

    def record_cache(self, *, hit: bool) -> None:
        if hit:
            self.cache_hits += 1
        else:
            self.cache_misses += 1

    def snapshot(self) -> AiMetricsSnapshot:
        return AiMetricsSnapshot(
            total_requests=self.total_requests,
            successful_requests=self.successful_requests,
            failed_requests=self.failed_requests,
            success_rate=_pct(self.successful_requests, self.total_requests),
            cache_hits=self.cache_hits,
            cache_misses=self.cache_misses,
            cache_hit_rate=_pct(self.cache_hits, self.cache_hits + self.cache_misses),
            average_response_time_ms=round(self.average_response_time_ms, 2),
            total_response_time_ms=self.total_response_time_ms,
            errors_by_type=dict(self.errors_by_type),
            recent_errors=[e.as_dict() for e in self.recent_errors],
        )

    def reset(self) -> None:
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.total_response_time_ms = 0.0
        self.average_response_time_ms = 0.0
        self.errors_by_type.clear()
        self.recent_errors.clear()

    async def flush(self, store: Redis, key: str = METRICS_STORE_KEY) -> bool:
        """Write the current snapshot to *store*. Returns False if the write failed."""
        try:
            await store.set(key, self.snapshot().model_dump_json())
        except RedisError as exc:
            logger.warning("metrics flush failed", key=key, error=str(exc))
            return False
        return True

    async def load(self, store: Redis, key: str = METRICS_STORE_KEY) -> bool:
        """Restore counters from a snapshot previously written by :meth:`flush`."""
        try:
            raw = await store.get(key)
        except RedisError as exc:
            logger.warning("metrics load failed", key=key, error=str(exc))
            return False
        if not raw:
            return False
        try:
            snap = AiMetricsSnapshot.model_validate(json.loads(raw))
        except ValueError:
            logger.warning("stored metrics snapshot is malformed", key=key)
            return False

        self.total_requests = snap.total_requests
        self.successful_requests = snap.successful_requests
        self.failed_requests = snap.failed_requests
        self.cache_hits = snap.cache_hits
        self.cache_misses = snap.cache_misses
        self.total_response_time_ms = snap.total_response_time_ms
        self.average_response_time_ms = snap.average_response_time_ms
        self.errors_by_type = Counter(snap.errors_by_type)
        self.recent_errors.clear()
        for item in snap.recent_errors:
            self.recent_errors.append(
                LLMErrorRecord(
                    code=str(item.get("code", "")),
                    message=str(item.get("message", "")),
                    provider=str(item.get("provider", "")),
                    attempt=int(item.get("attempt", 0)),
                    timestamp=datetime.fromisoformat(item["timestamp"]) if item.get("timestamp") else datetime.now(UTC),
                )
            )
        return True
