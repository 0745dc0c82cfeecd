"""Response cache for LLM calls.

Keys are derived from the normalized (prompt, system prompt, provider,
model) tuple. A Redis backend is used when configured; any Redis error
sends that call to the in-memory backend instead, so cache trouble never
fails a request.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from redis.exceptions import RedisError

from skillrec.constants import (
    CACHE_KEY_NAMESPACE,
    CACHE_LONG_TEXT_LIMIT,
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_TTL_SECONDS,
)
from skillrec.llm._base import LLMResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from redis.asyncio import Redis

    from skillrec.metrics import AiMetrics

logger = structlog.get_logger()

PUNCTUATION = ".,/#!$%^&*;:{}=-_`~()"
_PUNCT_RE = re.compile(f"[{re.escape(PUNCTUATION)}\"']")
_WS_RE = re.compile(r"\s+")


def normalize_prompt(text: str, limit: int = CACHE_LONG_TEXT_LIMIT) -> str:
    """Canonicalize prompt text so near-identical prompts share a key.

    Lowercases, drops punctuation and quotes, collapses whitespace. Text
    longer than *limit* keeps its head and tail around a short digest of
    the whole normalized string.
    """
    normalized = _WS_RE.sub(" ", _PUNCT_RE.sub("", text.lower())).strip()
    if len(normalized) <= limit:
        return normalized
    half = limit // 2
    digest = hashlib.md5(normalized.encode(), usedforsecurity=False).hexdigest()[:8]
    return f"{normalized[:half]}___{digest}___{normalized[-half:]}"


def cache_key(prompt: str, system_prompt: str, provider: str, model: str) -> str:
    """Return ``<provider>:<sha256>`` for the normalized request."""
    request = json.dumps(
        {
            "prompt": normalize_prompt(prompt),
            "systemPrompt": normalize_prompt(system_prompt) if system_prompt else "",
            "provider": provider,
            "model": model,
        },
        sort_keys=True,
    )
    return f"{provider}:{hashlib.sha256(request.encode()).hexdigest()}"


@dataclass(frozen=True)
class CacheEntry:
    """A stored response. Entries are replaced, never mutated."""

    key: str
    response: LLMResponse
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {
                "key": self.key,
                "response": dataclasses.asdict(self.response),
                "createdAt": self.created_at,
                "expiresAt": self.expires_at,
            }
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> CacheEntry:
        data: dict[str, Any] = json.loads(raw)
        return cls(
            key=data["key"],
            response=LLMResponse(**data["response"]),
            created_at=float(data["createdAt"]),
            expires_at=float(data["expiresAt"]),
        )


class CacheBackend(Protocol):
    async def get(self, key: str) -> CacheEntry | None: ...

    async def set(self, entry: CacheEntry, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def delete_prefix(self, prefix: str) -> int: ...

    async def reset(self) -> None: ...


class InMemoryCacheBackend:
    """Dict-backed store with TTL expiry and oldest-first eviction."""

    def __init__(self, max_size: int = DEFAULT_CACHE_MAX_SIZE, clock: Callable[[], float] = time.time) -> None:
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self.evictions = 0
        self.expirations = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.expirations += 1
            return None
        return entry

    async def set(self, entry: CacheEntry, ttl_seconds: int) -> None:
        # Re-inserting moves the key to the end, so iteration order is age order.
        self._entries.pop(entry.key, None)
        self._entries[entry.key] = entry
        while len(self._entries) > self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self.evictions += 1

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for k in doomed:
            del self._entries[k]
        return len(doomed)

    async def reset(self) -> None:
        self._entries.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        doomed = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in doomed:
            del self._entries[k]
        self.expirations += len(doomed)
        return len(doomed)


class RedisCacheBackend:
    """Stores entries as JSON strings under ``<namespace>:<provider>:<hash>``.

    Expiry is delegated to Redis via ``ex``. Errors propagate as
    ``RedisError`` so the caller can fall back.
    """

    def __init__(self, client: Redis, namespace: str = CACHE_KEY_NAMESPACE) -> None:
        self._redis = client
        self.ns = namespace

    def _redis_key(self, key: str) -> str:
        return f"{self.ns}:{key}"

    async def get(self, key: str) -> CacheEntry | None:
        raw = await self._redis.get(self._redis_key(key))
        if not raw:
            return None
        try:
            return CacheEntry.from_json(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("discarding malformed cache entry", key=key)
            await self._redis.delete(self._redis_key(key))
            return None

    async def set(self, entry: CacheEntry, ttl_seconds: int) -> None:
        await self._redis.set(self._redis_key(entry.key), entry.to_json(), ex=max(1, int(ttl_seconds)))

    async def delete(self, key: str) -> bool:
        return bool(await self._redis.delete(self._redis_key(key)))

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        async for redis_key in self._redis.scan_iter(match=f"{self.ns}:{prefix}*"):
            deleted += int(await self._redis.delete(redis_key))
        return deleted

    async def reset(self) -> None:
        await self.delete_prefix("")


class ResponseCache:
    """Facade over the cache backends with hit/miss accounting."""

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        enabled: bool = True,
        durable: CacheBackend | None = None,
        metrics: AiMetrics | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._clock = clock
        self._memory = InMemoryCacheBackend(max_size=max_size, clock=clock)
        self._durable = durable
        self._metrics = metrics
        self.hits = 0
        self.misses = 0
        self.total_requests = 0

    @property
    def hit_ratio(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    async def get(self, prompt: str, system_prompt: str, provider: str, model: str) -> LLMResponse | None:
        """Return the stored response verbatim, or ``None`` on a miss."""
        if not self.enabled:
            return None
        key = cache_key(prompt, system_prompt, provider, model)
        entry = await self._read(key)
        self.total_requests += 1
        if entry is None:
            self.misses += 1
        else:
            self.hits += 1
        if self._metrics is not None:
            self._metrics.record_cache(hit=entry is not None)
        logger.debug("llm cache lookup", provider=provider, model=model, hit=entry is not None)
        return entry.response if entry is not None else None

    async def set(self, prompt: str, system_prompt: str, provider: str, model: str, response: LLMResponse) -> None:
        """Store *response*. Error and empty responses are never cached."""
        if not self.enabled or response.is_error or not response.content:
            return
        now = self._clock()
        entry = CacheEntry(
            key=cache_key(prompt, system_prompt, provider, model),
            response=dataclasses.replace(response, from_cache=False),
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        if self._durable is not None:
            try:
                await self._durable.set(entry, self.ttl_seconds)
                return
            except RedisError as exc:
                logger.warning("durable cache write failed, using memory", error=str(exc))
        await self._memory.set(entry, self.ttl_seconds)

    async def invalidate(self, prompt: str, system_prompt: str, provider: str, model: str) -> None:
        key = cache_key(prompt, system_prompt, provider, model)
        await self._memory.delete(key)
        if self._durable is not None:
            try:
                await self._durable.delete(key)
            except RedisError as exc:
                logger.warning("durable cache delete failed", error=str(exc))

    async def clear(self) -> None:
        await self._memory.reset()
        if self._durable is not None:
            try:
                await self._durable.reset()
            except RedisError as exc:
                logger.warning("durable cache reset failed", error=str(exc))
        logger.info("llm cache cleared")

    async def clear_provider(self, provider: str) -> int:
        """Drop every entry for *provider*; returns how many were removed."""
        removed = await self._memory.delete_prefix(f"{provider}:")
        if self._durable is not None:
            try:
                removed += await self._durable.delete_prefix(f"{provider}:")
            except RedisError as exc:
                logger.warning("durable cache provider clear failed", provider=provider, error=str(exc))
        logger.info("llm cache cleared for provider", provider=provider, removed=removed)
        return removed

    def purge_expired(self) -> int:
        return self._memory.purge_expired()

    def reset_metrics(self) -> None:
        self.hits = 0
        self.misses = 0
        self.total_requests = 0
        self._memory.evictions = 0
        self._memory.expirations = 0

    def stats(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "backend": "redis" if self._durable is not None else "memory",
            "size": len(self._memory),
            "max_size": self._memory.max_size,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "total_requests": self.total_requests,
            "evictions": self._memory.evictions,
            "expirations": self._memory.expirations,
            "hit_ratio": round(self.hit_ratio, 4),
        }

    async def _read(self, key: str) -> CacheEntry | None:
        if self._durable is not None:
            try:
                entry = await self._durable.get(key)
            except RedisError as exc:
                logger.warning("durable cache read failed, using memory", error=str(exc))
            else:
                if entry is not None and not entry.is_expired(self._clock()):
                    return entry
        return await self._memory.get(key)
