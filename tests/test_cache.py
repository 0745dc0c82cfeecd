"""Tests for the LLM response cache."""

from __future__ import annotations

from unittest.mock import AsyncMock

from redis.exceptions import RedisError

from skillrec.llm._base import LLMErrorCode, LLMResponse
from skillrec.llm.cache import RedisCacheBackend, ResponseCache, cache_key, normalize_prompt
from skillrec.metrics import AiMetrics


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_normalize_prompt_collapses_case_punctuation_and_space() -> None:
    assert normalize_prompt("Hello,  World!!") == "hello world"
    assert normalize_prompt('  "Quoted"\n\ttext ') == "quoted text"


def test_normalize_prompt_shortens_long_text() -> None:
    """Long text keeps its head and tail around a digest of the whole."""
    text = "abc " * 1000
    short = normalize_prompt(text)
    assert len(short) < len(text)
    assert short.startswith("abc abc")
    assert short.count("___") == 2
    assert normalize_prompt(text + "x") != short


def test_cache_key_ignores_cosmetic_prompt_differences() -> None:
    """Keys are provider-prefixed and stable under normalization."""
    key = cache_key("Explain fractions.", "Be brief", "openai", "gpt-4")
    assert key.startswith("openai:")
    assert key == cache_key("explain   FRACTIONS", "be brief!", "openai", "gpt-4")
    assert key != cache_key("Explain fractions.", "Be brief", "openai", "gpt-4o")


async def test_round_trip_counts_hits_and_misses() -> None:
    metrics = AiMetrics()
    cache = ResponseCache(metrics=metrics)

    assert await cache.get("p", "s", "openai", "m") is None
    await cache.set("p", "s", "openai", "m", LLMResponse(content="answer"))
    hit = await cache.get("p", "s", "openai", "m")

    assert hit is not None
    assert hit.content == "answer"
    assert (cache.hits, cache.misses, cache.total_requests) == (1, 1, 2)
    assert (metrics.cache_hits, metrics.cache_misses) == (1, 1)
    assert cache.stats()["hit_ratio"] == 0.5


async def test_error_and_empty_responses_are_not_cached() -> None:
    cache = ResponseCache()
    await cache.set("p", "s", "openai", "m", LLMResponse.failure(LLMErrorCode.TIMEOUT, "slow"))
    await cache.set("q", "s", "openai", "m", LLMResponse(content=""))
    assert cache.stats()["size"] == 0


async def test_disabled_cache_is_inert() -> None:
    cache = ResponseCache(enabled=False)
    await cache.set("p", "s", "openai", "m", LLMResponse(content="answer"))
    assert await cache.get("p", "s", "openai", "m") is None
    assert cache.total_requests == 0


async def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=10, clock=clock)
    await cache.set("p", "s", "openai", "m", LLMResponse(content="answer"))

    clock.now += 9
    assert await cache.get("p", "s", "openai", "m") is not None
    clock.now += 1
    assert await cache.get("p", "s", "openai", "m") is None
    assert cache.stats()["expirations"] == 1


async def test_purge_expired_drops_only_stale_entries() -> None:
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=10, clock=clock)
    await cache.set("old", "s", "openai", "m", LLMResponse(content="a"))
    clock.now += 5
    await cache.set("new", "s", "openai", "m", LLMResponse(content="b"))
    clock.now += 6

    assert cache.purge_expired() == 1
    assert cache.stats()["size"] == 1


async def test_oldest_entry_is_evicted_when_full() -> None:
    cache = ResponseCache(max_size=2)
    for prompt in ("one", "two", "three"):
        await cache.set(prompt, "", "openai", "m", LLMResponse(content=prompt))

    assert await cache.get("one", "", "openai", "m") is None
    assert await cache.get("three", "", "openai", "m") is not None
    assert cache.stats()["evictions"] == 1


async def test_invalidate_and_clear_provider() -> None:
    cache = ResponseCache()
    await cache.set("p", "s", "openai", "m", LLMResponse(content="a"))
    await cache.set("q", "s", "openai", "m", LLMResponse(content="b"))
    await cache.set("p", "s", "gemini", "m", LLMResponse(content="c"))

    await cache.invalidate("p", "s", "openai", "m")
    assert await cache.get("p", "s", "openai", "m") is None

    assert await cache.clear_provider("openai") == 1
    assert await cache.get("p", "s", "gemini", "m") is not None


async def test_redis_backend_stores_namespaced_json_with_ttl() -> None:
    """Writes go to Redis with an expiry; reads decode the stored entry."""
    client = AsyncMock()
    client.get.return_value = None
    cache = ResponseCache(ttl_seconds=60, durable=RedisCacheBackend(client))

    await cache.set("p", "s", "openai", "m", LLMResponse(content="answer"))

    redis_key, stored = client.set.call_args.args
    assert redis_key == f"skillrec:llm:{cache_key('p', 's', 'openai', 'm')}"
    assert client.set.call_args.kwargs["ex"] == 60
    assert cache.stats()["size"] == 0

    client.get.return_value = stored
    hit = await cache.get("p", "s", "openai", "m")
    assert hit is not None
    assert hit.content == "answer"
    assert cache.stats()["backend"] == "redis"


async def test_redis_backend_discards_malformed_entries() -> None:
    client = AsyncMock()
    client.get.return_value = b"not json"
    backend = RedisCacheBackend(client)

    assert await backend.get("openai:abc") is None
    client.delete.assert_awaited_once_with("skillrec:llm:openai:abc")


async def test_redis_errors_fall_back_to_memory() -> None:
    """A failing Redis never fails the call; memory takes over."""
    client = AsyncMock()
    client.get.side_effect = RedisError("connection refused")
    client.set.side_effect = RedisError("connection refused")
    cache = ResponseCache(durable=RedisCacheBackend(client))

    await cache.set("p", "s", "openai", "m", LLMResponse(content="answer"))
    hit = await cache.get("p", "s", "openai", "m")

    assert hit is not None
    assert hit.content == "answer"
    assert cache.stats()["size"] == 1


async def test_reset_metrics_zeroes_counters() -> None:
    cache = ResponseCache()
    await cache.get("p", "s", "openai", "m")
    cache.reset_metrics()
    stats = cache.stats()
    assert (stats["hits"], stats["misses"], stats["total_requests"]) == (0, 0, 0)
