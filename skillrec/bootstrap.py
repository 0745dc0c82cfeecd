"""Start-up wiring: build every engine component once and connect them."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog
from redis.asyncio import Redis

from skillrec.config import EngineSettings
from skillrec.engine import RecommendationEngine
from skillrec.feedback.insights import FeedbackInsightExtractor
from skillrec.feedback.stats import FeedbackStatsCollector
from skillrec.feedback.validation import FeedbackValidator
from skillrec.gaps import SkillGapAnalyzer
from skillrec.generation.parser import ResponseParser
from skillrec.generation.prompts import PromptBuilder
from skillrec.generation.retry import RetryOrchestrator, RetryPolicy
from skillrec.generation.service import AiRecommendationService
from skillrec.llm.cache import RedisCacheBackend, ResponseCache
from skillrec.llm.factory import ProviderFactory
from skillrec.logger import setup_logging, stop_logging
from skillrec.metrics import AiMetrics
from skillrec.selection.selector import ResourceSelector

if TYPE_CHECKING:
    from skillrec.repository import Repository

logger = structlog.get_logger()


def build_engine(
    repository: Repository,
    settings: EngineSettings | None = None,
    redis: Redis | None = None,
) -> RecommendationEngine:
    """Construct a fully wired engine.

    When the durable cache is enabled and no client is passed in, one is
    created from ``settings.redis_url``.
    """
    settings = settings or EngineSettings()
    metrics = AiMetrics()

    durable = None
    if settings.redis_cache_enabled:
        redis = redis or Redis.from_url(settings.redis_url)
        durable = RedisCacheBackend(redis)
    cache = ResponseCache(
        ttl_seconds=settings.cache_ttl_seconds,
        max_size=settings.cache_max_size,
        enabled=settings.cache_enabled,
        durable=durable,
        metrics=metrics,
    )

    providers = ProviderFactory.from_settings(settings, cache=cache)
    retry = RetryOrchestrator(
        metrics,
        RetryPolicy(
            max_attempts=settings.retry_attempts,
            base_delay=settings.retry_delay_seconds,
            attempt_timeout=settings.attempt_timeout_seconds,
        ),
    )
    generator = AiRecommendationService(
        repository,
        providers,
        ResponseParser(),
        retry,
        PromptBuilder(),
        FeedbackInsightExtractor(repository),
        use_ai=settings.use_ai,
    )
    engine = RecommendationEngine(
        repository,
        SkillGapAnalyzer(repository),
        ResourceSelector(repository),
        generator,
        metrics,
        FeedbackValidator(),
        FeedbackStatsCollector(repository),
        reuse_match_grade=settings.reuse_match_grade,
    )
    logger.info(
        "engine built",
        use_ai=settings.use_ai,
        providers=providers.available_providers(),
        cache_backend="redis" if durable is not None else "memory",
    )
    return engine


async def start_engine(
    repository: Repository,
    settings: EngineSettings | None = None,
    redis: Redis | None = None,
) -> RecommendationEngine:
    """Process start-up: configure logging, build the engine, restore persisted metrics.

    Metrics are restored from *redis*, or from a client made from
    ``settings.redis_url`` when the durable cache is enabled.
    """
    settings = settings or EngineSettings()
    setup_logging(service=settings.log_service, level=settings.log_level)

    if redis is None and settings.redis_cache_enabled:
        redis = Redis.from_url(settings.redis_url)
    engine = build_engine(repository, settings, redis)
    if redis is not None:
        restored = await engine.load_metrics(redis)
        logger.info("ai metrics restore attempted", restored=restored)
    return engine


async def shutdown_engine(engine: RecommendationEngine, store: Redis | None = None) -> None:
    """Flush metrics if a store is given, close provider clients and stop logging."""
    if store is not None:
        await engine.flush_metrics(store)
    await engine.close()
    logger.info("engine stopped")
    stop_logging()


async def maintenance_tick(engine: RecommendationEngine, store: Redis | None = None) -> None:
    """One maintenance pass: AI resource sweep, expired cache purge, metrics flush."""
    deleted = await engine.cleanup_ai_resources()
    purged = engine.purge_expired_cache()
    flushed = await engine.flush_metrics(store) if store is not None else False
    logger.info("maintenance pass done", deleted_resources=deleted, purged_cache_entries=purged, flushed=flushed)


async def run_maintenance(
    engine: RecommendationEngine,
    interval_seconds: float,
    stop: asyncio.Event,
    store: Redis | None = None,
) -> None:
    """Run :func:`maintenance_tick` every *interval_seconds* until *stop* is set."""
    while not stop.is_set():
        try:
            await maintenance_tick(engine, store)
        except Exception:
            logger.exception("maintenance pass failed")
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
    logger.info("maintenance stopped")
