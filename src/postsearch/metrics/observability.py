"""Observability helpers for postsearch."""

from __future__ import annotations

import logging
import time

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def get_logger(name: str = "postsearch") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    extraction_outcomes = Counter(
        "postsearch_extraction_total",
        "Extraction attempts by detected format and outcome.",
        ["format", "success"],
    )
    chunks_per_document = Histogram(
        "postsearch_chunks_per_document",
        "Chunks produced per indexed document.",
        buckets=(1, 2, 3, 5, 8, 13, 20),
    )
    embedding_latency = Histogram(
        "postsearch_embedding_duration_seconds",
        "Time spent waiting on the embedding model per batch.",
        buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    )
    indexing_outcomes = Counter(
        "postsearch_indexing_total",
        "Indexing passes by outcome.",
        ["status"],
    )
    search_latency = Histogram(
        "postsearch_search_duration_seconds",
        "Time spent serving a search request.",
        ["mode"],
        buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
    )
    search_fallbacks = Counter(
        "postsearch_search_fallback_total",
        "Searches that fell back to keyword results.",
    )

    @classmethod
    def observe_extraction(cls, content_format: str, success: bool) -> None:
        cls.extraction_outcomes.labels(format=content_format, success=str(success).lower()).inc()

    @classmethod
    def observe_embedding_batch(cls, duration_seconds: float) -> None:
        cls.embedding_latency.observe(duration_seconds)

    @classmethod
    def observe_indexing(cls, status: str, chunk_count: int = 0) -> None:
        cls.indexing_outcomes.labels(status=status).inc()
        if chunk_count:
            cls.chunks_per_document.observe(chunk_count)

    @classmethod
    def observe_search(cls, mode: str, duration_seconds: float, fallback: bool = False) -> None:
        cls.search_latency.labels(mode=mode).observe(duration_seconds)
        if fallback:
            cls.search_fallbacks.inc()


class TimedSection:
    """Context manager reporting elapsed seconds to ``callback`` and keeping them on ``duration``."""

    def __init__(self, callback) -> None:
        self._callback = callback
        self._start = 0.0
        self.duration = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.duration = time.perf_counter() - self._start
        self._callback(self.duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "configure_logging",
    "get_logger",
]
