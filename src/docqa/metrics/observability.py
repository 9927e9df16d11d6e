"""Observability helpers for docqa."""

from __future__ import annotations

import logging
from typing import Iterable

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


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "docqa") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    ingestion_latency = Histogram(
        "docqa_ingestion_duration_seconds",
        "Time spent ingesting a document.",
        buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    )
    ingestion_chunks = Histogram(
        "docqa_ingestion_chunk_count",
        "Chunks produced per ingested document.",
        buckets=(0, 1, 5, 10, 25, 50, 100, 250),
    )
    embedding_latency = Histogram(
        "docqa_embedding_duration_seconds",
        "Time spent embedding all chunks of a document.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    )
    retrieval_latency = Histogram(
        "docqa_retrieval_duration_seconds",
        "Time spent retrieving context chunks.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieved_chunk_count = Histogram(
        "docqa_retrieved_chunk_count",
        "Number of chunks returned by retrieval.",
        buckets=(0, 1, 2, 3, 5, 8, 13, 20),
    )
    similarity_score = Histogram(
        "docqa_similarity_score",
        "Cosine similarity of retrieved chunks.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "docqa_generation_duration_seconds",
        "Time spent generating answers.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    failures = Counter(
        "docqa_failures_total",
        "Units of work aborted, by error code.",
        ["code"],
    )

    @classmethod
    def observe_ingestion(cls, duration_seconds: float, chunk_count: int) -> None:
        cls.ingestion_latency.observe(duration_seconds)
        cls.ingestion_chunks.observe(chunk_count)

    @classmethod
    def observe_embedding(cls, duration_seconds: float) -> None:
        cls.embedding_latency.observe(duration_seconds)

    @classmethod
    def observe_retrieval(
        cls,
        duration_seconds: float,
        chunk_count: int,
        scores: Iterable[float],
    ) -> None:
        cls.retrieval_latency.observe(duration_seconds)
        cls.retrieved_chunk_count.observe(chunk_count)
        for score in scores:
            cls.similarity_score.observe(_clamp_score(score))

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)

    @classmethod
    def observe_failure(cls, code: str) -> None:
        cls.failures.labels(code=code).inc()


__all__ = [
    "PipelineMetrics",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
