"""Top-k retrieval on top of the embedding backend and vector store."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Protocol, Sequence

from docqa.embeddings.service import EmbeddingBackend
from docqa.embeddings.store import VectorStore
from docqa.errors import EmbeddingFailed, SearchFailed
from docqa.metrics.observability import PipelineMetrics, get_logger
from docqa.models import RetrievedChunk
from docqa.timeouts import call_with_timeout


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    top_k: int = 5
    max_top_k: int | None = 20
    embedding_timeout_seconds: float | None = 30.0
    search_timeout_seconds: float | None = 30.0


class Retriever(Protocol):
    """Retrieve relevant chunks for a question."""

    def retrieve(self, question: str, *, document_id: str | None = None, k: int | None = None) -> Sequence[RetrievedChunk]:
        """Return up to ``k`` chunks ordered by descending similarity."""


class VectorRetriever:
    """Single-pass nearest-neighbour retriever, optionally scoped to one document."""

    def __init__(
        self,
        embedding_backend: EmbeddingBackend,
        store: VectorStore,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._backend = embedding_backend
        self._store = store
        self._config = config or RetrievalConfig()
        self._logger = get_logger("retrieval")

    def retrieve(self, question: str, *, document_id: str | None = None, k: int | None = None) -> List[RetrievedChunk]:
        limit = self._config.top_k if k is None else k
        if self._config.max_top_k:
            limit = min(limit, self._config.max_top_k)
        if limit <= 0:
            return []

        start = time.perf_counter()
        try:
            vector = call_with_timeout(self._backend.embed, question, timeout=self._config.embedding_timeout_seconds)
        except Exception as exc:
            raise EmbeddingFailed(f"Failed to embed question: {exc}") from exc
        try:
            items = call_with_timeout(
                self._store.search,
                vector,
                k=limit,
                document_id=document_id,
                timeout=self._config.search_timeout_seconds,
            )
        except Exception as exc:
            raise SearchFailed(f"Failed to search chunks: {exc}") from exc

        results = sorted(items, key=lambda item: item.similarity, reverse=True)[:limit]
        if document_id:
            results = [item for item in results if item.chunk.document_id == document_id]
        duration = time.perf_counter() - start
        PipelineMetrics.observe_retrieval(duration, len(results), (item.similarity for item in results))
        self._logger.debug(
            "retrieval.search",
            document_id=document_id,
            k=limit,
            chunk_count=len(results),
            duration_seconds=duration,
        )
        return results
