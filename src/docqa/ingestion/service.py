"""Document ingestion pipeline for docqa."""

from __future__ import annotations

import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Protocol, Sequence

from docqa.embeddings.service import EmbeddingBackend
from docqa.embeddings.store import VectorStore
from docqa.errors import EmbeddingFailed, ExtractionEmpty, InputInvalid, StorageFailed
from docqa.ingestion.chunker import DEFAULT_MAX_TOKENS, DEFAULT_OVERLAP_TOKENS, chunk_text
from docqa.ingestion.extraction import extract_pages
from docqa.metrics.observability import PipelineMetrics, get_logger
from docqa.models import Chunk, Document, new_document_id


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for document ingestion."""

    max_tokens: int = DEFAULT_MAX_TOKENS
    overlap_tokens: int = DEFAULT_OVERLAP_TOKENS
    max_concurrency: int = 8
    embedding_timeout_seconds: float | None = 120.0
    encoding: str = "utf-8"


class DocumentIngestor(Protocol):
    """Protocol for ingestion implementations."""

    def ingest(self, document_name: str, page_texts: Sequence[str]) -> Document:
        """Chunk, embed and persist one document's pages."""


def build_chunks(document_id: str, page_texts: Sequence[str], config: IngestionConfig | None = None) -> List[Chunk]:
    """Chunk every page, numbering pages from 1 and chunks from 0 across the document."""

    config = config or IngestionConfig()
    chunks: List[Chunk] = []
    for page_number, page_text in enumerate(page_texts, start=1):
        for content in chunk_text(page_text, config.max_tokens, config.overlap_tokens):
            chunks.append(
                Chunk(
                    content=content,
                    page_number=page_number,
                    chunk_index=len(chunks),
                    document_id=document_id,
                ),
            )
    return chunks


class IngestionPipeline:
    """Turns a sequence of page texts into a persisted, searchable document."""

    _logger = get_logger("ingestion")

    def __init__(
        self,
        embedding_backend: EmbeddingBackend,
        store: VectorStore,
        config: IngestionConfig | None = None,
    ) -> None:
        self._backend = embedding_backend
        self._store = store
        self._config = config or IngestionConfig()

    def ingest(self, document_name: str, page_texts: Sequence[str]) -> Document:
        if not document_name or not document_name.strip():
            raise InputInvalid("No document name provided")
        if not page_texts or not any(page.strip() for page in page_texts):
            raise ExtractionEmpty(f"No usable text extracted from {document_name}")

        start = time.perf_counter()
        document_id = new_document_id()
        chunks = build_chunks(document_id, page_texts, self._config)
        document = Document(
            id=document_id,
            filename=document_name,
            total_pages=len(page_texts),
            total_chunks=len(chunks),
        )

        try:
            embedded = self._embed_all(chunks)
        except EmbeddingFailed as exc:
            PipelineMetrics.observe_failure(exc.code)
            self._logger.error("ingestion.failed", document_id=document_id, code=exc.code, detail=str(exc))
            raise
        self._persist(document, embedded)

        duration = time.perf_counter() - start
        PipelineMetrics.observe_ingestion(duration, len(chunks))
        self._logger.info(
            "ingestion.complete",
            document_id=document_id,
            filename=document_name,
            page_count=document.total_pages,
            chunk_count=document.total_chunks,
            duration_seconds=duration,
        )
        return document

    def ingest_file(self, path: Path, *, filename: str | None = None) -> Document:
        """Extract page texts from ``path`` and ingest them."""

        pages = extract_pages(path, encoding=self._config.encoding)
        return self.ingest(filename or path.name, pages)

    def _embed_all(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        start = time.perf_counter()
        timeout = self._config.embedding_timeout_seconds
        started: Dict[int, float] = {}
        workers = max(1, min(self._config.max_concurrency, len(chunks)))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="docqa-embed")
        try:
            futures: Dict[Future, Chunk] = {
                executor.submit(self._embed_one, chunk, started): chunk for chunk in chunks
            }
            pending = set(futures)
            while pending:
                done, pending = wait(
                    pending,
                    timeout=self._next_expiry(pending, futures, started, timeout),
                    return_when=FIRST_EXCEPTION,
                )
                failed = next((f for f in done if f.exception() is not None), None)
                if failed is not None:
                    exc = failed.exception()
                    raise EmbeddingFailed(f"Embedding failed for chunk {futures[failed].chunk_index}: {exc}") from exc
                stalled = self._stalled(pending, futures, started, timeout)
                if stalled is not None:
                    raise EmbeddingFailed(
                        f"Embedding timed out after {timeout}s for chunk {stalled.chunk_index} "
                        f"with {len(pending)} of {len(chunks)} chunks outstanding",
                    )
            embedded = [replace(chunk, embedding=tuple(future.result())) for future, chunk in futures.items()]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        PipelineMetrics.observe_embedding(time.perf_counter() - start)
        embedded.sort(key=lambda chunk: chunk.chunk_index)
        return embedded

    def _embed_one(self, chunk: Chunk, started: Dict[int, float]) -> Sequence[float]:
        started[chunk.chunk_index] = time.monotonic()
        return self._backend.embed(chunk.content)

    @staticmethod
    def _next_expiry(
        pending: Iterable[Future],
        futures: Mapping[Future, Chunk],
        started: Mapping[int, float],
        timeout: float | None,
    ) -> float | None:
        # Each call gets its own budget, measured from when a worker picks it up.
        if timeout is None:
            return None
        running = [started[futures[f].chunk_index] for f in pending if futures[f].chunk_index in started]
        if not running:
            return timeout
        return max(0.0, min(running) + timeout - time.monotonic())

    @staticmethod
    def _stalled(
        pending: Iterable[Future],
        futures: Mapping[Future, Chunk],
        started: Mapping[int, float],
        timeout: float | None,
    ) -> Chunk | None:
        if timeout is None:
            return None
        now = time.monotonic()
        for future in pending:
            chunk = futures[future]
            began = started.get(chunk.chunk_index)
            if began is not None and now - began >= timeout:
                return chunk
        return None

    def _persist(self, document: Document, chunks: Sequence[Chunk]) -> None:
        try:
            self._store.insert(document, chunks)
        except Exception as exc:
            PipelineMetrics.observe_failure(StorageFailed.code)
            self._logger.error("ingestion.storage_failed", document_id=document.id, detail=str(exc))
            self._rollback(document.id)
            raise StorageFailed(f"Failed to store document {document.filename}: {exc}") from exc

    def _rollback(self, document_id: str) -> None:
        try:
            self._store.delete_document(document_id)
        except Exception as exc:  # pragma: no cover - store already failing
            self._logger.error("ingestion.rollback_failed", document_id=document_id, detail=str(exc))
