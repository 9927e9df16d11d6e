"""Shared domain models used across the docqa pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Sequence, Tuple
from uuid import uuid4

EXCERPT_LENGTH = 150
EXCERPT_MARKER = "..."


def new_document_id() -> str:
    return f"doc_{uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Document:
    """An ingested document. Immutable; deleted together with its chunks."""

    id: str
    filename: str
    total_pages: int
    total_chunks: int
    uploaded_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Chunk:
    """Page-scoped text segment, the unit of retrieval."""

    content: str
    page_number: int
    chunk_index: int
    document_id: str
    embedding: Tuple[float, ...] | None = field(default=None, repr=False, compare=False)

    @property
    def chunk_id(self) -> str:
        return f"{self.document_id}-{self.chunk_index}"


@dataclass(frozen=True)
class RetrievedChunk:
    """Chunk returned from the vector store with its cosine similarity."""

    chunk: Chunk
    similarity: float


@dataclass(frozen=True)
class Citation:
    """A (page, excerpt) pointer back to a chunk shown to the model."""

    page: int
    text: str

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> "Citation":
        content = chunk.content
        if len(content) > EXCERPT_LENGTH:
            content = content[:EXCERPT_LENGTH] + EXCERPT_MARKER
        return cls(page=chunk.page_number, text=content)


@dataclass(frozen=True)
class SamplingConfig:
    """Sampling parameters passed to the completion service."""

    temperature: float = 0.7
    max_tokens: int = 1000


@dataclass(frozen=True)
class Answer:
    """Grounded answer with the citations of the chunks used as context."""

    text: str
    citations: Sequence[Citation]
    query_id: str
    latency_ms: float
    chunks: Sequence[RetrievedChunk] = ()
    retrieval_ms: float | None = None
    generation_ms: float | None = None

    def as_message(self) -> "ChatMessage":
        return ChatMessage(role="assistant", content=self.text, citations=tuple(self.citations))


@dataclass(frozen=True)
class ChatMessage:
    """Session-local transcript entry; never persisted."""

    role: Literal["user", "assistant"]
    content: str
    citations: Sequence[Citation] = ()
