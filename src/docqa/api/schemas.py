"""Pydantic models for the docqa API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from docqa.config import get_settings
from docqa.models import Citation, Document


class DocumentModel(BaseModel):
    id: str = Field(..., description="Opaque identifier generated at ingestion time")
    filename: str
    total_pages: int = Field(..., ge=0, description="Number of page texts produced by extraction")
    total_chunks: int = Field(..., ge=0, description="Number of chunks created for the document")
    uploaded_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentModel":
        return cls(
            id=document.id,
            filename=document.filename,
            total_pages=document.total_pages,
            total_chunks=document.total_chunks,
            uploaded_at=document.uploaded_at,
        )


class DocumentListResponse(BaseModel):
    documents: List[DocumentModel]


class PagesIngestionRequest(BaseModel):
    """Payload for ingesting already-extracted page texts."""

    filename: str = Field(..., description="Display name of the document")
    pages: List[str] = Field(..., description="Page texts in order, one per physical page")


class AskRequest(BaseModel):
    question: str = Field(..., description="End-user question to answer")
    document_id: Optional[str] = Field(default=None, description="Restrict retrieval to this document")
    top_k: Optional[int] = Field(
        default=None,
        ge=0,
        le=get_settings().max_top_k,
        description="Override the number of retrieved chunks",
    )


class CitationModel(BaseModel):
    page: int
    text: str

    @classmethod
    def from_citation(cls, citation: Citation) -> "CitationModel":
        return cls(page=citation.page, text=citation.text)


class AskResponse(BaseModel):
    query_id: str
    answer: str
    citations: List[CitationModel]
    latency_ms: float
    retrieval_ms: Optional[float] = None
    generation_ms: Optional[float] = None


class ErrorResponse(BaseModel):
    detail: str
    code: str
    correlation_id: str
