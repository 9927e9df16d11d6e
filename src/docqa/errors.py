"""Failure taxonomy shared by ingestion and question answering.

Every external-call failure aborts the current unit of work (one ingestion or
one question) and surfaces as one of these types. Nothing here is retried.
"""

from __future__ import annotations


class DocQAError(RuntimeError):
    """Base class for typed pipeline failures."""

    code = "docqa_error"
    status_code = 500


class InputInvalid(DocQAError):
    """Missing or empty file, document name or question."""

    code = "input_invalid"
    status_code = 400


class ExtractionEmpty(DocQAError):
    """Extraction produced no usable page text."""

    code = "extraction_empty"
    status_code = 422


class EmbeddingFailed(DocQAError):
    """The embedding service failed, at ingestion or query time."""

    code = "embedding_failed"
    status_code = 502


class SearchFailed(DocQAError):
    """The vector store similarity query failed."""

    code = "search_failed"
    status_code = 502


class StorageFailed(DocQAError):
    """Persisting or deleting a document failed."""

    code = "storage_failed"
    status_code = 500


class CompletionFailed(DocQAError):
    """The completion service failed."""

    code = "completion_failed"
    status_code = 502


__all__ = [
    "CompletionFailed",
    "DocQAError",
    "EmbeddingFailed",
    "ExtractionEmpty",
    "InputInvalid",
    "SearchFailed",
    "StorageFailed",
]
