"""Document ingestion pipeline."""

from .chunker import chunk_text, estimate_tokens, iter_chunks
from .extraction import SUPPORTED_EXTENSIONS, extract_pages
from .service import DocumentIngestor, IngestionConfig, IngestionPipeline, build_chunks

__all__ = [
    "DocumentIngestor",
    "IngestionConfig",
    "IngestionPipeline",
    "SUPPORTED_EXTENSIONS",
    "build_chunks",
    "chunk_text",
    "estimate_tokens",
    "extract_pages",
    "iter_chunks",
]
