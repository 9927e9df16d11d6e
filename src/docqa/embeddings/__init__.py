"""Embedding backends and the chunk vector store."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
    LangChainEmbeddingBackend,
    OpenAIEmbeddingBackend,
)
from .store import ChromaVectorStore, VectorStore

__all__ = [
    "ChromaVectorStore",
    "EmbeddingBackend",
    "EmbeddingConfig",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "LangChainEmbeddingBackend",
    "OpenAIEmbeddingBackend",
    "VectorStore",
]
