"""Embedding backends for docqa."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Protocol, Sequence, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "text-embedding-3-small"
    dim: int = 1536
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    timeout_seconds: float | None = None


class EmbeddingBackend(Protocol):
    """Single-operation embedding capability: text in, fixed-length vector out."""

    def embed(self, text: str) -> Tuple[float, ...]:
        """Return the embedding vector for ``text``."""


def _normalize(vector: Sequence[float]) -> Tuple[float, ...]:
    norm = math.sqrt(sum(value * value for value in vector)) or 1.0
    return tuple(value / norm for value in vector)


class HashEmbeddingBackend:
    """Deterministic lightweight embedding used for tests and offline runs."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig(dim=384)

    def embed(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)


class LangChainEmbeddingBackend:
    """Adapts any LangChain ``Embeddings`` implementation to :class:`EmbeddingBackend`."""

    def __init__(self, client: LangChainEmbeddings, config: EmbeddingConfig | None = None) -> None:
        self._client = client
        self._config = config or EmbeddingConfig()
        self._dim_checked = False

    def embed(self, text: str) -> Tuple[float, ...]:
        vector = self._client.embed_query(text)
        if not self._dim_checked:
            self._dim_checked = True
            if len(vector) != self._config.dim:
                LOGGER.warning(
                    "Embedding dim mismatch: configured=%d, actual=%d",
                    self._config.dim,
                    len(vector),
                )
        if self._config.normalize:
            return _normalize(vector)
        return tuple(vector)


class HuggingFaceEmbeddingBackend(LangChainEmbeddingBackend):
    """Local sentence-embedding model loaded through LangChain."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        config = config or EmbeddingConfig(model="BAAI/bge-small-en-v1.5", dim=384)
        model_kwargs = {"device": config.device} if config.device else {}
        client = HuggingFaceEmbeddings(
            model_name=config.model,
            model_kwargs=model_kwargs,
            cache_folder=config.cache_folder,
            encode_kwargs={"normalize_embeddings": config.normalize},
        )
        LOGGER.info("Loaded embedding model %s", config.model)
        super().__init__(client, config)


class OpenAIEmbeddingBackend:
    """Embeddings from the OpenAI API (``text-embedding-3-small`` yields 1536 dims)."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        from openai import OpenAI

        self._config = config or EmbeddingConfig()
        self._client = OpenAI(
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            max_retries=0,
        )

    def embed(self, text: str) -> Tuple[float, ...]:
        response = self._client.embeddings.create(model=self._config.model, input=text)
        return tuple(response.data[0].embedding)
