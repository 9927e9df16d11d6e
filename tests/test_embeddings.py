from __future__ import annotations

import math

from docqa.embeddings.service import EmbeddingConfig, HashEmbeddingBackend, LangChainEmbeddingBackend


class FakeLangChainEmbeddings:
    def __init__(self) -> None:
        self.queries: list[str] = []

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return [3.0, 4.0]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(text) for text in texts]


def test_hash_embedding_dim_matches_config():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=64))
    vec = backend.embed("hello world")
    assert isinstance(vec, tuple)
    assert len(vec) == 64


def test_hash_embedding_is_deterministic_and_normalized():
    backend = HashEmbeddingBackend(EmbeddingConfig(dim=32))
    first = backend.embed("alpha")
    assert first == backend.embed("alpha")
    assert first != backend.embed("beta")
    assert math.isclose(math.sqrt(sum(v * v for v in first)), 1.0, rel_tol=1e-9)


def test_langchain_adapter_normalizes_vectors():
    client = FakeLangChainEmbeddings()
    backend = LangChainEmbeddingBackend(client, EmbeddingConfig(dim=2))
    assert backend.embed("question") == (0.6, 0.8)
    assert client.queries == ["question"]


def test_langchain_adapter_can_skip_normalization():
    backend = LangChainEmbeddingBackend(FakeLangChainEmbeddings(), EmbeddingConfig(dim=2, normalize=False))
    assert backend.embed("question") == (3.0, 4.0)
