from __future__ import annotations

import pytest

from docqa.api.app import build_embedding_config
from docqa.config import get_settings


def test_defaults_match_reference_models():
    settings = get_settings({})
    assert settings.embedding_provider == "hash"
    assert settings.embedding_model is None
    assert settings.completion_model == "gpt-4o-mini"


@pytest.mark.parametrize(
    ("provider", "model", "dim"),
    [
        ("openai", "text-embedding-3-small", 1536),
        ("huggingface", "BAAI/bge-small-en-v1.5", 384),
        ("hash", "hash", 384),
    ],
)
def test_embedding_model_defaults_follow_provider(provider: str, model: str, dim: int):
    config = build_embedding_config(get_settings({"embedding_provider": provider}))
    assert (config.model, config.dim) == (model, dim)


def test_explicit_embedding_model_wins_over_provider_default():
    settings = get_settings(
        {"embedding_provider": "huggingface", "embedding_model": "intfloat/e5-small-v2", "embedding_dim": 512},
    )
    config = build_embedding_config(settings)
    assert (config.model, config.dim) == ("intfloat/e5-small-v2", 512)


def test_chunking_and_sampling_defaults():
    settings = get_settings({})
    assert settings.chunk_max_tokens == 800
    assert settings.chunk_overlap_tokens == 100
    assert settings.top_k == 5
    assert settings.completion_temperature == 0.7
    assert settings.completion_max_tokens == 1000


def test_override_does_not_touch_cached_settings():
    overridden = get_settings({"top_k": 9, "environment": "test"})
    assert overridden.top_k == 9
    assert overridden.environment == "test"
    assert get_settings().top_k == 5


def test_allowed_extensions_accept_comma_separated_string():
    settings = get_settings({"allowed_extensions": ".pdf, .txt"})
    assert settings.allowed_extensions_tuple == (".pdf", ".txt")
