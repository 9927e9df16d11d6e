"""Runtime configuration for the docqa services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="docqa_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"

    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "docqa-chunks"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    # Embeddings; unset model and dimension fall back to the provider default
    embedding_provider: Literal["hash", "huggingface", "openai"] = "hash"
    embedding_model: str | None = None
    embedding_dim: int | None = None
    embedding_device: str | None = None

    completion_provider: Literal["template", "transformers", "openai"] = "template"
    completion_model: str = "gpt-4o-mini"
    completion_temperature: float = 0.7
    completion_max_tokens: int = 1000
    completion_device: str | None = None

    openai_api_key: str | None = None
    openai_base_url: str | None = None

    # Chunker budget, in estimated tokens (1 token ~ 4 characters)
    chunk_max_tokens: int = 800
    chunk_overlap_tokens: int = 100

    top_k: int = 5
    max_top_k: int = 20

    embedding_concurrency: int = 8
    embedding_timeout_seconds: float = 120.0
    search_timeout_seconds: float = 30.0
    completion_timeout_seconds: float = 120.0

    # API & upload safety
    allowed_extensions: tuple[str, ...] | str = (".pdf", ".txt", ".md")
    max_upload_size_mb: int = 25

    @property
    def allowed_extensions_tuple(self) -> tuple[str, ...]:
        value = self.allowed_extensions
        if isinstance(value, tuple):
            return value
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(",") if p.strip()]
            return tuple(parts) if parts else (".pdf",)
        return (".pdf",)


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
