"""Embedding providers and the factory that builds one from config."""

from __future__ import annotations

import importlib.util
import os

from ..types import EmbeddingConfig, EmbeddingProvider, EmbeddingUnavailable
from .base import BaseEmbeddingProvider
from .hashing import HashEmbeddingProvider
from .local import SentenceTransformerProvider
from .openai import OpenAIEmbeddingProvider

PROVIDERS = ("openai", "sentence-transformers", "hash")


def create_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """Build the configured embedding provider.

    Raises ``EmbeddingUnavailable`` when the provider is unknown, its API key
    is missing, or its optional dependency is not installed.
    """
    if config.provider == "openai":
        api_key = config.api_key or os.environ.get(config.api_key_env, "")
        if not api_key:
            raise EmbeddingUnavailable(
                f"No API key for the openai embedding provider. "
                f"Set {config.api_key_env} or embedding.api_key."
            )
        return OpenAIEmbeddingProvider(
            api_key=api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    if config.provider == "sentence-transformers":
        if importlib.util.find_spec("sentence_transformers") is None:
            raise EmbeddingUnavailable(
                "sentence-transformers not installed. "
                "Install with: pip install context-optimizer[embeddings]"
            )
        return SentenceTransformerProvider(model_name=config.model)

    if config.provider == "hash":
        return HashEmbeddingProvider(dimensions=config.dimensions)

    raise EmbeddingUnavailable(f"Unknown embedding provider: {config.provider}")


__all__ = [
    "BaseEmbeddingProvider",
    "HashEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "PROVIDERS",
    "SentenceTransformerProvider",
    "create_embedding_provider",
]
