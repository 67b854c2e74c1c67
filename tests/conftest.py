"""Shared fixtures for context-optimizer tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from context_optimizer.config import load_config
from context_optimizer.types import ChatMessage, OptimizerConfig


class FakeEmbedder:
    """Table-driven embedder that records every batch it receives (no API calls).

    Texts missing from the table get ``default``, or a zero vector.
    """

    def __init__(self, vectors: dict[str, list[float]], default: list[float] | None = None):
        self.vectors = vectors
        dims = len(next(iter(vectors.values()))) if vectors else 3
        self.default = default or [0.0] * dims
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [list(self.vectors.get(t, self.default)) for t in texts]

    __call__ = embed


def word_count(text: str) -> int:
    """Token counter for tests: one token per whitespace-separated word."""
    return len(text.split())


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def apple_vectors() -> dict[str, list[float]]:
    return {
        "Apple earnings": [0.9, 0.1, 0.1],
        "Apple revenue rose 15%": [1.0, 0.0, 0.0],
        "Apple revenue rose fifteen percent": [0.99, 0.14, 0.0],
        "Bananas are yellow": [0.0, 0.1, 1.0],
    }


@pytest.fixture
def apple_chunks() -> list[str]:
    return [
        "Apple revenue rose 15%",
        "Apple revenue rose fifteen percent",
        "Bananas are yellow",
    ]


@pytest.fixture
def apple_embedder(apple_vectors) -> FakeEmbedder:
    return FakeEmbedder(apple_vectors)


@pytest.fixture
def conversation(now) -> list[ChatMessage]:
    base = now - timedelta(minutes=30)
    return [
        ChatMessage(role="system", content="You are a billing assistant.", timestamp=base),
        ChatMessage(role="user", content="How do I update my card?", timestamp=base + timedelta(minutes=1)),
        ChatMessage(role="assistant", content="Open Settings then Billing then Card.", timestamp=base + timedelta(minutes=2)),
        ChatMessage(role="user", content="How can I change my credit card?", timestamp=base + timedelta(minutes=3)),
        ChatMessage(role="assistant", content="Go to Settings, Billing, Card.", timestamp=base + timedelta(minutes=4)),
        ChatMessage(role="user", content="What about invoices?", timestamp=base + timedelta(minutes=5)),
    ]


@pytest.fixture
def conversation_vectors() -> dict[str, list[float]]:
    return {
        "You are a billing assistant.": [0.0, 0.0, 1.0],
        "How do I update my card?": [1.0, 0.0, 0.0],
        "Open Settings then Billing then Card.": [0.0, 1.0, 0.0],
        "How can I change my credit card?": [0.98, 0.2, 0.0],
        "Go to Settings, Billing, Card.": [0.1, 0.99, 0.0],
        "What about invoices?": [0.3, 0.3, 0.9],
    }


@pytest.fixture
def hash_config() -> OptimizerConfig:
    return load_config(config_dict={"embedding": {"provider": "hash", "dimensions": 32}})
