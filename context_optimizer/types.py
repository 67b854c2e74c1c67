"""All dataclasses, Protocols, type aliases and errors for context-optimizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Literal, Protocol, runtime_checkable


EmbedFn = Callable[[list[str]], list[list[float]]]
TokenCounter = Callable[[str], int]

Strategy = Literal["relevance", "recency", "hybrid"]
STRATEGIES = ("relevance", "recency", "hybrid")

ROLES = ("system", "user", "assistant")


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

@dataclass
class ChatMessage:
    role: str  # "system", "user", "assistant"
    content: str
    timestamp: datetime | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> ChatMessage:
        ts = raw.get("timestamp")
        if isinstance(ts, str):
            ts = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        return cls(
            role=raw.get("role", "user"),
            content=raw.get("content", ""),
            timestamp=ts,
        )

    def to_dict(self) -> dict:
        d = {"role": self.role, "content": self.content}
        if self.timestamp is not None:
            d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass
class ScoredItem:
    """An item plus its scores for one prioritization run. Never leaves the core."""
    index: int                     # position in the list handed to the prioritizer
    text: str
    timestamp: datetime
    role: str | None = None
    embedding: list[float] | None = None
    relevance_score: float = 0.0
    recency_score: float = 0.0
    position_score: float = 0.0
    role_score: float = 0.0
    hybrid_score: float = 0.0


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class OptimizeResult:
    final_text: str
    token_count: int
    dropped_items: list[str] = field(default_factory=list)


@dataclass
class ChatOptimizeResult:
    kept_messages: list[ChatMessage] = field(default_factory=list)
    token_count: int = 0
    removed_messages: list[ChatMessage] = field(default_factory=list)


@dataclass
class TokenAnalysis:
    token_count: int
    word_count: int
    character_count: int
    breakdown: dict | None = None
    recommendations: list[str] = field(default_factory=list)


def _dump(item: str | ChatMessage):
    return item.to_dict() if isinstance(item, ChatMessage) else item


@dataclass
class DuplicateMatch:
    """A removed item and the kept item it was closest to. Both are input positions."""
    index: int
    similar_to: int  # -1 when no kept item shares the category
    similarity: float


@dataclass
class DedupeReport:
    kept: list
    duplicates: list[DuplicateMatch] = field(default_factory=list)

    @property
    def average_similarity(self) -> float:
        if not self.duplicates:
            return 0.0
        return sum(d.similarity for d in self.duplicates) / len(self.duplicates)

    def to_dict(self, items: list) -> dict:
        """JSON shape of the report; ``items`` is the list that was deduplicated."""
        return {
            "deduplicated": [_dump(item) for item in self.kept],
            "duplicates_removed": [
                {
                    "content": _dump(items[d.index]),
                    "similar_to": _dump(items[d.similar_to]) if d.similar_to >= 0 else None,
                    "similarity": round(d.similarity, 3),
                }
                for d in self.duplicates
            ],
            "original_count": len(items),
            "kept_count": len(self.kept),
            "removed_count": len(items) - len(self.kept),
            "average_similarity": round(self.average_similarity, 3),
        }


@dataclass
class RankedItem:
    """A prioritized item with the score it was ordered by."""
    index: int  # position in the input
    item: str | ChatMessage
    score: float
    relevance_score: float
    recency_score: float

    def to_dict(self) -> dict:
        return {
            "content": _dump(self.item),
            "index": self.index,
            "score": round(self.score, 3),
            "relevance_score": round(self.relevance_score, 3),
            "recency_score": round(self.recency_score, 3),
        }


def ranking_summary(ranked: list[RankedItem], strategy: str) -> dict:
    scores = [r.score for r in ranked]
    return {
        "total_items": len(ranked),
        "strategy": strategy,
        "average_score": round(sum(scores) / len(scores), 3) if scores else 0.0,
        "top_score": round(max(scores), 3) if scores else 0.0,
        "lowest_score": round(min(scores), 3) if scores else 0.0,
    }


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class OptimizerError(Exception):
    """Base class for every error raised by context-optimizer."""


class InvalidInput(OptimizerError, ValueError):
    """Empty required string, non-positive budget, mismatched vectors."""


class EmptyQuery(InvalidInput):
    pass


class InvalidBudget(InvalidInput):
    pass


class DimensionMismatch(InvalidInput):
    pass


class EmbeddingProviderRequired(OptimizerError):
    """A semantic operation was called without an embedding source."""


class EmbeddingUnavailable(OptimizerError):
    """No credential or configuration to construct an embedding source."""


class ProviderError(OptimizerError):
    def __init__(self, message: str, provider: str, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


@runtime_checkable
class EmbeddingProvider(Protocol):
    def embed(self, texts: list[str]) -> list[list[float]]: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class EmbeddingConfig:
    provider: str = "openai"  # "openai", "sentence-transformers", "hash"
    model: str = "text-embedding-3-small"
    api_key: str = ""
    api_key_env: str = "OPENAI_API_KEY"
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 30.0
    dimensions: int = 64  # hash provider only
    fallback: str = "none"  # "none" or "keyword"


@dataclass
class DedupeConfig:
    enabled: bool = True
    threshold: float = 0.9
    user_threshold: float = 0.85
    assistant_threshold: float = 0.9


@dataclass
class PrioritizationConfig:
    strategy: str = "hybrid"
    conversation_flow_max_messages: int = 10


@dataclass
class ChunkConfig:
    prompt_buffer_tokens: int = 10


@dataclass
class ChatConfig:
    preserve_system: bool = True
    preserve_last_n: int = 0
    buffer_tokens: int = 50
    restore_order: bool = True


@dataclass
class OptimizerConfig:
    version: str = "1.0"
    token_counter: str = "estimate"
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    dedupe: DedupeConfig = field(default_factory=DedupeConfig)
    prioritization: PrioritizationConfig = field(default_factory=PrioritizationConfig)
    chunks: ChunkConfig = field(default_factory=ChunkConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
