"""Prioritizer: reorder items by relevance, recency, or a hybrid score.

Prioritization never drops items; it returns a permutation of its input,
highest score first. Sorts are stable, so equal scores keep input order.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from ..types import (
    STRATEGIES,
    ChatMessage,
    EmbedFn,
    EmbeddingProviderRequired,
    ScoredItem,
)
from .dedupe import FALLBACK_KEYWORD, FALLBACK_NONE, embed_batch
from .math_utils import cosine_similarity

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
SYNTHETIC_SPACING = timedelta(minutes=1)

CHUNK_WEIGHTS = {"relevance": 0.7, "recency": 0.3}
CHAT_WEIGHTS = {"relevance": 0.4, "recency": 0.2, "position": 0.3, "role": 0.1}

ROLE_SCORES = {"system": 1.0, "user": 0.8, "assistant": 0.6}
UNKNOWN_ROLE_SCORE = 0.5


def resolve_strategy(strategy: str | None) -> str:
    if strategy in STRATEGIES:
        return strategy
    if strategy:
        logger.debug("Unknown strategy %r, using hybrid", strategy)
    return "hybrid"


def role_importance(role: str | None) -> float:
    return ROLE_SCORES.get(role or "", UNKNOWN_ROLE_SCORE)


def recency_score(timestamp: datetime, now: datetime) -> float:
    """Linear decay from 1 (now) to 0 over 24 hours."""
    age_ms = (now - _as_utc(timestamp)).total_seconds() * 1000
    return min(1.0, max(0.0, 1 - age_ms / DAY_MS))


def keyword_relevance(query: str, text: str) -> float:
    """Fraction of query words that also appear in ``text``."""
    query_words = query.lower().split()
    if not query_words:
        return 0.0
    text_words = set(text.lower().split())
    return sum(1 for w in query_words if w in text_words) / len(query_words)


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _synthetic_timestamp(index: int, count: int, now: datetime) -> datetime:
    # Items get one minute more recent per position; the last one is "now".
    return now - SYNTHETIC_SPACING * (count - 1 - index)


def _build_items(
    texts: list[str],
    roles: list[str | None],
    timestamps: list[datetime | None],
    now: datetime,
) -> list[ScoredItem]:
    count = len(texts)
    return [
        ScoredItem(
            index=i,
            text=text,
            role=roles[i],
            timestamp=_as_utc(timestamps[i]) if timestamps[i] else _synthetic_timestamp(i, count, now),
        )
        for i, text in enumerate(texts)
    ]


def _score_relevance(
    items: list[ScoredItem],
    query: str,
    embed_fn: EmbedFn | None,
) -> None:
    if embed_fn is None:
        logger.warning("No embedding source, scoring relevance by keyword overlap")
        for item in items:
            item.relevance_score = keyword_relevance(query, item.text)
        return

    vectors = embed_batch(embed_fn, [query] + [item.text for item in items])
    query_vec = vectors[0]
    for item, vec in zip(items, vectors[1:]):
        item.embedding = vec
        item.relevance_score = cosine_similarity(query_vec, vec) if vec else 0.0


def _rank(
    texts: list[str],
    roles: list[str | None],
    timestamps: list[datetime | None],
    query: str,
    strategy: str | None,
    embed_fn: EmbedFn | None,
    chat: bool,
    now: datetime | None,
    fallback: str,
) -> list[ScoredItem]:
    if not texts:
        return []
    if embed_fn is None and fallback != FALLBACK_KEYWORD:
        raise EmbeddingProviderRequired(
            "An embedding source is required for semantic prioritization"
        )
    now = now or datetime.now(timezone.utc)
    strategy = resolve_strategy(strategy)

    items = _build_items(texts, roles, timestamps, now)
    _score_relevance(items, query, embed_fn)

    count = len(items)
    for item in items:
        item.recency_score = recency_score(item.timestamp, now)
        if chat:
            item.position_score = (item.index + 1) / count
            item.role_score = role_importance(item.role)
            item.hybrid_score = (
                CHAT_WEIGHTS["relevance"] * item.relevance_score
                + CHAT_WEIGHTS["recency"] * item.recency_score
                + CHAT_WEIGHTS["position"] * item.position_score
                + CHAT_WEIGHTS["role"] * item.role_score
            )
        else:
            item.hybrid_score = (
                CHUNK_WEIGHTS["relevance"] * item.relevance_score
                + CHUNK_WEIGHTS["recency"] * item.recency_score
            )

    if strategy == "recency":
        key = lambda item: item.timestamp  # noqa: E731
    elif strategy == "relevance":
        key = lambda item: item.relevance_score  # noqa: E731
    else:
        key = lambda item: item.hybrid_score  # noqa: E731

    return sorted(items, key=key, reverse=True)


def rank_chunks(
    chunks: list[str],
    query: str,
    strategy: str | None = "hybrid",
    embed_fn: EmbedFn | None = None,
    now: datetime | None = None,
    fallback: str = FALLBACK_NONE,
) -> list[ScoredItem]:
    """Score chunks and return them highest first. ``ScoredItem.index`` points into ``chunks``."""
    return _rank(
        chunks, [None] * len(chunks), [None] * len(chunks),
        query, strategy, embed_fn, chat=False, now=now, fallback=fallback,
    )


def rank_messages(
    messages: list[ChatMessage],
    query: str,
    strategy: str | None = "hybrid",
    embed_fn: EmbedFn | None = None,
    now: datetime | None = None,
    fallback: str = FALLBACK_NONE,
) -> list[ScoredItem]:
    """Score messages with the four-factor chat hybrid and return them highest first."""
    return _rank(
        [m.content for m in messages],
        [m.role for m in messages],
        [m.timestamp for m in messages],
        query, strategy, embed_fn, chat=True, now=now, fallback=fallback,
    )


def prioritize_chunks(
    chunks: list[str],
    query: str,
    strategy: str | None = "hybrid",
    embed_fn: EmbedFn | None = None,
    now: datetime | None = None,
    fallback: str = FALLBACK_NONE,
) -> list[str]:
    ranked = rank_chunks(chunks, query, strategy, embed_fn, now, fallback)
    return [chunks[item.index] for item in ranked]


def prioritize_messages(
    messages: list[ChatMessage],
    query: str,
    strategy: str | None = "hybrid",
    embed_fn: EmbedFn | None = None,
    now: datetime | None = None,
    fallback: str = FALLBACK_NONE,
) -> list[ChatMessage]:
    ranked = rank_messages(messages, query, strategy, embed_fn, now, fallback)
    return [messages[item.index] for item in ranked]


def prioritize_with_conversation_flow(
    messages: list[ChatMessage],
    query: str,
    embed_fn: EmbedFn | None = None,
    max_messages: int = 10,
    now: datetime | None = None,
    fallback: str = FALLBACK_NONE,
) -> list[ChatMessage]:
    """Select at most ``max_messages`` messages in chronological order.

    The last ``min(3, max_messages // 2)`` messages are always kept; the
    remaining slots go to the best hybrid-scored earlier messages.
    """
    if len(messages) <= max_messages:
        return list(messages)

    tail_size = min(3, max_messages // 2)
    head_size = len(messages) - tail_size
    head = messages[:head_size]
    tail_indices = list(range(head_size, len(messages)))
    slots = max_messages - tail_size

    if slots <= 0 or not head:
        return [messages[i] for i in tail_indices]

    ranked = rank_messages(head, query, "hybrid", embed_fn, now, fallback)
    selected = sorted([item.index for item in ranked[:slots]] + tail_indices)
    return [messages[i] for i in selected]
