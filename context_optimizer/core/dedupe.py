"""Deduplicator: greedy near-duplicate suppression over embeddings.

Items are partitioned by category (conversational role for chat messages,
a single shared category for plain chunks). Within a category the first
occurrence always wins: each item is compared against every item already
kept in that category and dropped if any similarity reaches the threshold.
Kept items are identified by their original index and come back in
original input order.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..types import ChatMessage, DuplicateMatch, EmbedFn, EmbeddingProviderRequired, ProviderError
from .math_utils import cosine_similarity, find_most_similar

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.9
USER_THRESHOLD = 0.85
ASSISTANT_THRESHOLD = 0.9

FALLBACK_NONE = "none"
FALLBACK_KEYWORD = "keyword"


def _source_name(embed_fn: EmbedFn) -> str:
    owner = getattr(embed_fn, "__self__", None)
    name = getattr(owner, "_provider_name", None)
    return name() if callable(name) else "embed"


def embed_batch(embed_fn: EmbedFn, texts: list[str]) -> list[list[float]]:
    """Run one batched embedding call and check the result lines up with the input."""
    if not texts:
        return []
    vectors = embed_fn(texts)
    if len(vectors) != len(texts):
        raise ProviderError(
            f"Embedding source returned {len(vectors)} vectors for {len(texts)} inputs",
            provider=_source_name(embed_fn),
        )
    return vectors


def _normalize(text: str) -> str:
    return text.strip().lower()


def dedupe_indices(
    texts: Sequence[str],
    categories: Sequence[str | None],
    embed_fn: EmbedFn | None,
    threshold: float = DEFAULT_THRESHOLD,
    fallback: str = FALLBACK_NONE,
) -> list[int]:
    """Return the sorted original indices of the items to keep.

    ``categories[i]`` is the partition key of item ``i``; cross-category
    pairs are never compared.
    """
    if not texts:
        return []
    if embed_fn is None and fallback != FALLBACK_KEYWORD:
        raise EmbeddingProviderRequired(
            "An embedding source is required for semantic deduplication"
        )
    if len(texts) == 1:
        return [0]

    groups: dict[str | None, list[int]] = {}
    for i, category in enumerate(categories):
        groups.setdefault(category, []).append(i)

    kept: list[int] = []

    if embed_fn is None:
        logger.warning("No embedding source, deduplicating by normalized text")
        for members in groups.values():
            seen: set[str] = set()
            for i in members:
                key = _normalize(texts[i])
                if key not in seen:
                    seen.add(key)
                    kept.append(i)
        return sorted(kept)

    # Singleton categories need no comparison, so they are never embedded.
    to_embed = [i for members in groups.values() if len(members) > 1 for i in members]
    vectors = embed_batch(embed_fn, [texts[i] for i in to_embed])
    by_index = dict(zip(to_embed, vectors))

    for members in groups.values():
        if len(members) == 1:
            kept.append(members[0])
            continue
        kept_vectors: list[list[float]] = []
        for i in members:
            vec = by_index[i]
            if any(cosine_similarity(vec, other) >= threshold for other in kept_vectors):
                continue
            kept.append(i)
            kept_vectors.append(vec)

    logger.debug("Deduplicated %d items to %d (threshold=%.2f)", len(texts), len(kept), threshold)
    return sorted(kept)


def deduplicate_chunks(
    chunks: list[str],
    embed_fn: EmbedFn | None,
    threshold: float = DEFAULT_THRESHOLD,
    fallback: str = FALLBACK_NONE,
) -> list[str]:
    """Drop chunks that are near-duplicates of an earlier chunk."""
    keep = dedupe_indices(chunks, [None] * len(chunks), embed_fn, threshold, fallback)
    return [chunks[i] for i in keep]


def deduplicate_messages(
    messages: list[ChatMessage],
    embed_fn: EmbedFn | None,
    threshold: float = DEFAULT_THRESHOLD,
    fallback: str = FALLBACK_NONE,
) -> list[ChatMessage]:
    """Drop messages that repeat an earlier message of the same role."""
    keep = dedupe_indices(
        [m.content for m in messages],
        [m.role for m in messages],
        embed_fn,
        threshold,
        fallback,
    )
    return [messages[i] for i in keep]


def dedupe_role_indices(
    messages: list[ChatMessage],
    role: str,
    embed_fn: EmbedFn | None,
    threshold: float = DEFAULT_THRESHOLD,
    fallback: str = FALLBACK_NONE,
) -> list[int]:
    """Like ``dedupe_indices`` for messages, but only ``role`` is deduplicated."""
    positions = [i for i, m in enumerate(messages) if m.role == role]
    if len(positions) <= 1:
        return list(range(len(messages)))
    keep = dedupe_indices(
        [messages[i].content for i in positions],
        [role] * len(positions),
        embed_fn,
        threshold,
        fallback,
    )
    dropped = set(positions) - {positions[k] for k in keep}
    return [i for i in range(len(messages)) if i not in dropped]


def deduplicate_role(
    messages: list[ChatMessage],
    role: str,
    embed_fn: EmbedFn | None,
    threshold: float = DEFAULT_THRESHOLD,
    fallback: str = FALLBACK_NONE,
) -> list[ChatMessage]:
    """Deduplicate only messages of ``role``; every other message passes through."""
    keep = dedupe_role_indices(messages, role, embed_fn, threshold, fallback)
    return [messages[i] for i in keep]


def deduplicate_user_messages(
    messages: list[ChatMessage],
    embed_fn: EmbedFn | None,
    threshold: float = USER_THRESHOLD,
    fallback: str = FALLBACK_NONE,
) -> list[ChatMessage]:
    return deduplicate_role(messages, "user", embed_fn, threshold, fallback)


def deduplicate_assistant_messages(
    messages: list[ChatMessage],
    embed_fn: EmbedFn | None,
    threshold: float = ASSISTANT_THRESHOLD,
    fallback: str = FALLBACK_NONE,
) -> list[ChatMessage]:
    return deduplicate_role(messages, "assistant", embed_fn, threshold, fallback)


def match_duplicates(
    texts: Sequence[str],
    categories: Sequence[str | None],
    keep: Sequence[int],
    embed_fn: EmbedFn | None,
) -> list[DuplicateMatch]:
    """Pair every dropped item with the most similar kept item of its category.

    ``keep`` is the output of ``dedupe_indices`` for the same inputs. Only
    categories that lost an item are embedded, in one batch. Without an
    embedding source, matches are by normalized text with similarity 1.0.
    """
    kept_set = set(keep)
    dropped = [i for i in range(len(texts)) if i not in kept_set]
    if not dropped:
        return []

    kept_by_category: dict[str | None, list[int]] = {}
    for i in keep:
        kept_by_category.setdefault(categories[i], []).append(i)

    if embed_fn is None:
        matches = []
        for i in dropped:
            key = _normalize(texts[i])
            candidates = kept_by_category.get(categories[i], [])
            j = next((k for k in candidates if _normalize(texts[k]) == key), -1)
            matches.append(DuplicateMatch(i, j, 1.0 if j >= 0 else 0.0))
        return matches

    lossy = {categories[i] for i in dropped}
    to_embed = [i for i in range(len(texts)) if categories[i] in lossy]
    vectors = dict(zip(to_embed, embed_batch(embed_fn, [texts[i] for i in to_embed])))

    matches = []
    for i in dropped:
        candidates = kept_by_category.get(categories[i], [])
        best, similarity = find_most_similar(vectors[i], [vectors[k] for k in candidates])
        if best < 0:
            matches.append(DuplicateMatch(i, -1, 0.0))
        else:
            matches.append(DuplicateMatch(i, candidates[best], similarity))
    return matches
