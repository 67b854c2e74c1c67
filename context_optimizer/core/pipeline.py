"""Pipelines: deduplicate, prioritize, then trim to a token budget.

Two flavors share the same stages. ``optimize_chunks`` works on free-text
context chunks and prepends the query; ``optimize_chat`` works on a chat
history, exempting preserved messages from every stage.

Both obtain their embedding source through ``get_embed_fn`` only after
input validation, so invalid calls never touch the provider.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ..token_counter import estimate_tokens
from ..types import (
    ChatMessage,
    ChatOptimizeResult,
    EmbedFn,
    EmbeddingUnavailable,
    EmptyQuery,
    InvalidBudget,
    OptimizeResult,
    TokenCounter,
)
from .dedupe import DEFAULT_THRESHOLD, FALLBACK_KEYWORD, FALLBACK_NONE, dedupe_indices
from .prioritizer import rank_chunks, rank_messages
from .trimmer import format_messages, join_chunks, trim_to_budget

logger = logging.getLogger(__name__)

PROMPT_BUFFER_TOKENS = 10
CHAT_BUFFER_TOKENS = 50


def _obtain_embed_fn(get_embed_fn: Callable[[], EmbedFn | None], fallback: str) -> EmbedFn | None:
    embed_fn = get_embed_fn()
    if embed_fn is None and fallback != FALLBACK_KEYWORD:
        raise EmbeddingUnavailable(
            "No embedding source available. Configure an API key or an embedding provider."
        )
    return embed_fn


def _check_budget(budget: int) -> None:
    if budget <= 0:
        raise InvalidBudget(f"Token budget must be positive, got {budget}")


def optimize_chunks(
    query: str,
    chunks: list[str],
    budget: int,
    get_embed_fn: Callable[[], EmbedFn | None],
    count_tokens: TokenCounter = estimate_tokens,
    dedupe: bool = True,
    strategy: str | None = "hybrid",
    threshold: float = DEFAULT_THRESHOLD,
    prompt_buffer_tokens: int = PROMPT_BUFFER_TOKENS,
    fallback: str = FALLBACK_NONE,
    now: datetime | None = None,
) -> OptimizeResult:
    """Fit ``chunks`` behind ``query`` within ``budget`` tokens."""
    if not query:
        raise EmptyQuery("Query is required")
    _check_budget(budget)

    if not chunks:
        return OptimizeResult(final_text=query, token_count=count_tokens(query), dropped_items=[])

    embed_fn = _obtain_embed_fn(get_embed_fn, fallback)

    # Positions into ``chunks``; every stage below works on these.
    working = list(range(len(chunks)))

    if dedupe:
        keep = dedupe_indices(chunks, [None] * len(chunks), embed_fn, threshold, fallback)
        working = [working[k] for k in keep]

    ranked = rank_chunks(
        [chunks[i] for i in working], query, strategy, embed_fn, now=now, fallback=fallback,
    )
    ordered = [working[item.index] for item in ranked]

    available = max(0, budget - count_tokens(query) - prompt_buffer_tokens)
    kept = trim_to_budget(
        ordered, available, count_tokens, lambda idx: join_chunks([chunks[i] for i in idx]),
    )

    context_text = join_chunks([chunks[i] for i in kept])
    final_text = f"{query}\n\n{context_text}" if context_text else query

    kept_set = set(kept)
    dropped = [chunks[i] for i in range(len(chunks)) if i not in kept_set]
    logger.debug("Kept %d of %d chunks, dropped %d", len(kept), len(chunks), len(dropped))

    return OptimizeResult(
        final_text=final_text,
        token_count=count_tokens(final_text),
        dropped_items=dropped,
    )


def _last_user_content(messages: list[ChatMessage]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""


def optimize_chat(
    messages: list[ChatMessage],
    budget: int,
    get_embed_fn: Callable[[], EmbedFn | None],
    count_tokens: TokenCounter = estimate_tokens,
    dedupe: bool = True,
    strategy: str | None = "hybrid",
    threshold: float = DEFAULT_THRESHOLD,
    preserve_system: bool = True,
    preserve_last_n: int = 0,
    buffer_tokens: int = CHAT_BUFFER_TOKENS,
    restore_order: bool = True,
    fallback: str = FALLBACK_NONE,
    now: datetime | None = None,
) -> ChatOptimizeResult:
    """Fit a chat history within ``budget`` tokens.

    System messages (when ``preserve_system``) and the last
    ``preserve_last_n`` other messages bypass optimization entirely.
    """
    if not messages:
        return ChatOptimizeResult()
    _check_budget(budget)

    embed_fn = _obtain_embed_fn(get_embed_fn, fallback)

    def serialize(idx: list[int]) -> str:
        return format_messages([messages[i] for i in idx])

    preserved: list[int] = []
    working = list(range(len(messages)))

    if preserve_system:
        preserved = [i for i in working if messages[i].role == "system"]
        working = [i for i in working if messages[i].role != "system"]

    if preserve_last_n > 0:
        cut = max(0, len(working) - preserve_last_n)
        preserved.extend(working[cut:])
        working = working[:cut]

    preserved_tokens = count_tokens(serialize(preserved))
    available = max(0, budget - preserved_tokens - buffer_tokens)

    if available <= 0:
        if preserved_tokens > budget:
            logger.warning(
                "Preserved messages use %d tokens, over the %d token budget",
                preserved_tokens, budget,
            )
        kept = sorted(preserved) if restore_order else preserved
        return ChatOptimizeResult(
            kept_messages=[messages[i] for i in kept],
            token_count=preserved_tokens,
            removed_messages=[messages[i] for i in working],
        )

    if dedupe and working:
        keep = dedupe_indices(
            [messages[i].content for i in working],
            [messages[i].role for i in working],
            embed_fn,
            threshold,
            fallback,
        )
        working = [working[k] for k in keep]

    if working:
        query = _last_user_content(messages)
        ranked = rank_messages(
            [messages[i] for i in working], query, strategy, embed_fn, now=now, fallback=fallback,
        )
        working = [working[item.index] for item in ranked]

    working = trim_to_budget(working, available, count_tokens, serialize)

    final = preserved + working
    if restore_order:
        final = sorted(final)

    final_set = set(final)
    removed = [messages[i] for i in range(len(messages)) if i not in final_set]
    logger.debug("Kept %d of %d messages", len(final), len(messages))

    return ChatOptimizeResult(
        kept_messages=[messages[i] for i in final],
        token_count=count_tokens(serialize(final)),
        removed_messages=removed,
    )
