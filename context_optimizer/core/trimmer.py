"""Budget trimmer: drop items from the tail until the remainder fits."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from ..types import ChatMessage, TokenCounter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def join_chunks(chunks: list[str]) -> str:
    return "\n".join(chunks)


def format_messages(messages: list[ChatMessage]) -> str:
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


def trim_to_budget(
    items: list[T],
    budget: int,
    count_tokens: TokenCounter,
    serialize: Callable[[list[T]], str],
) -> list[T]:
    """Remove the last item until ``count_tokens(serialize(items)) <= budget``.

    Returns a new list; the result fits the budget or is empty.
    """
    result = list(items)
    tokens = count_tokens(serialize(result))
    if tokens <= budget:
        return result

    while result and tokens > budget:
        result.pop()
        tokens = count_tokens(serialize(result))

    logger.debug(
        "Trimmed %d of %d items to fit %d tokens", len(items) - len(result), len(items), budget,
    )
    return result


def trim_chunks(chunks: list[str], budget: int, count_tokens: TokenCounter) -> list[str]:
    return trim_to_budget(chunks, budget, count_tokens, join_chunks)


def trim_messages(
    messages: list[ChatMessage], budget: int, count_tokens: TokenCounter,
) -> list[ChatMessage]:
    return trim_to_budget(messages, budget, count_tokens, format_messages)
