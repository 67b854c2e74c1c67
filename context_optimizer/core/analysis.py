"""Token analysis with optimization recommendations."""

from __future__ import annotations

from typing import Union

from ..token_counter import count_words, estimate_chat_tokens
from ..types import ChatMessage, TokenAnalysis, TokenCounter
from .trimmer import format_messages

Content = Union[str, list[str], list[ChatMessage]]

LARGE_TEXT_TOKENS = 4000
VERY_LARGE_TEXT_TOKENS = 8000
COMPLEX_VOCABULARY_RATIO = 1.5
LONG_CHAT_TOKENS = 8000
HEAVY_SYSTEM_TOKENS = 1000
LONG_CHAT_MESSAGES = 20
LOW_USER_ASSISTANT_RATIO = 0.3
LONG_MESSAGE_TOKENS = 200
MANY_ITEMS = 50
HEAVY_ARRAY_TOKENS = 6000
LONG_ITEM_TOKENS = 100


def _is_chat(content: list) -> bool:
    return bool(content) and isinstance(content[0], ChatMessage)


def analyze_tokens(
    content: Content,
    count_tokens: TokenCounter,
    include_recommendations: bool = True,
) -> TokenAnalysis:
    """Count tokens, words and characters for text, a list of texts, or a chat."""
    if isinstance(content, str):
        tokens = count_tokens(content)
        words = count_words(content)
        analysis = TokenAnalysis(tokens, words, len(content))
        if include_recommendations:
            analysis.recommendations = _text_recommendations(content, tokens, words)
        return analysis

    if not isinstance(content, list):
        raise TypeError("content must be a string or a list of strings or chat messages")

    if _is_chat(content):
        messages: list[ChatMessage] = content  # type: ignore[assignment]
        tokens = estimate_chat_tokens(messages, count_tokens)
        breakdown = {
            f"{role}_messages": _role_tokens(messages, role, count_tokens)
            for role in ("system", "user", "assistant")
        }
        breakdown["average_message_length"] = round(tokens / len(messages))
        all_text = " ".join(m.content for m in messages)
        analysis = TokenAnalysis(tokens, count_words(all_text), len(all_text), breakdown=breakdown)
        if include_recommendations:
            analysis.recommendations = _chat_recommendations(messages, tokens, breakdown)
        return analysis

    texts: list[str] = content  # type: ignore[assignment]
    all_text = " ".join(texts)
    tokens = count_tokens(all_text)
    analysis = TokenAnalysis(tokens, count_words(all_text), len(all_text))
    if include_recommendations:
        analysis.recommendations = _list_recommendations(texts, tokens)
    return analysis


def estimate_token_stats(content: Content, count_tokens: TokenCounter) -> dict:
    """Per-item token statistics: total, count, average, min and max."""
    if isinstance(content, str):
        per_item = [count_tokens(content)]
    elif _is_chat(content):
        per_item = [count_tokens(format_messages([m])) for m in content]  # type: ignore[list-item]
    else:
        per_item = [count_tokens(t) for t in content]  # type: ignore[union-attr]

    if not per_item:
        return {"token_estimate": 0, "total_items": 0, "average_tokens_per_item": 0,
                "min_tokens": 0, "max_tokens": 0}

    total = sum(per_item)
    return {
        "token_estimate": total,
        "total_items": len(per_item),
        "average_tokens_per_item": round(total / len(per_item)),
        "min_tokens": min(per_item),
        "max_tokens": max(per_item),
    }


def _role_tokens(messages: list[ChatMessage], role: str, count_tokens: TokenCounter) -> int:
    of_role = [m for m in messages if m.role == role]
    if not of_role:
        return 0
    return count_tokens(format_messages(of_role))


def _text_recommendations(text: str, tokens: int, words: int) -> list[str]:
    recs: list[str] = []
    if tokens > LARGE_TEXT_TOKENS:
        recs.append("Consider splitting this text into smaller chunks for better processing.")
    if tokens > VERY_LARGE_TEXT_TOKENS:
        recs.append("Text is very large. Consider using context optimization to reduce token usage.")
    if words and tokens / words > COMPLEX_VOCABULARY_RATIO:
        recs.append("Text contains complex vocabulary that uses more tokens per word than average.")
    if "\n\n\n" in text:
        recs.append("Multiple consecutive line breaks detected. Consider cleaning up formatting.")
    if not recs:
        recs.append("Token usage appears optimal for this content size.")
    return recs


def _chat_recommendations(messages: list[ChatMessage], tokens: int, breakdown: dict) -> list[str]:
    recs: list[str] = []
    if tokens > LONG_CHAT_TOKENS:
        recs.append("Conversation is getting long. Consider using chat optimization to reduce token usage.")
    if breakdown["system_messages"] > HEAVY_SYSTEM_TOKENS:
        recs.append("System messages are using significant tokens. Consider condensing system instructions.")
    if len(messages) > LONG_CHAT_MESSAGES:
        recs.append("Long conversation history detected. Consider summarizing older messages.")
    if breakdown["assistant_messages"]:
        ratio = breakdown["user_messages"] / breakdown["assistant_messages"]
        if ratio < LOW_USER_ASSISTANT_RATIO:
            recs.append("Assistant responses are much longer than user messages. Consider more concise responses.")
    if breakdown["average_message_length"] > LONG_MESSAGE_TOKENS:
        recs.append("Messages are quite long on average. Consider breaking down complex queries/responses.")

    user_contents = [m.content for m in messages if m.role == "user"]
    duplicates = len(user_contents) - len(set(user_contents))
    if duplicates:
        recs.append(f"Detected {duplicates} potentially duplicate user messages. Consider deduplication.")
    if not recs:
        recs.append("Chat conversation appears well-optimized for token usage.")
    return recs


def _list_recommendations(texts: list[str], tokens: int) -> list[str]:
    recs: list[str] = []
    if len(texts) > MANY_ITEMS:
        recs.append("Large number of text items. Consider semantic deduplication to remove similar content.")
    if tokens > HEAVY_ARRAY_TOKENS:
        recs.append("Content array is token-heavy. Consider prioritization and filtering.")
    if texts and tokens / len(texts) > LONG_ITEM_TOKENS:
        recs.append("Individual text items are quite long. Consider chunking or summarization.")
    duplicates = len(texts) - len(set(texts))
    if duplicates:
        recs.append(f"Found {duplicates} exact duplicate texts. Consider deduplication.")
    if not recs:
        recs.append("Text array appears efficiently structured for token usage.")
    return recs
