"""Token counting utilities."""

from __future__ import annotations

import math
from typing import Callable

from .types import ChatMessage

CHARS_PER_TOKEN = 4
SPECIAL_TOKEN_OVERHEAD = 1.1
TOKENS_PER_WORD = 1.3


def estimate_tokens(text: str) -> int:
    """Rough estimate: ~4 chars per token, plus 10% for special tokens."""
    if not text:
        return 0
    approx = math.ceil(len(text) / CHARS_PER_TOKEN)
    return math.ceil(approx * SPECIAL_TOKEN_OVERHEAD)


def count_words(text: str) -> int:
    if not text:
        return 0
    return len(text.split())


def estimate_tokens_from_words(word_count: int) -> int:
    return math.ceil(word_count * TOKENS_PER_WORD)


def estimate_chat_tokens(
    messages: list[ChatMessage],
    count_tokens: Callable[[str], int] = estimate_tokens,
) -> int:
    """Tokens for a conversation as ``role: content`` lines plus 10% API overhead."""
    text = "\n".join(f"{m.role}: {m.content}" for m in messages)
    return math.ceil(count_tokens(text) * SPECIAL_TOKEN_OVERHEAD)


def create_token_counter(mode: str = "estimate") -> Callable[[str], int]:
    """Factory for token counters.

    Modes:
        "estimate" - ceil(len(text) / 4) * 1.1 (zero deps)
        "tiktoken" - requires tiktoken package
        "callable:module.path:func" - custom callable
    """
    if mode == "estimate":
        return estimate_tokens

    if mode == "tiktoken":
        try:
            import tiktoken
            enc = tiktoken.encoding_for_model("gpt-4o-mini")
            return lambda text: len(enc.encode(text)) if text else 0
        except ImportError:
            raise ImportError(
                "tiktoken not installed. Install with: pip install context-optimizer[tiktoken]"
            )

    if mode.startswith("callable:"):
        # Format: callable:module.path:func_name
        parts = mode[len("callable:"):].rsplit(":", 1)
        if len(parts) != 2:
            raise ValueError(f"Invalid callable spec: {mode}. Expected callable:module:func")
        module_path, func_name = parts
        import importlib
        mod = importlib.import_module(module_path)
        return getattr(mod, func_name)

    raise ValueError(f"Unknown token counter mode: {mode}")
