"""MCP server exposing context-optimizer as tools."""

from __future__ import annotations

import json
import logging
import os

from mcp.server.fastmcp import FastMCP

from ..core.prioritizer import resolve_strategy
from ..types import ChatMessage, ranking_summary

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "context-optimizer",
    instructions="Deduplicate, prioritize and trim prompt context to fit a token budget",
)

# Lazy optimizer singleton
_optimizer = None


def _get_optimizer():
    """Get or create the optimizer singleton."""
    global _optimizer
    if _optimizer is None:
        from ..engine import ContextOptimizer
        config_path = os.environ.get("CONTEXT_OPTIMIZER_CONFIG")
        _optimizer = ContextOptimizer(config_path=config_path)
    return _optimizer


def _parse_content(content: str | list) -> str | list:
    """Turn message dicts into ChatMessage; leave strings alone."""
    if isinstance(content, list) and content and isinstance(content[0], dict):
        return [ChatMessage.from_dict(m) for m in content]
    return content


def _dump_items(items: list) -> list:
    return [m.to_dict() if isinstance(m, ChatMessage) else m for m in items]


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@mcp.tool()
def optimize_prompt(
    user_prompt: str,
    context: list[str],
    max_tokens: int,
    dedupe: bool | None = None,
    strategy: str | None = None,
    semantic_threshold: float | None = None,
) -> str:
    """Fit context chunks behind a prompt within a token budget.

    Removes near-duplicate chunks, ranks the rest against the prompt, and
    drops the lowest-ranked chunks until the result fits.

    Args:
        user_prompt: The user's question or instruction.
        context: Candidate context chunks.
        max_tokens: Token budget for prompt plus context.
        dedupe: Remove semantically similar chunks first (default from config).
        strategy: "relevance", "recency" or "hybrid" (default from config).
        semantic_threshold: Similarity at or above which chunks count as duplicates.

    Returns:
        JSON with final_prompt, token_count and dropped_chunks.
    """
    result = _get_optimizer().optimize_chunks(
        user_prompt, context, max_tokens,
        dedupe=dedupe, strategy=strategy, threshold=semantic_threshold,
    )
    return json.dumps({
        "final_prompt": result.final_text,
        "token_count": result.token_count,
        "dropped_chunks": result.dropped_items,
    })


@mcp.tool()
def optimize_chat(
    messages: list[dict],
    max_tokens: int,
    dedupe: bool | None = None,
    strategy: str | None = None,
    semantic_threshold: float | None = None,
    preserve_system_message: bool = True,
    preserve_last_n_messages: int = 0,
) -> str:
    """Trim a chat history to a token budget.

    System messages and the last N messages can be preserved verbatim;
    the rest is deduplicated per role, prioritized and trimmed.

    Args:
        messages: List of message dicts with 'role' and 'content' keys.
        max_tokens: Token budget for the whole conversation.
        dedupe: Remove semantically similar messages of the same role (default from config).
        strategy: "relevance", "recency" or "hybrid" (default from config).
        semantic_threshold: Similarity at or above which messages count as duplicates.
        preserve_system_message: Never drop system messages.
        preserve_last_n_messages: Never drop the last N non-system messages.

    Returns:
        JSON with optimized_messages, token_count and removed_messages.
    """
    parsed = [ChatMessage.from_dict(m) for m in messages]
    result = _get_optimizer().optimize_chat(
        parsed, max_tokens,
        dedupe=dedupe,
        strategy=strategy,
        threshold=semantic_threshold,
        preserve_system=preserve_system_message,
        preserve_last_n=preserve_last_n_messages,
    )
    return json.dumps({
        "optimized_messages": _dump_items(result.kept_messages),
        "token_count": result.token_count,
        "removed_messages": _dump_items(result.removed_messages),
    })


@mcp.tool()
def deduplicate_content(
    content: list,
    semantic_threshold: float | None = None,
    role: str | None = None,
) -> str:
    """Remove semantically duplicate texts or chat messages.

    Args:
        content: List of strings, or list of message dicts.
        semantic_threshold: Similarity at or above which items count as duplicates.
        role: For messages, only deduplicate this role ("user" or "assistant").

    Returns:
        JSON with the deduplicated items, each removed item with the kept
        item it duplicates and their similarity, counts, and the average
        similarity of removed items.
    """
    items = _parse_content(content)
    report = _get_optimizer().deduplicate_report(items, threshold=semantic_threshold, role=role)
    return json.dumps(report.to_dict(items))


@mcp.tool()
def prioritize_content(content: list, query: str, strategy: str | None = None) -> str:
    """Reorder texts or chat messages by importance to a query, best first.

    Args:
        content: List of strings, or list of message dicts.
        query: Text the items are ranked against.
        strategy: "relevance", "recency" or "hybrid" (default from config).

    Returns:
        JSON with the items best first, each with its input index and
        scores, and a summary of the score distribution.
    """
    optimizer = _get_optimizer()
    items = _parse_content(content)
    strategy = resolve_strategy(strategy or optimizer.config.prioritization.strategy)
    ranked = optimizer.rank(items, query, strategy=strategy)
    return json.dumps({
        "prioritized": [r.to_dict() for r in ranked],
        "summary": ranking_summary(ranked, strategy),
    })


@mcp.tool()
def estimate_tokens(content: str | list) -> str:
    """Estimate token counts for a text, a list of texts, or a conversation.

    Returns:
        JSON with total, per-item average, min and max token counts.
    """
    return json.dumps(_get_optimizer().estimate_tokens(_parse_content(content)))


@mcp.tool()
def analyze_tokens(content: str | list, include_recommendations: bool = True) -> str:
    """Analyze token usage and suggest ways to reduce it.

    Args:
        content: A text, a list of texts, or a list of message dicts.
        include_recommendations: Add optimization suggestions.

    Returns:
        JSON with token, word and character counts, an optional per-role
        breakdown, and recommendations.
    """
    analysis = _get_optimizer().analyze_tokens(
        _parse_content(content), include_recommendations=include_recommendations,
    )
    return json.dumps({
        "token_count": analysis.token_count,
        "word_count": analysis.word_count,
        "character_count": analysis.character_count,
        "breakdown": analysis.breakdown,
        "recommendations": analysis.recommendations,
    })


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def serve():
    """Start the MCP server (stdio transport)."""
    mcp.run()


if __name__ == "__main__":
    serve()
