"""ContextOptimizer: main orchestrator wrapping the optimization pipelines."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from .config import load_config
from .core.analysis import analyze_tokens, estimate_token_stats
from .core.dedupe import (
    FALLBACK_KEYWORD,
    dedupe_indices,
    dedupe_role_indices,
    match_duplicates,
)
from .core.pipeline import optimize_chat, optimize_chunks
from .core.prioritizer import (
    prioritize_chunks,
    prioritize_messages,
    prioritize_with_conversation_flow,
    rank_chunks,
    rank_messages,
    resolve_strategy,
)
from .providers import create_embedding_provider
from .token_counter import create_token_counter
from .types import (
    ChatMessage,
    ChatOptimizeResult,
    DedupeReport,
    EmbedFn,
    EmbeddingProvider,
    EmbeddingUnavailable,
    OptimizeResult,
    OptimizerConfig,
    RankedItem,
    TokenAnalysis,
    TokenCounter,
)

logger = logging.getLogger(__name__)

Items = Union[list[str], list[ChatMessage]]

_PROVIDER_NOT_LOADED = object()  # sentinel for lazy provider construction


def _is_chat(items: list) -> bool:
    return bool(items) and isinstance(items[0], ChatMessage)


class ContextOptimizer:
    """Trim chunks or chat histories to a token budget.

    Per-call arguments override the loaded config. The embedding provider
    is constructed on first use; nothing else is kept between calls.
    """

    def __init__(
        self,
        config: OptimizerConfig | None = None,
        config_path: str | Path | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        token_counter: TokenCounter | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        self.count_tokens = token_counter or create_token_counter(self.config.token_counter)
        self._provider = embedding_provider if embedding_provider is not None else _PROVIDER_NOT_LOADED

    @property
    def fallback(self) -> str:
        return self.config.embedding.fallback

    def get_embed_fn(self) -> EmbedFn | None:
        """Return the provider's embed callable, building the provider if needed.

        Returns ``None`` only in keyword fallback mode; otherwise a missing
        provider raises ``EmbeddingUnavailable``.
        """
        if self._provider is _PROVIDER_NOT_LOADED:
            try:
                self._provider = create_embedding_provider(self.config.embedding)
            except EmbeddingUnavailable:
                if self.fallback != FALLBACK_KEYWORD:
                    raise
                logger.warning("Embedding provider unavailable, using keyword fallback")
                self._provider = None
        if self._provider is None:
            return None
        return self._provider.embed

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def optimize_chunks(
        self,
        query: str,
        chunks: list[str],
        budget: int,
        dedupe: bool | None = None,
        strategy: str | None = None,
        threshold: float | None = None,
    ) -> OptimizeResult:
        cfg = self.config
        return optimize_chunks(
            query,
            chunks,
            budget,
            get_embed_fn=self.get_embed_fn,
            count_tokens=self.count_tokens,
            dedupe=cfg.dedupe.enabled if dedupe is None else dedupe,
            strategy=strategy or cfg.prioritization.strategy,
            threshold=cfg.dedupe.threshold if threshold is None else threshold,
            prompt_buffer_tokens=cfg.chunks.prompt_buffer_tokens,
            fallback=self.fallback,
        )

    def optimize_chat(
        self,
        messages: list[ChatMessage],
        budget: int,
        dedupe: bool | None = None,
        strategy: str | None = None,
        threshold: float | None = None,
        preserve_system: bool | None = None,
        preserve_last_n: int | None = None,
    ) -> ChatOptimizeResult:
        cfg = self.config
        return optimize_chat(
            messages,
            budget,
            get_embed_fn=self.get_embed_fn,
            count_tokens=self.count_tokens,
            dedupe=cfg.dedupe.enabled if dedupe is None else dedupe,
            strategy=strategy or cfg.prioritization.strategy,
            threshold=cfg.dedupe.threshold if threshold is None else threshold,
            preserve_system=cfg.chat.preserve_system if preserve_system is None else preserve_system,
            preserve_last_n=cfg.chat.preserve_last_n if preserve_last_n is None else preserve_last_n,
            buffer_tokens=cfg.chat.buffer_tokens,
            restore_order=cfg.chat.restore_order,
            fallback=self.fallback,
        )

    # ------------------------------------------------------------------
    # Individual stages
    # ------------------------------------------------------------------

    def _dedupe_keep(
        self,
        items: Items,
        embed_fn: EmbedFn | None,
        threshold: float | None,
        role: str | None,
    ) -> tuple[list[int], list[str], list[str | None]]:
        """Kept input positions, plus the texts and categories they were judged on."""
        dedupe_cfg = self.config.dedupe
        if not _is_chat(items):
            texts = list(items)  # type: ignore[arg-type]
            categories: list[str | None] = [None] * len(texts)
            if threshold is None:
                threshold = dedupe_cfg.threshold
            return dedupe_indices(texts, categories, embed_fn, threshold, self.fallback), texts, categories

        messages: list[ChatMessage] = items  # type: ignore[assignment]
        texts = [m.content for m in messages]
        categories = [m.role for m in messages]
        if role is not None:
            if threshold is None:
                threshold = {
                    "user": dedupe_cfg.user_threshold,
                    "assistant": dedupe_cfg.assistant_threshold,
                }.get(role, dedupe_cfg.threshold)
            keep = dedupe_role_indices(messages, role, embed_fn, threshold, self.fallback)
            return keep, texts, categories

        if threshold is None:
            threshold = dedupe_cfg.threshold
        return dedupe_indices(texts, categories, embed_fn, threshold, self.fallback), texts, categories

    def deduplicate(
        self,
        items: Items,
        threshold: float | None = None,
        role: str | None = None,
    ) -> Items:
        """Drop near-duplicates. With ``role``, only messages of that role are deduplicated."""
        if not items:
            return []
        keep, _, _ = self._dedupe_keep(items, self.get_embed_fn(), threshold, role)
        return [items[i] for i in keep]  # type: ignore[return-value]

    def deduplicate_report(
        self,
        items: Items,
        threshold: float | None = None,
        role: str | None = None,
    ) -> DedupeReport:
        """Like ``deduplicate``, also naming the kept item each removed one duplicates."""
        if not items:
            return DedupeReport(kept=[])
        embed_fn = self.get_embed_fn()
        keep, texts, categories = self._dedupe_keep(items, embed_fn, threshold, role)
        return DedupeReport(
            kept=[items[i] for i in keep],
            duplicates=match_duplicates(texts, categories, keep, embed_fn),
        )

    def prioritize(self, items: Items, query: str, strategy: str | None = None) -> Items:
        """Reorder items best first. Never drops anything."""
        if not items:
            return []
        embed_fn = self.get_embed_fn()
        strategy = strategy or self.config.prioritization.strategy
        if _is_chat(items):
            return prioritize_messages(items, query, strategy, embed_fn, fallback=self.fallback)  # type: ignore[arg-type]
        return prioritize_chunks(items, query, strategy, embed_fn, fallback=self.fallback)  # type: ignore[arg-type]

    def rank(self, items: Items, query: str, strategy: str | None = None) -> list[RankedItem]:
        """Prioritize and keep each item's input position and score."""
        if not items:
            return []
        embed_fn = self.get_embed_fn()
        strategy = resolve_strategy(strategy or self.config.prioritization.strategy)
        if _is_chat(items):
            scored = rank_messages(items, query, strategy, embed_fn, fallback=self.fallback)  # type: ignore[arg-type]
        else:
            scored = rank_chunks(items, query, strategy, embed_fn, fallback=self.fallback)  # type: ignore[arg-type]
        score_field = {"relevance": "relevance_score", "recency": "recency_score"}.get(
            strategy, "hybrid_score",
        )
        return [
            RankedItem(
                index=s.index,
                item=items[s.index],
                score=getattr(s, score_field),
                relevance_score=s.relevance_score,
                recency_score=s.recency_score,
            )
            for s in scored
        ]

    def prioritize_conversation(
        self,
        messages: list[ChatMessage],
        query: str,
        max_messages: int | None = None,
    ) -> list[ChatMessage]:
        """Keep at most ``max_messages`` messages in chronological order."""
        if max_messages is None:
            max_messages = self.config.prioritization.conversation_flow_max_messages
        if len(messages) <= max_messages:
            return list(messages)
        return prioritize_with_conversation_flow(
            messages, query, self.get_embed_fn(), max_messages, fallback=self.fallback,
        )

    # ------------------------------------------------------------------
    # Token accounting
    # ------------------------------------------------------------------

    def analyze_tokens(
        self, content: str | Items, include_recommendations: bool = True,
    ) -> TokenAnalysis:
        return analyze_tokens(content, self.count_tokens, include_recommendations)

    def estimate_tokens(self, content: str | Items) -> dict:
        return estimate_token_stats(content, self.count_tokens)
