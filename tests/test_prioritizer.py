"""Tests for relevance, recency and hybrid prioritization."""

from datetime import timedelta

import pytest

from conftest import FakeEmbedder

from context_optimizer.core.prioritizer import (
    keyword_relevance,
    prioritize_chunks,
    prioritize_messages,
    prioritize_with_conversation_flow,
    rank_chunks,
    rank_messages,
    recency_score,
    resolve_strategy,
    role_importance,
)
from context_optimizer.providers.hashing import HashEmbeddingProvider
from context_optimizer.types import ChatMessage, EmbeddingProviderRequired


class TestHelpers:
    def test_recency_now_is_one(self, now):
        assert recency_score(now, now) == 1.0

    def test_recency_decays_linearly(self, now):
        assert recency_score(now - timedelta(hours=12), now) == pytest.approx(0.5)

    def test_recency_floors_at_zero(self, now):
        assert recency_score(now - timedelta(days=3), now) == 0.0

    def test_recency_caps_future_at_one(self, now):
        assert recency_score(now + timedelta(hours=1), now) == 1.0

    def test_naive_timestamp_treated_as_utc(self, now):
        naive = (now - timedelta(hours=6)).replace(tzinfo=None)
        assert recency_score(naive, now) == pytest.approx(0.75)

    def test_role_importance(self):
        assert role_importance("system") == 1.0
        assert role_importance("user") == 0.8
        assert role_importance("assistant") == 0.6
        assert role_importance("tool") == 0.5

    def test_resolve_strategy(self):
        assert resolve_strategy("recency") == "recency"
        assert resolve_strategy("relevance") == "relevance"
        assert resolve_strategy("bogus") == "hybrid"
        assert resolve_strategy(None) == "hybrid"

    def test_keyword_relevance(self):
        assert keyword_relevance("apple pie", "I like apple tart") == 0.5
        assert keyword_relevance("", "anything") == 0.0


class TestPrioritizeChunks:
    def test_empty(self, apple_embedder):
        assert prioritize_chunks([], "q", "hybrid", apple_embedder) == []
        assert apple_embedder.calls == []

    def test_requires_embedding_source(self):
        with pytest.raises(EmbeddingProviderRequired):
            prioritize_chunks(["a"], "q", "hybrid", None)

    def test_single_batch_with_query_first(self, apple_chunks, apple_embedder, now):
        prioritize_chunks(apple_chunks, "Apple earnings", "relevance", apple_embedder, now=now)
        assert apple_embedder.calls == [["Apple earnings"] + apple_chunks]

    def test_relevance_places_unrelated_last(self, apple_chunks, apple_embedder, now):
        result = prioritize_chunks(apple_chunks, "Apple earnings", "relevance", apple_embedder, now=now)
        assert result[-1] == "Bananas are yellow"

    def test_relevance_after_dedupe_scenario(self, apple_embedder, now):
        result = prioritize_chunks(
            ["Apple revenue rose 15%", "Bananas are yellow"],
            "Apple earnings", "relevance", apple_embedder, now=now,
        )
        assert result == ["Apple revenue rose 15%", "Bananas are yellow"]

    def test_recency_newest_first(self, now):
        embedder = FakeEmbedder({}, default=[1.0, 0.0])
        result = prioritize_chunks(["old", "mid", "new"], "q", "recency", embedder, now=now)
        assert result == ["new", "mid", "old"]

    def test_hybrid_score_formula(self, now):
        embedder = FakeEmbedder({"q": [1.0, 0.0], "a": [1.0, 0.0], "b": [0.0, 1.0]})
        ranked = rank_chunks(["a", "b"], "q", "hybrid", embedder, now=now)
        by_text = {item.text: item for item in ranked}
        # "b" is the last chunk: synthetic timestamp is now.
        assert by_text["b"].recency_score == 1.0
        assert by_text["b"].hybrid_score == pytest.approx(0.3)
        one_minute = 60_000 / (24 * 60 * 60 * 1000)
        assert by_text["a"].recency_score == pytest.approx(1 - one_minute)
        assert by_text["a"].hybrid_score == pytest.approx(0.7 + 0.3 * (1 - one_minute))
        assert [item.text for item in ranked] == ["a", "b"]

    def test_unknown_strategy_uses_hybrid(self, apple_chunks, apple_embedder, now):
        hybrid = prioritize_chunks(apple_chunks, "Apple earnings", "hybrid", apple_embedder, now=now)
        bogus = prioritize_chunks(apple_chunks, "Apple earnings", "nope", apple_embedder, now=now)
        assert bogus == hybrid

    def test_ties_keep_input_order(self, now):
        embedder = FakeEmbedder({}, default=[1.0, 0.0])
        chunks = ["first", "second", "third"]
        assert prioritize_chunks(chunks, "q", "relevance", embedder, now=now) == chunks

    def test_is_permutation(self, now):
        embedder = HashEmbeddingProvider(dimensions=16)
        chunks = [f"chunk {i} about topic {i % 3}" for i in range(10)] + ["dup", "dup"]
        for strategy in ("relevance", "recency", "hybrid"):
            result = prioritize_chunks(chunks, "topic 1", strategy, embedder, now=now)
            assert sorted(result) == sorted(chunks)

    def test_keyword_fallback(self, now):
        chunks = ["nothing here", "apple pie recipe", "apple"]
        result = prioritize_chunks(chunks, "apple pie", "relevance", None, now=now, fallback="keyword")
        assert result == ["apple pie recipe", "apple", "nothing here"]


class TestPrioritizeMessages:
    def test_chat_hybrid_weights(self, now):
        embedder = FakeEmbedder({"q": [1.0, 0.0], "sys": [0.0, 1.0], "hi": [1.0, 0.0]})
        messages = [
            ChatMessage(role="system", content="sys", timestamp=now),
            ChatMessage(role="user", content="hi", timestamp=now),
        ]
        ranked = rank_messages(messages, "q", "hybrid", embedder, now=now)
        by_text = {item.text: item for item in ranked}
        sys_item, user_item = by_text["sys"], by_text["hi"]
        assert sys_item.position_score == 0.5
        assert user_item.position_score == 1.0
        assert sys_item.hybrid_score == pytest.approx(0.2 + 0.3 * 0.5 + 0.1 * 1.0)
        assert user_item.hybrid_score == pytest.approx(0.4 + 0.2 + 0.3 + 0.1 * 0.8)
        assert [item.text for item in ranked] == ["hi", "sys"]

    def test_real_timestamps_used_for_recency(self, now):
        embedder = FakeEmbedder({}, default=[1.0, 0.0])
        messages = [
            ChatMessage(role="user", content="late", timestamp=now),
            ChatMessage(role="user", content="early", timestamp=now - timedelta(hours=2)),
        ]
        result = prioritize_messages(messages, "q", "recency", embedder, now=now)
        assert [m.content for m in result] == ["late", "early"]

    def test_returns_same_objects(self, conversation, conversation_vectors, now):
        embedder = FakeEmbedder(conversation_vectors)
        result = prioritize_messages(conversation, "What about invoices?", "hybrid", embedder, now=now)
        assert len(result) == len(conversation)
        assert {id(m) for m in result} == {id(m) for m in conversation}


class TestConversationFlow:
    def _messages(self, n):
        return [
            ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"message {i}")
            for i in range(n)
        ]

    def test_under_cap_unchanged(self, apple_embedder):
        messages = self._messages(4)
        assert prioritize_with_conversation_flow(messages, "q", apple_embedder, max_messages=10) == messages
        assert apple_embedder.calls == []

    def test_keeps_tail_and_chronological_order(self, now):
        messages = self._messages(12)
        vectors = {f"message {i}": [0.0, 1.0] for i in range(12)}
        vectors["message 2"] = [1.0, 0.0]
        vectors["message 4"] = [1.0, 0.0]
        vectors["q"] = [1.0, 0.0]
        embedder = FakeEmbedder(vectors)

        result = prioritize_with_conversation_flow(messages, "q", embedder, max_messages=5, now=now)

        contents = [m.content for m in result]
        assert len(result) == 5
        # tail of min(3, 5 // 2) = 2 messages is always kept
        assert contents[-2:] == ["message 10", "message 11"]
        assert "message 2" in contents and "message 4" in contents
        indices = [int(c.split()[1]) for c in contents]
        assert indices == sorted(indices)

    def test_only_head_is_prioritized(self, now):
        messages = self._messages(8)
        embedder = FakeEmbedder({}, default=[1.0, 0.0])
        prioritize_with_conversation_flow(messages, "q", embedder, max_messages=6, now=now)
        assert embedder.calls == [["q"] + [f"message {i}" for i in range(5)]]

    def test_cap_of_one_keeps_best_single_message(self, now):
        messages = self._messages(3)
        vectors = {"q": [1.0, 0.0], "message 0": [1.0, 0.0], "message 1": [0.0, 1.0], "message 2": [0.0, 1.0]}
        result = prioritize_with_conversation_flow(messages, "q", FakeEmbedder(vectors), max_messages=1, now=now)
        assert [m.content for m in result] == ["message 0"]
