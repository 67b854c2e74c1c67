"""Tests for token analysis and recommendations."""

import pytest

from conftest import word_count

from context_optimizer.core.analysis import analyze_tokens, estimate_token_stats
from context_optimizer.token_counter import estimate_tokens
from context_optimizer.types import ChatMessage


class TestAnalyzeText:
    def test_counts(self):
        analysis = analyze_tokens("one two three", word_count)
        assert analysis.token_count == 3
        assert analysis.word_count == 3
        assert analysis.character_count == 13
        assert analysis.breakdown is None

    def test_optimal_text(self):
        analysis = analyze_tokens("short and sweet", word_count)
        assert analysis.recommendations == ["Token usage appears optimal for this content size."]

    def test_large_text(self):
        text = "word " * 5000
        recs = analyze_tokens(text, word_count).recommendations
        assert any("splitting" in r for r in recs)
        assert not any("very large" in r for r in recs)

    def test_blank_lines(self):
        recs = analyze_tokens("a\n\n\nb", word_count).recommendations
        assert any("line breaks" in r for r in recs)

    def test_complex_vocabulary(self):
        recs = analyze_tokens("supercalifragilisticexpialidocious", estimate_tokens).recommendations
        assert any("complex vocabulary" in r for r in recs)

    def test_without_recommendations(self):
        assert analyze_tokens("a\n\n\nb", word_count, include_recommendations=False).recommendations == []

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            analyze_tokens(42, word_count)


class TestAnalyzeChat:
    def test_breakdown_by_role(self, conversation):
        analysis = analyze_tokens(conversation, word_count)
        assert analysis.breakdown["system_messages"] == 6
        assert analysis.breakdown["user_messages"] == word_count(
            "user: How do I update my card?\n"
            "user: How can I change my credit card?\n"
            "user: What about invoices?"
        )
        assert analysis.breakdown["assistant_messages"] > 0
        assert "average_message_length" in analysis.breakdown

    def test_duplicate_user_messages(self):
        messages = [
            ChatMessage(role="user", content="again"),
            ChatMessage(role="assistant", content="sure"),
            ChatMessage(role="user", content="again"),
        ]
        recs = analyze_tokens(messages, word_count).recommendations
        assert any("1 potentially duplicate user messages" in r for r in recs)

    def test_verbose_assistant(self):
        messages = [
            ChatMessage(role="user", content="why"),
            ChatMessage(role="assistant", content="because " * 50),
        ]
        recs = analyze_tokens(messages, word_count).recommendations
        assert any("Assistant responses" in r for r in recs)

    def test_no_assistant_messages(self):
        messages = [ChatMessage(role="user", content="hello there")]
        recs = analyze_tokens(messages, word_count).recommendations
        assert recs == ["Chat conversation appears well-optimized for token usage."]


class TestAnalyzeList:
    def test_exact_duplicates(self):
        recs = analyze_tokens(["a", "b", "a"], word_count).recommendations
        assert any("1 exact duplicate" in r for r in recs)

    def test_many_items(self):
        recs = analyze_tokens([f"item {i}" for i in range(60)], word_count).recommendations
        assert any("Large number of text items" in r for r in recs)


class TestEstimateTokenStats:
    def test_list(self):
        stats = estimate_token_stats(["a b", "c", "d e f"], word_count)
        assert stats == {
            "token_estimate": 6,
            "total_items": 3,
            "average_tokens_per_item": 2,
            "min_tokens": 1,
            "max_tokens": 3,
        }

    def test_string(self):
        assert estimate_token_stats("a b c", word_count)["total_items"] == 1

    def test_messages(self):
        messages = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="a b")]
        stats = estimate_token_stats(messages, word_count)
        assert stats["min_tokens"] == 2
        assert stats["max_tokens"] == 3

    def test_empty_list(self):
        assert estimate_token_stats([], word_count)["token_estimate"] == 0
