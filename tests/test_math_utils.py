"""Tests for cosine similarity and nearest-candidate search."""

import pytest

from context_optimizer.core.math_utils import cosine_similarity, find_most_similar
from context_optimizer.types import DimensionMismatch, InvalidInput


class TestCosineSimilarity:
    def test_identical_vectors(self):
        assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0)

    def test_scaled_vector_is_identical_direction(self):
        assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1, 0], [0, 1]) == 0

    def test_opposite(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector_returns_zero(self):
        assert cosine_similarity([0, 0], [1, 1]) == 0
        assert cosine_similarity([1, 1], [0, 0]) == 0

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_dimension_mismatch_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            cosine_similarity([1.0], [])


class TestFindMostSimilar:
    def test_empty_candidates_sentinel(self):
        assert find_most_similar([1.0, 0.0], []) == (-1, -1.0)

    def test_picks_closest(self):
        index, sim = find_most_similar([1.0, 0.0], [[0.0, 1.0], [0.9, 0.1], [0.5, 0.5]])
        assert index == 1
        assert sim == pytest.approx(0.9 / (0.82 ** 0.5))

    def test_tie_keeps_earliest(self):
        index, _ = find_most_similar([1.0, 0.0], [[0.0, 1.0], [2.0, 0.0], [1.0, 0.0]])
        assert index == 1
