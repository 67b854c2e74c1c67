"""Shared math utilities."""

from __future__ import annotations

from ..types import DimensionMismatch


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Returns 0.0 when either vector has zero norm.
    """
    if len(a) != len(b):
        raise DimensionMismatch(
            f"Vectors must have the same length (got {len(a)} and {len(b)})"
        )
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a) ** 0.5
    norm_b = sum(x * x for x in b) ** 0.5
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def find_most_similar(
    target: list[float], candidates: list[list[float]],
) -> tuple[int, float]:
    """Return ``(index, similarity)`` of the closest candidate.

    Ties keep the earliest candidate. An empty candidate list yields the
    ``(-1, -1.0)`` sentinel, which means "no match".
    """
    best_index = -1
    best_similarity = -1.0
    for i, candidate in enumerate(candidates):
        similarity = cosine_similarity(target, candidate)
        if similarity > best_similarity:
            best_index = i
            best_similarity = similarity
    return best_index, best_similarity
