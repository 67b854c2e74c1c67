"""HashEmbeddingProvider: deterministic offline embeddings.

Bag-of-words feature hashing: each lower-cased word adds a signed weight to
one bucket chosen by its sha256 digest. Texts sharing most of their words
land close together; identical texts get identical vectors. No network,
no model, stable across processes (unlike the builtin ``hash``).
"""

from __future__ import annotations

import hashlib
import re

_WORD_RE = re.compile(r"\w+")


class HashEmbeddingProvider:
    """Embedding provider backed by feature hashing."""

    def __init__(self, dimensions: int = 64) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    def _embed_one(self, text: str) -> list[float]:
        vec = [0.0] * self.dimensions
        for word in _WORD_RE.findall(text.lower()):
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimensions
            sign = 1.0 if digest[4] & 1 else -1.0
            vec[bucket] += sign
        norm = sum(x * x for x in vec) ** 0.5
        if norm > 0:
            vec = [x / norm for x in vec]
        return vec

    def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._embed_one(t) for t in texts]

    __call__ = embed
