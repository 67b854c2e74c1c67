"""SentenceTransformerProvider: local embeddings via sentence-transformers."""

from __future__ import annotations

import logging

from ..types import EmbeddingUnavailable

logger = logging.getLogger(__name__)


class SentenceTransformerProvider:
    """Embed texts with a local sentence-transformers model.

    The model is loaded on first use. Raises ``EmbeddingUnavailable`` if
    sentence-transformers is not installed.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2") -> None:
        self.model_name = model_name
        self._model = None

    def _load_model(self):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise EmbeddingUnavailable(
                "sentence-transformers not installed. "
                "Install with: pip install context-optimizer[embeddings]"
            )
        logger.debug("Loading sentence-transformers model %s", self.model_name)
        return SentenceTransformer(self.model_name)

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if self._model is None:
            self._model = self._load_model()
        return self._model.encode(
            texts, convert_to_numpy=True, show_progress_bar=False,
        ).tolist()

    __call__ = embed
