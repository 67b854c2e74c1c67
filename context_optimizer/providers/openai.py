"""OpenAIEmbeddingProvider: /v1/embeddings via httpx.

Works with OpenAI or any server exposing an OpenAI-compatible embeddings
endpoint (Ollama, vLLM, LM Studio).
"""

from __future__ import annotations

from .base import BaseEmbeddingProvider


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """Embedding provider using an OpenAI-compatible embeddings API."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
    ) -> None:
        super().__init__()
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _provider_name(self) -> str:
        return "openai"

    def _get_url(self) -> str:
        return f"{self.base_url}/embeddings"

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(self, texts: list[str]) -> dict:
        return {
            "model": self.model,
            "input": [t.strip() or " " for t in texts],
            "encoding_format": "float",
        }

    def _extract_vectors(self, data: dict) -> list[list[float]]:
        rows = sorted(data.get("data", []), key=lambda row: row.get("index", 0))
        return [row["embedding"] for row in rows]
