"""Embedding provider base class with shared retry logic."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import httpx

from ..types import ProviderError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = [1.0, 2.0, 4.0]


class BaseEmbeddingProvider(ABC):
    """Abstract base for HTTP embedding providers. Subclasses override hook
    methods; the retry loop in ``embed()`` is shared."""

    _timeout: float = 30.0

    def __init__(self) -> None:
        self.last_usage: dict = {}

    # -- hook methods subclasses must implement --

    @abstractmethod
    def _provider_name(self) -> str: ...

    @abstractmethod
    def _get_url(self) -> str: ...

    @abstractmethod
    def _get_headers(self) -> dict: ...

    @abstractmethod
    def _build_payload(self, texts: list[str]) -> dict: ...

    @abstractmethod
    def _extract_vectors(self, data: dict) -> list[list[float]]: ...

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout)

    # -- shared retry logic --

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in one batch request, retrying transient errors."""
        if not texts:
            return []

        url = self._get_url()
        headers = self._get_headers()
        payload = self._build_payload(texts)

        last_error: Exception | None = None

        for attempt in range(MAX_RETRIES):
            try:
                with self._client() as client:
                    response = client.post(url, headers=headers, json=payload)

                if response.status_code == 200:
                    try:
                        data = response.json()
                        vectors = self._extract_vectors(data)
                    except (ValueError, KeyError, TypeError, AttributeError) as e:
                        raise ProviderError(
                            f"Malformed embeddings response: {e!r}",
                            provider=self._provider_name(),
                            status_code=response.status_code,
                        ) from e
                    self.last_usage = data.get("usage") or {}
                    if len(vectors) != len(texts):
                        raise ProviderError(
                            f"Expected {len(texts)} embeddings, got {len(vectors)}",
                            provider=self._provider_name(),
                        )
                    return vectors

                if response.status_code == 429 or response.status_code >= 500:
                    last_error = ProviderError(
                        f"HTTP {response.status_code}: {response.text}",
                        provider=self._provider_name(),
                        status_code=response.status_code,
                    )
                    logger.debug(
                        "%s embedding attempt %d failed with HTTP %d",
                        self._provider_name(), attempt + 1, response.status_code,
                    )
                    if attempt < MAX_RETRIES - 1:
                        time.sleep(RETRY_BACKOFF[attempt])
                    continue

                raise ProviderError(
                    f"HTTP {response.status_code}: {response.text}",
                    provider=self._provider_name(),
                    status_code=response.status_code,
                )

            except httpx.HTTPError as e:
                last_error = ProviderError(
                    f"HTTP error: {e}",
                    provider=self._provider_name(),
                )
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_BACKOFF[attempt])
                continue

        raise last_error or ProviderError(
            "Max retries exceeded", provider=self._provider_name()
        )

    __call__ = embed
