"""OpenAI / Azure OpenAI embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
When ``AZURE_OPENAI_ENDPOINT`` is configured the Azure client is used and the
deployment name stands in for the model name; otherwise the plain OpenAI
client is used, optionally pointed at an OpenAI-compatible ``base_url``.
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the OpenAI embeddings API.

    Uses ``text-embedding-3-large`` (3072 dims) by default.  Splits inputs
    exceeding the per-call limit into several requests.  Input truncation
    is the embedder's job; this adapter sends texts as given.
    """

    def __init__(self, settings: Settings, client: Any | None = None) -> None:
        self._settings = settings
        self._azure = bool(settings.azure_openai_endpoint)

        if self._azure:
            self._api_key = settings.azure_openai_api_key
            self._model = settings.azure_openai_deployment or settings.openai_embedding_model
            self._provider_label = "azure_openai_embedding"
        else:
            self._api_key = settings.openai_api_key
            self._model = settings.openai_embedding_model or "text-embedding-3-large"
            self._provider_label = (
                "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
            )

        self._client = client if client is not None else self._build_client()
        self._dimension = _MODEL_DIMENSIONS.get(
            settings.openai_embedding_model, settings.embedding_expected_dimension
        )

    def _build_client(self) -> Any:
        if self._azure:
            return openai.AsyncAzureOpenAI(
                api_key=self._api_key,
                azure_endpoint=self._settings.azure_openai_endpoint,
                api_version=self._settings.azure_openai_api_version,
            )
        # Build client kwargs — add base_url only when configured.
        client_kwargs: dict[str, Any] = {"api_key": self._api_key}
        if self._settings.openai_base_url:
            client_kwargs["base_url"] = self._settings.openai_base_url
        return openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts."""
        if not texts:
            return []

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                all_embeddings.extend(item.embedding for item in response.data)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if len(all_embeddings) != len(texts):
            raise EmbeddingError(
                message=(
                    f"Expected {len(texts)} embeddings, got {len(all_embeddings)}"
                ),
                provider_name=self.get_provider_name(),
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
