"""Local sentence-transformers embedding provider adapter.

Wraps the ``sentence-transformers`` library to implement
:class:`IEmbeddingProvider` with a small HuggingFace model running locally.
No API key required; this is the fallback when the remote provider fails.

Default model: ``sentence-transformers/paraphrase-MiniLM-L3-v2`` (384
dimensions, mean pooling).  Vectors are L2-normalized so cosine similarity
reduces to a dot product.
"""

from __future__ import annotations

import asyncio
import importlib.util
import threading
from typing import Any

import structlog

from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

# Known model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "sentence-transformers/paraphrase-MiniLM-L3-v2": 384,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-mpnet-base-v2": 768,
}

_DEFAULT_MODEL = "sentence-transformers/paraphrase-MiniLM-L3-v2"
_BATCH_LIMIT = 64  # Conservative batch size for CPU inference


class SentenceTransformerEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local sentence-transformers model.

    The model is loaded on first use (lazy initialization) inside a worker
    thread, so constructing the provider at startup costs nothing.
    """

    def __init__(self, model_name: str | None = None, device: str = "cpu") -> None:
        self._model_name = model_name or _DEFAULT_MODEL
        self._device = device
        self._dimension = _MODEL_DIMENSIONS.get(self._model_name, 384)
        self._model: Any = None  # Lazy-loaded
        self._load_lock = threading.Lock()

    def _load_model(self) -> Any:
        """Lazy-load the sentence-transformers model."""
        with self._load_lock:
            if self._model is not None:
                return self._model
            try:
                from sentence_transformers import SentenceTransformer

                logger.info("loading_sentence_transformer", model=self._model_name)
                self._model = SentenceTransformer(self._model_name, device=self._device)
                self._dimension = int(self._model.get_sentence_embedding_dimension())
                logger.info(
                    "sentence_transformer_loaded",
                    model=self._model_name,
                    dimension=self._dimension,
                )
            except Exception as exc:
                raise EmbeddingError(
                    message=f"Failed to load sentence-transformers model '{self._model_name}': {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _BATCH_LIMIT):
            batch = texts[start : start + _BATCH_LIMIT]
            vectors = model.encode(
                batch,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
            all_embeddings.extend(vectors.tolist())
        return all_embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Encoding is CPU-bound and runs in a worker thread.
        """
        if not texts:
            return []

        try:
            embeddings = await asyncio.to_thread(self._encode, texts)
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"Sentence-transformers embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "sentence_transformer_embedding_batch",
            model=self._model_name,
            batch_size=len(texts),
        )
        return embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"sentence_transformer_{self._model_name.split('/')[-1]}"

    def is_available(self) -> bool:
        """Return ``True`` if sentence-transformers is installed."""
        return importlib.util.find_spec("sentence_transformers") is not None
