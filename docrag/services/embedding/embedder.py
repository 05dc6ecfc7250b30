"""Embedding orchestration with caching and a provider fallback chain.

Manages a priority-ordered list of embedding providers (remote first, local
last) and tries each in turn until one returns a vector.

Architecture: Fallback Chain with a Sticky Circuit Breaker
-----------------------------------------------------------
    1. Input is truncated to the provider input ceiling.
    2. The cache is consulted; a hit returns immediately.
    3. Providers are tried in order, skipping those that are unavailable
       (no API key, library missing) or marked unhealthy.
    4. A provider that fails while another remains is marked unhealthy in
       the shared :class:`ProviderHealth` and never retried by this process.
    5. The vector is dimension-checked (warning only), cached and returned.

``last_strategy`` records which provider produced the most recent result
so callers and logs can tell remote vectors from local fallback ones.
"""

from __future__ import annotations

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.services.embedding.cache import EmbeddingCache
from docrag.services.embedding.health import ProviderHealth
from docrag.utils.concurrency import throttled_gather
from docrag.utils.errors import EmbeddingError, ProviderUnavailableError
from docrag.utils.logging import get_logger


class Embedder:
    """Turns text into vectors using the first healthy provider.

    Parameters
    ----------
    strategies:
        Embedding providers in priority order.
    cache:
        Embedding cache shared by all callers.
    health:
        Circuit-breaker state; a fresh one is created when omitted.
    max_input_chars:
        Inputs are truncated to this many characters before embedding.
    batch_size:
        Maximum number of texts sent to a provider in one batch call.
    batch_fallback_max_items:
        When a batch call fails, at most this many of its items are
        embedded one by one; the rest receive empty sentinel vectors.
    fallback_concurrency:
        Parallelism ceiling for those individual calls.
    """

    def __init__(
        self,
        strategies: list[IEmbeddingProvider],
        cache: EmbeddingCache,
        health: ProviderHealth | None = None,
        max_input_chars: int = 8191,
        batch_size: int = 16,
        batch_fallback_max_items: int = 5,
        fallback_concurrency: int = 4,
    ) -> None:
        self._strategies = strategies
        self._cache = cache
        self._health = health or ProviderHealth()
        self._max_input_chars = max_input_chars
        self._batch_size = max(1, batch_size)
        self._batch_fallback_max_items = max(0, batch_fallback_max_items)
        self._fallback_concurrency = fallback_concurrency
        self._logger = get_logger(__name__)
        self.last_strategy: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        strategies: list[IEmbeddingProvider],
        cache: EmbeddingCache,
        health: ProviderHealth | None = None,
    ) -> Embedder:
        return cls(
            strategies=strategies,
            cache=cache,
            health=health,
            max_input_chars=settings.embedding_max_input_chars,
            batch_size=settings.embedding_batch_size,
            batch_fallback_max_items=settings.embedding_batch_fallback_items,
            fallback_concurrency=settings.embedding_fallback_concurrency,
        )

    @property
    def health(self) -> ProviderHealth:
        return self._health

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def truncate(self, text: str) -> str:
        return text[: self._max_input_chars]

    async def embed(self, text: str) -> list[float]:
        """Embed one text, falling back through the provider chain.

        Raises
        ------
        ProviderUnavailableError
            If no provider is available and healthy.
        EmbeddingError
            If every available provider failed.
        """
        truncated = self.truncate(text)
        cached = await self._cache.get(truncated)
        if cached is not None:
            return cached

        active = self._active_strategies()
        if not active:
            raise ProviderUnavailableError("No embedding provider is available")

        errors: list[str] = []
        for position, strategy in enumerate(active):
            name = strategy.get_provider_name()
            try:
                vector = await strategy.embed_single(truncated)
                if not vector:
                    raise EmbeddingError("Provider returned an empty vector", provider_name=name)
            except Exception as exc:
                errors.append(f"{name}: {exc}")
                self._record_failure(strategy, exc, has_fallback=position < len(active) - 1)
                continue

            self._check_dimension(strategy, vector)
            await self._cache.set(truncated, vector)
            self.last_strategy = name
            return vector

        raise EmbeddingError(f"All embedding providers failed: {'; '.join(errors)}")

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts; a failed batch degrades instead of raising.

        Cache hits are served first.  Misses go to the first healthy
        provider in batches of ``batch_size``.  When a batch call fails,
        up to ``batch_fallback_max_items`` of its items are embedded
        individually (through :meth:`embed`, so the fallback chain applies)
        and every other item gets the empty sentinel vector ``[]``.

        Returns
        -------
        list[list[float]]
            One vector per input, in input order; ``[]`` marks an item
            that could not be embedded.

        Raises
        ------
        ProviderUnavailableError
            If no provider is available and healthy.
        """
        if not texts:
            return []

        truncated = [self.truncate(t) for t in texts]
        results: list[list[float]] = [[] for _ in texts]
        misses: list[int] = []
        for i, text in enumerate(truncated):
            if not text.strip():
                continue
            cached = await self._cache.get(text)
            if cached is not None:
                results[i] = cached
            else:
                misses.append(i)

        if not misses:
            return results
        if not self._active_strategies():
            raise ProviderUnavailableError("No embedding provider is available")

        for start in range(0, len(misses), self._batch_size):
            indices = misses[start : start + self._batch_size]
            vectors = await self._embed_remote_batch([truncated[i] for i in indices])
            if vectors is not None:
                for i, vector in zip(indices, vectors):
                    results[i] = vector
                    await self._cache.set(truncated[i], vector)
                continue

            recoverable = indices[: self._batch_fallback_max_items]
            outcomes = await throttled_gather(
                [self.embed(truncated[i]) for i in recoverable],
                limit=self._fallback_concurrency,
            )
            recovered = 0
            for i, outcome in zip(recoverable, outcomes):
                if isinstance(outcome, BaseException):
                    self._logger.warning("batch_item_embedding_failed", index=i, error=str(outcome))
                    continue
                results[i] = outcome
                recovered += 1

            self._logger.warning(
                "batch_embedding_degraded",
                batch_size=len(indices),
                recovered=recovered,
                sentinel=len(indices) - recovered,
            )

        return results

    def get_available_providers(self) -> list[str]:
        """Return the names of providers that are available and healthy."""
        return [s.get_provider_name() for s in self._active_strategies()]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _active_strategies(self) -> list[IEmbeddingProvider]:
        return [
            s
            for s in self._strategies
            if s.is_available() and self._health.is_healthy(s.get_provider_name())
        ]

    async def _embed_remote_batch(self, texts: list[str]) -> list[list[float]] | None:
        """Send one batch to the first healthy provider; ``None`` on failure."""
        active = self._active_strategies()
        if not active:
            return None
        strategy = active[0]
        name = strategy.get_provider_name()
        try:
            vectors = await strategy.embed(texts)
            if len(vectors) != len(texts) or any(not v for v in vectors):
                raise EmbeddingError(
                    f"Expected {len(texts)} vectors, got {len(vectors)}", provider_name=name
                )
        except Exception as exc:
            self._record_failure(strategy, exc, has_fallback=len(active) > 1)
            return None

        for vector in vectors[:1]:
            self._check_dimension(strategy, vector)
        self.last_strategy = name
        self._logger.debug("batch_embedded", provider=name, batch_size=len(texts))
        return vectors

    def _record_failure(
        self, strategy: IEmbeddingProvider, exc: BaseException, has_fallback: bool
    ) -> None:
        name = strategy.get_provider_name()
        self._logger.warning(
            "embedding_provider_failed",
            provider=name,
            error=str(exc),
            falling_back=has_fallback,
        )
        if has_fallback:
            self._health.mark_unhealthy(name, str(exc))

    def _check_dimension(self, strategy: IEmbeddingProvider, vector: list[float]) -> None:
        expected = strategy.get_dimension()
        if expected and len(vector) != expected:
            self._logger.warning(
                "embedding_dimension_mismatch",
                provider=strategy.get_provider_name(),
                expected=expected,
                actual=len(vector),
            )
