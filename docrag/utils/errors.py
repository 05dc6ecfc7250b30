"""Custom exception hierarchy for docrag.

All application exceptions inherit from :class:`DocRAGError`, which carries
an optional ``provider_name`` so error handlers can identify which external
service (e.g. "openai", "chromadb", "sqlite_jobs") caused the failure.

The hierarchy is organized by pipeline stage:

    DocRAGError  (base -- catch-all for any docrag error)
    +-- ExtractionError          (bytes -> text)
    +-- EmbeddingError           (text -> vector, every strategy failed)
    +-- ProviderUnavailableError (external service down / unreachable)
    +-- VectorStoreError         (native index or collection failure)
    +-- PersistenceError         (relational document / chunk store)
    +-- JobError                 (queue bookkeeping)
    +-- ConfigurationError       (startup / missing config)

Extraction and search failures are recovered close to where they happen;
persistence failures propagate to the caller of the ingest / retrieval API.
"""


class DocRAGError(Exception):
    """Base exception for all docrag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(DocRAGError):
    """Raised by a text extractor when a file cannot be parsed.

    The extraction service catches this and substitutes placeholder text,
    so it never reaches callers of the ingest API.
    """

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(DocRAGError):
    """Raised when an embedding provider (or the whole fallback chain) fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(DocRAGError):
    """Raised when an external service or provider is unreachable.

    The embedder's fallback logic treats this like any other strategy
    failure and moves on to the next provider in priority order.
    """

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(DocRAGError):
    """Raised when a vector collection operation fails (upsert or index query)."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(DocRAGError):
    """Raised when the relational document / chunk store fails."""

    def __init__(
        self,
        message: str = "Persistence operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class JobError(DocRAGError):
    """Raised for job queue bookkeeping problems (unknown job type, bad payload)."""

    def __init__(
        self,
        message: str = "Background job failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DocRAGError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
