"""Provider health state for the embedder's circuit breaker.

A provider that fails while a fallback is available is marked unhealthy and
skipped from then on.  The mark is sticky: nothing re-probes the provider
automatically.  The state lives in an explicit object injected into the
embedder, so several embedders can share it and tests can call
:meth:`ProviderHealth.reset` to simulate recovery.
"""

from __future__ import annotations

import threading

import structlog

logger = structlog.get_logger(logger_name=__name__)


class ProviderHealth:
    """Tracks which embedding providers are currently considered down."""

    def __init__(self) -> None:
        self._unhealthy: dict[str, str] = {}
        self._lock = threading.Lock()

    def is_healthy(self, provider_name: str) -> bool:
        with self._lock:
            return provider_name not in self._unhealthy

    def mark_unhealthy(self, provider_name: str, reason: str = "") -> None:
        with self._lock:
            first_failure = provider_name not in self._unhealthy
            self._unhealthy[provider_name] = reason
        if first_failure:
            logger.warning("provider_marked_unhealthy", provider=provider_name, reason=reason)

    def reset(self, provider_name: str | None = None) -> None:
        """Mark one provider (or, with no argument, all providers) healthy again."""
        with self._lock:
            if provider_name is None:
                self._unhealthy.clear()
            else:
                self._unhealthy.pop(provider_name, None)
        logger.info("provider_health_reset", provider=provider_name or "all")

    @property
    def unhealthy_providers(self) -> dict[str, str]:
        """Provider name → reason it was marked unhealthy."""
        with self._lock:
            return dict(self._unhealthy)
