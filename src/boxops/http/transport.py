"""Pooled HTTP transport shared by every client of one process.

The pool is an explicit object rather than a module global: build one
``SharedTransport`` at startup and hand it to each ``RequestExecutor``.
The underlying ``httpx.AsyncClient`` is created lazily, exactly once, on
first use.
"""

from __future__ import annotations

import logging
import threading

import httpx

logger = logging.getLogger(__name__)

_DEFAULT_LIMITS = httpx.Limits(max_connections=100, max_keepalive_connections=20)


class SharedTransport:
    """Lazily-built, single-instance ``httpx.AsyncClient`` holder."""

    def __init__(
        self,
        *,
        verify_tls: bool = True,
        ca_bundle: str | None = None,
        limits: httpx.Limits = _DEFAULT_LIMITS,
    ) -> None:
        self._verify: bool | str = ca_bundle if (verify_tls and ca_bundle) else verify_tls
        self._limits = limits
        self._client: httpx.AsyncClient | None = None
        self._lock = threading.Lock()

        if not verify_tls:
            logger.warning(
                "TLS certificate verification is disabled",
                extra={"verify_tls": False},
            )

    @property
    def verify(self) -> bool | str:
        return self._verify

    @property
    def initialized(self) -> bool:
        return self._client is not None

    def client(self) -> httpx.AsyncClient:
        """Return the pooled client, creating it on first call."""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(verify=self._verify, limits=self._limits)
                    logger.debug("Created pooled HTTP client")
        return self._client

    async def aclose(self) -> None:
        """Close the pooled client (shutdown and tests only)."""
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            await client.aclose()
