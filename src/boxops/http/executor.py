"""Authenticated request execution against the control-plane API.

Every call carries the session token as a bearer header. The token is
obtained lazily with an email/password exchange, and a 401 triggers one
re-authentication followed by one resend of the original request. Token
refresh is single-flight: concurrent callers that hit a 401 with the same
stale token share one exchange instead of racing each other.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .errors import (
    AuthenticationError,
    ClientError,
    NotFoundError,
    TransportError,
    extract_error_message,
)
from .transport import SharedTransport

logger = logging.getLogger(__name__)

TOKEN_PATH = "/services/security/token"


class RequestExecutor:
    """Executes authenticated JSON requests with one reauth retry on 401."""

    def __init__(
        self,
        *,
        endpoint_url: str,
        username: str,
        password: str,
        transport: SharedTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not endpoint_url:
            raise ValueError("endpoint_url is required")
        if http_client is None and transport is None:
            raise ValueError("either transport or http_client is required")

        self._endpoint_url = endpoint_url.rstrip("/")
        self._username = username
        self._password = password
        self._transport = transport
        self._http_client = http_client
        self._timeout = float(timeout_seconds)
        self._token: str | None = None
        self._token_lock = asyncio.Lock()

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    @property
    def transport(self) -> SharedTransport | None:
        return self._transport

    @property
    def has_token(self) -> bool:
        return self._token is not None

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return self._transport.client()

    def absolute_url(self, url: str) -> str:
        """Resolve a ``/services/...`` path against the endpoint."""
        if url.startswith("/"):
            return f"{self._endpoint_url}{url}"
        return url

    # ── Token lifecycle ──────────────────────────────────────────

    async def authenticate(self) -> str:
        """Exchange credentials for a token and hold it."""
        async with self._token_lock:
            return await self._connect()

    async def _connect(self) -> str:
        resp = await self._send(
            "POST",
            self.absolute_url(TOKEN_PATH),
            json={"email": self._username, "password": self._password},
        )
        if resp.status_code != 200:
            message = extract_error_message(resp.text)
            raise AuthenticationError(
                f"Error {resp.status_code} connecting to {self._endpoint_url}: {message}",
                status_code=resp.status_code,
                response_body=resp.text,
            )
        self._token = resp.text.strip()
        logger.debug("Authenticated", extra={"endpoint_url": self._endpoint_url})
        return self._token

    async def _current_token(self) -> str:
        if self._token is not None:
            return self._token
        async with self._token_lock:
            if self._token is None:
                await self._connect()
            return self._token

    async def _refresh_token(self, stale: str) -> str:
        async with self._token_lock:
            # Another coroutine may already have replaced the stale token.
            if self._token is None or self._token == stale:
                self._token = None
                await self._connect()
            return self._token

    def _discard_token(self, token: str | None) -> None:
        if token is not None and self._token == token:
            self._token = None

    # ── Requests ─────────────────────────────────────────────────

    def _headers(self, token: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        json: Any | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client().request(
                method,
                url,
                headers=self._headers(token),
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            self._discard_token(token)
            raise TransportError(f"{method} {url} timed out") from exc
        except httpx.TransportError as exc:
            self._discard_token(token)
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    async def execute(
        self,
        method: str,
        url: str,
        *,
        json: Any | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send an authenticated request and return the 2xx response.

        Raises:
            AuthenticationError: the request was rejected twice with 401.
            NotFoundError: the server answered 404.
            ClientError: any other non-2xx status.
            TransportError: no response was received.
        """
        url = self.absolute_url(url)
        token = await self._current_token()
        resp = await self._send(method, url, token=token, json=json, params=params)

        if resp.status_code == 401:
            logger.info(
                "Token rejected, re-authenticating",
                extra={"method": method, "url": url},
            )
            token = await self._refresh_token(token)
            resp = await self._send(method, url, token=token, json=json, params=params)
            if resp.status_code == 401:
                self._discard_token(token)
                raise AuthenticationError(
                    extract_error_message(resp.text) or "Unauthorized",
                    response_body=resp.text,
                )

        if resp.status_code < 200 or resp.status_code > 299:
            self._discard_token(token)
            self._raise_for_status(method, url, resp)

        return resp

    def _raise_for_status(self, method: str, url: str, resp: httpx.Response) -> None:
        body = resp.text
        message = extract_error_message(body) if body else f"HTTP {resp.status_code}"
        logger.warning(
            "Control plane request failed",
            extra={"method": method, "url": url, "status_code": resp.status_code},
        )
        if resp.status_code == 404:
            raise NotFoundError(message=message, response_body=body)
        raise ClientError(resp.status_code, message, response_body=body)

    async def get_json(self, url: str, *, params: dict[str, str] | None = None) -> Any:
        resp = await self.execute("GET", url, params=params)
        return resp.json()
