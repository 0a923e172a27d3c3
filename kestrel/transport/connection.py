"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Persistent transport connections to the service endpoint.

Connection wraps a keep-alive ``httpx.Client`` for blocking callers and
AsyncConnection wraps ``httpx.AsyncClient`` for asyncio callers. Each owns at
most one open client at a time; the state only changes through connect()
and close().

httpx transport failures are mapped as follows::

    ConnectError, ConnectTimeout, ProxyError,
    UnsupportedProtocol, LocalProtocolError   -> ConnectionFailedError (fatal)
    ReadError, WriteError, CloseError,
    RemoteProtocolError                       -> ConnectionInterruptedError, connection lost
    ReadTimeout, WriteTimeout, PoolTimeout,
    DecodingError                             -> ConnectionInterruptedError
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from kestrel.config.settings import ClientConfig
from kestrel.core.wire import OutgoingRequest, TransportReply
from kestrel.exceptions import (
    ConnectionFailedError,
    ConnectionInterruptedError,
    DispatchError,
    InvalidConfigurationError,
)
from kestrel.logging_config import get_logger, log_connection_event

logger = get_logger(__name__)

_CONNECTION_LOST = (
    httpx.ReadError,
    httpx.WriteError,
    httpx.CloseError,
    httpx.RemoteProtocolError,
)
_INTERRUPTED = (
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.DecodingError,
)


def translate_transport_error(exc: httpx.HTTPError, request: OutgoingRequest) -> DispatchError:
    """Map an httpx failure of one transmission to a DispatchError."""
    detail = f"{request.method} {request.url} ({request.operation}): {type(exc).__name__}: {exc}"
    if isinstance(exc, _CONNECTION_LOST):
        return ConnectionInterruptedError(f"Connection lost during {detail}", connection_lost=True)
    if isinstance(exc, _INTERRUPTED):
        return ConnectionInterruptedError(f"Transmission interrupted during {detail}")
    return ConnectionFailedError(f"Could not establish connection for {detail}")


class _ConnectionBase:
    """Shared state and client construction for both connection types."""

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[Any] = None,
    ):
        self.config = config
        self._transport = transport
        self._client: Any = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def endpoint(self) -> str:
        return self.config.base_url

    def _client_kwargs(self) -> Dict[str, Any]:
        try:
            base_url = self.config.base_url
        except InvalidConfigurationError as e:
            log_connection_event(logger, "connect", self.config.endpoint, success=False, error=str(e))
            raise ConnectionFailedError(f"Cannot connect to '{self.config.endpoint}': {e}") from e

        kwargs: Dict[str, Any] = {
            "base_url": base_url,
            "timeout": self.config.timeout,
            # One persistent connection, one outstanding request
            "limits": httpx.Limits(max_connections=1, max_keepalive_connections=1),
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    def _reply_from(self, response: httpx.Response, started: float) -> TransportReply:
        return TransportReply(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
            elapsed_ms=round((time.monotonic() - started) * 1000, 2),
        )


class Connection(_ConnectionBase):
    """
    Blocking persistent connection.

    Args:
        config: Endpoint configuration
        transport: Optional ``httpx.BaseTransport`` (e.g. ``httpx.MockTransport``)

    Not safe for concurrent use; use one Connection per thread.
    """

    def connect(self) -> None:
        """
        Open the transport.

        A no-op if already connected.

        Raises:
            ConnectionFailedError: If the transport cannot be established
        """
        if self._client is not None:
            return
        kwargs = self._client_kwargs()
        try:
            self._client = httpx.Client(**kwargs)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            log_connection_event(logger, "connect", self.config.endpoint, success=False, error=str(e))
            raise ConnectionFailedError(f"Cannot connect to '{kwargs['base_url']}': {e}") from e
        log_connection_event(logger, "connect", kwargs["base_url"])

    def close(self) -> None:
        """Release the transport. Safe to call when already closed or never opened."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            client.close()
        except Exception as e:
            # Best-effort close; the client is dropped either way
            logger.warning("connection_close_failed", endpoint=self.config.endpoint, error=str(e))
            return
        log_connection_event(logger, "close", self.config.endpoint)

    def send(self, request: OutgoingRequest) -> TransportReply:
        """
        Transmit a signed request and read the full reply.

        Raises:
            ConnectionFailedError: If not connected or the connection cannot be established
            ConnectionInterruptedError: If reading or writing fails
        """
        if self._client is None:
            raise ConnectionFailedError("Connection is not open")
        started = time.monotonic()
        try:
            response = self._client.request(
                request.method,
                request.url,
                content=request.body,
                headers=request.headers,
            )
        except httpx.HTTPError as e:
            raise translate_transport_error(e, request) from e
        return self._reply_from(response, started)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AsyncConnection(_ConnectionBase):
    """
    Asyncio persistent connection.

    Args:
        config: Endpoint configuration
        transport: Optional ``httpx.AsyncBaseTransport`` (e.g. ``httpx.MockTransport``)
    """

    async def connect(self) -> None:
        """
        Open the transport.

        Raises:
            ConnectionFailedError: If the transport cannot be established
        """
        if self._client is not None:
            return
        kwargs = self._client_kwargs()
        try:
            self._client = httpx.AsyncClient(**kwargs)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            log_connection_event(logger, "connect", self.config.endpoint, success=False, error=str(e))
            raise ConnectionFailedError(f"Cannot connect to '{kwargs['base_url']}': {e}") from e
        log_connection_event(logger, "connect", kwargs["base_url"])

    async def close(self) -> None:
        """Release the transport. Safe to call when already closed or never opened."""
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except Exception as e:
            logger.warning("connection_close_failed", endpoint=self.config.endpoint, error=str(e))
            return
        log_connection_event(logger, "close", self.config.endpoint)

    async def send(self, request: OutgoingRequest) -> TransportReply:
        """
        Transmit a signed request and read the full reply.

        Raises:
            ConnectionFailedError: If not connected or the connection cannot be established
            ConnectionInterruptedError: If reading or writing fails
        """
        if self._client is None:
            raise ConnectionFailedError("Connection is not open")
        started = time.monotonic()
        try:
            response = await self._client.request(
                request.method,
                request.url,
                content=request.body,
                headers=request.headers,
            )
        except httpx.HTTPError as e:
            raise translate_transport_error(e, request) from e
        return self._reply_from(response, started)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
