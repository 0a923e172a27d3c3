"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Request dispatch.

RequestDispatcher (blocking) and AsyncRequestDispatcher (asyncio) send one
service operation at a time over a persistent connection. Each call:

1. ensures the connection is open,
2. serializes the payload and builds the target headers,
3. signs the request with the current timestamp,
4. transmits it and reads the reply,
5. classifies failures and retries retryable ones with exponential backoff.

Both dispatchers drive the same RetryLoop; only the transport calls and the
backoff sleep differ.
"""

import asyncio
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from kestrel.config.settings import ClientConfig
from kestrel.core.classifier import ErrorClassifier
from kestrel.core.retry import Backoff, RetryLoop, Transmit
from kestrel.core.signing import Signer, signer_for
from kestrel.core.wire import OutgoingRequest, build_headers, encode_payload
from kestrel.exceptions import (
    ConnectionInterruptedError,
    DispatchError,
    SDKConfigurationError,
)
from kestrel.logging_config import (
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_connection_event,
    log_dispatch_attempt,
    set_correlation_id,
)
from kestrel.transport.connection import AsyncConnection, Connection

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _DispatcherBase:
    """Request construction shared by both dispatchers."""

    def __init__(
        self,
        config: ClientConfig,
        signer: Optional[Signer] = None,
        classifier: Optional[ErrorClassifier] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config
        self.signer = signer if signer is not None else signer_for(config)
        self.classifier = classifier or ErrorClassifier()
        self.clock = clock
        self.last_loop: Optional[RetryLoop] = None

    @staticmethod
    def _check_operation(operation: str) -> None:
        if not operation or not isinstance(operation, str):
            raise SDKConfigurationError("operation name is required")

    def _build_request(self, operation: str, body: bytes) -> OutgoingRequest:
        """Build and sign a fresh request for one transmission."""
        headers = build_headers(self.config.service_name, self.config.api_version, operation)
        headers["Host"] = self.config.host_header
        request = OutgoingRequest(
            operation=operation,
            method="POST",
            url=f"{self.config.base_url}{self.config.path}",
            path=self.config.path,
            headers=headers,
            body=body,
        )
        self.signer.sign(request, self.clock())
        return request

    def _new_loop(self, operation: str) -> RetryLoop:
        loop = RetryLoop(operation, self.classifier, self.config.retry)
        self.last_loop = loop
        return loop


class RequestDispatcher(_DispatcherBase):
    """
    Blocking dispatcher.

    The retry loop and its backoff sleeps run on the calling thread. Calls
    through one dispatcher are serialized; use one dispatcher per thread for
    concurrent requests.

    Args:
        config: Endpoint configuration
        signer: Signer for outgoing requests (default chosen from credentials)
        connection: Connection to reuse (default: a new Connection for ``config``)
        classifier: ErrorClassifier (default tables)
        sleep: Blocking sleep primitive
        clock: Source of signing timestamps
    """

    def __init__(
        self,
        config: ClientConfig,
        signer: Optional[Signer] = None,
        connection: Optional[Connection] = None,
        classifier: Optional[ErrorClassifier] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(config, signer=signer, classifier=classifier, clock=clock)
        self.connection = connection if connection is not None else Connection(config)
        self._sleep = sleep
        self._lock = threading.Lock()

    def connect(self) -> None:
        self.connection.connect()

    def close(self) -> None:
        self.connection.close()

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    def _transmit(self, operation: str, body: bytes, attempt: int) -> Any:
        if not self.connection.is_connected:
            try:
                self.connection.connect()
            except DispatchError as e:
                return e

        request = self._build_request(operation, body)
        log_dispatch_attempt(logger, operation, attempt, body_bytes=len(body))
        try:
            return self.connection.send(request)
        except DispatchError as e:
            if isinstance(e, ConnectionInterruptedError) and e.connection_lost:
                self.connection.close()
                log_connection_event(logger, "reset", self.config.endpoint, success=False)
            return e

    def dispatch(self, operation: str, payload: Any = None) -> Any:
        """
        Send one operation and return the decoded response.

        Retryable failures are retried with exponential backoff until the
        call succeeds, fails fatally, or the optional attempt cap is reached.

        Args:
            operation: Service operation name (e.g. "GetItem")
            payload: JSON-serializable request payload

        Returns:
            Decoded response body

        Raises:
            DispatchError: Fatal classified failure
            RetriesExhaustedError: Attempt cap reached (only when configured)
        """
        self._check_operation(operation)
        body = encode_payload(payload)
        owns_correlation = get_correlation_id() is None
        if owns_correlation:
            set_correlation_id()

        try:
            with self._lock:
                loop = self._new_loop(operation)
                steps = loop.steps()
                try:
                    step = next(steps)
                    while True:
                        if isinstance(step, Transmit):
                            outcome = self._transmit(operation, body, step.attempt)
                        elif isinstance(step, Backoff):
                            self._sleep(step.delay)
                            outcome = None
                        else:
                            raise TypeError(f"Unexpected dispatch step {step!r}")
                        step = steps.send(outcome)
                except StopIteration as stop:
                    return stop.value
                finally:
                    steps.close()
        finally:
            if owns_correlation:
                clear_correlation_id()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AsyncRequestDispatcher(_DispatcherBase):
    """
    Asyncio dispatcher.

    Network I/O and backoff delays are suspension points; the backoff never
    blocks the event loop. Calls through one dispatcher are serialized by an
    ``asyncio.Lock``. Cancelling a call stops its retry chain before the next
    attempt.

    Args:
        config: Endpoint configuration
        signer: Signer for outgoing requests (default chosen from credentials)
        connection: AsyncConnection to reuse (default: a new one for ``config``)
        classifier: ErrorClassifier (default tables)
        sleep: Awaitable sleep primitive
        clock: Source of signing timestamps
    """

    def __init__(
        self,
        config: ClientConfig,
        signer: Optional[Signer] = None,
        connection: Optional[AsyncConnection] = None,
        classifier: Optional[ErrorClassifier] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(config, signer=signer, classifier=classifier, clock=clock)
        self.connection = connection if connection is not None else AsyncConnection(config)
        self._sleep = sleep
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        await self.connection.connect()

    async def close(self) -> None:
        await self.connection.close()

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    async def _transmit(self, operation: str, body: bytes, attempt: int) -> Any:
        if not self.connection.is_connected:
            try:
                await self.connection.connect()
            except DispatchError as e:
                return e

        request = self._build_request(operation, body)
        log_dispatch_attempt(logger, operation, attempt, body_bytes=len(body))
        try:
            return await self.connection.send(request)
        except DispatchError as e:
            if isinstance(e, ConnectionInterruptedError) and e.connection_lost:
                await self.connection.close()
                log_connection_event(logger, "reset", self.config.endpoint, success=False)
            return e

    async def dispatch(self, operation: str, payload: Any = None) -> Any:
        """
        Send one operation and return the decoded response.

        See RequestDispatcher.dispatch() for full documentation.
        """
        self._check_operation(operation)
        body = encode_payload(payload)
        owns_correlation = get_correlation_id() is None
        if owns_correlation:
            set_correlation_id()

        try:
            async with self._lock:
                loop = self._new_loop(operation)
                steps = loop.steps()
                try:
                    step = next(steps)
                    while True:
                        if isinstance(step, Transmit):
                            outcome = await self._transmit(operation, body, step.attempt)
                        elif isinstance(step, Backoff):
                            await self._sleep(step.delay)
                            outcome = None
                        else:
                            raise TypeError(f"Unexpected dispatch step {step!r}")
                        step = steps.send(outcome)
                except StopIteration as stop:
                    return stop.value
                except asyncio.CancelledError:
                    logger.info(
                        "dispatch_cancelled",
                        operation=operation,
                        transmissions=loop.transmissions,
                    )
                    raise
                finally:
                    steps.close()
        finally:
            if owns_correlation:
                clear_correlation_id()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
