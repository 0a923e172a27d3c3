"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Retry state machine for dispatched calls.

RetryLoop holds the whole decode/classify/backoff policy of one logical call
as a generator. It yields Transmit and Backoff steps and receives the outcome
of each transmission. The blocking and asyncio dispatchers drive the same
generator and differ only in how they transmit and how they sleep.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generator, List, Optional, Tuple, Union

from kestrel.config.settings import RetryConfig
from kestrel.core.classifier import ErrorClassifier
from kestrel.core.wire import TransportReply, decode_body
from kestrel.exceptions import (
    ConnectionInterruptedError,
    DispatchError,
    RetriesExhaustedError,
)
from kestrel.logging_config import (
    get_logger,
    log_classified_error,
    log_retry_scheduled,
)

logger = get_logger(__name__)


def backoff_delay(attempt: int, unit: float = 1.0, max_backoff: Optional[float] = None) -> float:
    """
    Delay before retry number ``attempt`` (zero-based): ``unit * 2**attempt``.

    Args:
        attempt: Zero-based retry number
        unit: Length of one backoff time unit in seconds
        max_backoff: Optional upper bound on the delay

    Returns:
        Delay in seconds
    """
    if attempt < 0:
        raise ValueError(f"attempt must be non-negative, got {attempt}")
    delay = unit * (2 ** attempt)
    if max_backoff is not None:
        delay = min(delay, max_backoff)
    return delay


class DispatchState(Enum):
    """States of one logical call."""
    IDLE = "idle"
    SENDING = "sending"
    CLASSIFYING = "classifying"
    WAITING_BACKOFF = "waiting_backoff"
    SUCCEEDED = "succeeded"
    DONE = "done"


@dataclass(frozen=True)
class Transmit:
    """Ask the driver to (re)connect if needed, sign, and send the call."""
    operation: str
    attempt: int


@dataclass(frozen=True)
class Backoff:
    """Ask the driver to suspend for ``delay`` seconds before the next attempt."""
    operation: str
    attempt: int
    delay: float
    error: DispatchError


Step = Union[Transmit, Backoff]
Outcome = Union[TransportReply, DispatchError, None]


class RetryLoop:
    """
    Retry state machine for one logical call.

    Drivers call ``steps()`` and feed each Transmit step the resulting
    TransportReply, or the DispatchError raised by the transport. Backoff
    steps are answered with None once the delay has elapsed. The generator
    returns the decoded response or raises the terminal error.

    Args:
        operation: Service operation name, for logging
        classifier: ErrorClassifier used on failed replies
        retry: Backoff configuration
    """

    def __init__(
        self,
        operation: str,
        classifier: ErrorClassifier,
        retry: Optional[RetryConfig] = None,
    ):
        self.operation = operation
        self.classifier = classifier
        self.retry = retry or RetryConfig()
        self.state = DispatchState.IDLE
        self.transmissions = 0
        self.delays: List[float] = []

    def _evaluate(self, outcome: Outcome) -> Tuple[Any, Optional[DispatchError]]:
        """
        Turn one transmission outcome into a response or an error.

        Returns:
            Tuple of (response, error); exactly one is meaningful
        """
        if isinstance(outcome, DispatchError):
            return None, outcome
        if not isinstance(outcome, TransportReply):
            raise TypeError(f"Transmit step expects a TransportReply, got {type(outcome).__name__}")

        error = self.classifier.classify_reply(outcome)
        if error is not None:
            return None, error
        try:
            return decode_body(outcome.body), None
        except ConnectionInterruptedError as e:
            e.status_code = outcome.status_code
            return None, e

    def steps(self) -> Generator[Step, Outcome, Any]:
        attempt = 0
        while True:
            self.state = DispatchState.SENDING
            outcome = yield Transmit(self.operation, attempt)
            self.transmissions += 1

            self.state = DispatchState.CLASSIFYING
            response, error = self._evaluate(outcome)
            if error is None:
                self.state = DispatchState.SUCCEEDED
                if attempt:
                    logger.info(
                        "dispatch_recovered",
                        operation=self.operation,
                        attempts=attempt + 1,
                    )
                return response

            log_classified_error(
                logger,
                operation=self.operation,
                error_kind=error.kind.value,
                retryable=error.retryable,
                status_code=error.status_code,
                message=error.message,
                attempt=attempt,
            )

            if not error.retryable:
                self.state = DispatchState.DONE
                raise error

            max_attempts = self.retry.max_attempts
            if max_attempts is not None and attempt + 1 >= max_attempts:
                self.state = DispatchState.DONE
                raise RetriesExhaustedError(
                    f"{self.operation} still failing after {attempt + 1} attempts: "
                    f"{error.kind.value}: {error.message}",
                    attempts=attempt + 1,
                    last_error=error,
                ) from error

            delay = backoff_delay(attempt, self.retry.backoff_unit, self.retry.max_backoff)
            self.state = DispatchState.WAITING_BACKOFF
            self.delays.append(delay)
            log_retry_scheduled(
                logger,
                operation=self.operation,
                attempt=attempt,
                delay_seconds=delay,
                error_kind=error.kind.value,
            )
            yield Backoff(self.operation, attempt, delay, error)
            attempt += 1
