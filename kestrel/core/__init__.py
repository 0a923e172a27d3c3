"""
Core dispatch pipeline for Kestrel.

Error classification, request signing, the retry state machine, and the
blocking and asyncio dispatchers.
"""

from kestrel.core.classifier import (
    ERROR_CLASSES,
    FATAL_ERRORS,
    TRANSIENT_ERRORS,
    ErrorClassifier,
    short_error_name,
)
from kestrel.core.dispatcher import AsyncRequestDispatcher, RequestDispatcher
from kestrel.core.retry import Backoff, DispatchState, RetryLoop, Transmit, backoff_delay
from kestrel.core.signing import NullSigner, Signer, SigV4Signer, signer_for
from kestrel.core.wire import OutgoingRequest, TransportReply

__all__ = [
    "ERROR_CLASSES",
    "FATAL_ERRORS",
    "TRANSIENT_ERRORS",
    "AsyncRequestDispatcher",
    "Backoff",
    "DispatchState",
    "ErrorClassifier",
    "NullSigner",
    "OutgoingRequest",
    "RequestDispatcher",
    "RetryLoop",
    "Signer",
    "SigV4Signer",
    "Transmit",
    "TransportReply",
    "backoff_delay",
    "short_error_name",
    "signer_for",
]
