"""
Exception hierarchy for Kestrel.

All custom exceptions inherit from KestrelError base class. Failures of a
dispatched call are DispatchError subclasses tagged with an ErrorKind and a
retryable flag.
"""

from enum import Enum
from typing import Optional


class KestrelError(Exception):
    """Base exception for all Kestrel errors."""
    pass


# Configuration Errors
class ConfigurationError(KestrelError):
    """Base exception for configuration-related errors."""
    pass


class InvalidConfigurationError(ConfigurationError):
    """Raised when configuration is invalid or malformed."""
    pass


class SDKConfigurationError(ConfigurationError):
    """Raised when arguments passed to a client method are invalid."""
    pass


# Signing Errors
class SigningError(KestrelError):
    """Raised when a request cannot be signed."""
    pass


# Dispatch Errors
class ErrorKind(Enum):
    """Classification of a failed service call."""
    REQUEST_TOO_LARGE = "RequestTooLarge"
    VALIDATION = "ValidationException"
    CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
    RESOURCE_NOT_FOUND = "ResourceNotFoundException"
    RESOURCE_IN_USE = "ResourceInUseException"
    ITEM_COLLECTION_TOO_LARGE = "ItemCollectionSizeLimitExceededException"
    ACCESS_DENIED = "AccessDeniedException"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    TRANSACTION_CANCELED = "TransactionCanceledException"
    TRANSACTION_CONFLICT = "TransactionConflictException"
    SERIALIZATION = "SerializationException"
    PROVISIONED_THROUGHPUT_EXCEEDED = "ProvisionedThroughputExceededException"
    THROTTLING = "ThrottlingException"
    INTERNAL_SERVER_ERROR = "InternalServerError"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    LIMIT_EXCEEDED = "LimitExceededException"
    CONNECTION_INTERRUPTED = "ConnectionInterrupted"
    CONNECTION_FAILED = "ConnectionFailed"
    UNCLASSIFIED = "Unclassified"


class DispatchError(KestrelError):
    """
    Base exception for a classified failure of a dispatched call.

    Attributes:
        kind: ErrorKind of the failure
        retryable: Whether the dispatcher re-attempts the call
        message: Human-readable message (service-reported when available)
        error_type: Raw service error type string, if any
        status_code: HTTP status of the reply, if a reply was received
        payload: Raw reply body, if any
    """
    kind: ErrorKind = ErrorKind.UNCLASSIFIED
    retryable: bool = False

    def __init__(
        self,
        message: str = "",
        *,
        error_type: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[bytes] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.payload = payload

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"retryable={self.retryable}, message={self.message!r})"
        )


class FatalServiceError(DispatchError):
    """Base exception for service-reported errors that are never retried."""
    retryable = False


class TransientServiceError(DispatchError):
    """Base exception for service-reported errors retried with backoff."""
    retryable = True


class RequestTooLargeError(FatalServiceError):
    """Raised when the service rejects the request body as too large (HTTP 413)."""
    kind = ErrorKind.REQUEST_TOO_LARGE


class ValidationError(FatalServiceError):
    """Raised when the service rejects the request as invalid."""
    kind = ErrorKind.VALIDATION


class ConditionalCheckFailedError(FatalServiceError):
    """Raised when a conditional write is rejected; payload holds the raw reply."""
    kind = ErrorKind.CONDITIONAL_CHECK_FAILED


class ResourceNotFoundError(FatalServiceError):
    """Raised when the targeted table or index does not exist."""
    kind = ErrorKind.RESOURCE_NOT_FOUND


class ResourceInUseError(FatalServiceError):
    """Raised when the targeted resource is busy (e.g. being created)."""
    kind = ErrorKind.RESOURCE_IN_USE


class ItemCollectionTooLargeError(FatalServiceError):
    """Raised when an item collection exceeds its size limit."""
    kind = ErrorKind.ITEM_COLLECTION_TOO_LARGE


class AccessDeniedError(FatalServiceError):
    """Raised when the credentials lack permission for the operation."""
    kind = ErrorKind.ACCESS_DENIED


class AuthenticationFailedError(FatalServiceError):
    """Raised when the service rejects the request signature or credentials."""
    kind = ErrorKind.AUTHENTICATION_FAILED


class TransactionCanceledError(FatalServiceError):
    """Raised when a transaction is canceled by the service."""
    kind = ErrorKind.TRANSACTION_CANCELED


class TransactionConflictError(FatalServiceError):
    """Raised when a request conflicts with an ongoing transaction."""
    kind = ErrorKind.TRANSACTION_CONFLICT


class SerializationError(FatalServiceError):
    """Raised when the service cannot deserialize the request body."""
    kind = ErrorKind.SERIALIZATION


class UnclassifiedServiceError(FatalServiceError):
    """Raised for a service error type that neither known table contains."""
    kind = ErrorKind.UNCLASSIFIED


class ProvisionedThroughputExceededError(TransientServiceError):
    """Raised when the table's provisioned throughput is exceeded."""
    kind = ErrorKind.PROVISIONED_THROUGHPUT_EXCEEDED


class ThrottlingError(TransientServiceError):
    """Raised when the service throttles the caller."""
    kind = ErrorKind.THROTTLING


class InternalServerError(TransientServiceError):
    """Raised when the service reports an internal failure."""
    kind = ErrorKind.INTERNAL_SERVER_ERROR


class ServiceUnavailableError(TransientServiceError):
    """Raised when the service is temporarily unavailable."""
    kind = ErrorKind.SERVICE_UNAVAILABLE


class LimitExceededError(TransientServiceError):
    """Raised when an account-level request limit is exceeded."""
    kind = ErrorKind.LIMIT_EXCEEDED


# Transport Errors
class ConnectionInterruptedError(DispatchError):
    """
    Raised when a reply could not be read or parsed.

    Signals a transport-level anomaly rather than a service-reported error.
    Retried with backoff. ``connection_lost`` is True when the transport
    reported the persistent connection as dropped.
    """
    kind = ErrorKind.CONNECTION_INTERRUPTED
    retryable = True

    def __init__(self, message: str = "", *, connection_lost: bool = False, **kwargs):
        super().__init__(message, **kwargs)
        self.connection_lost = connection_lost


class ConnectionFailedError(DispatchError):
    """Raised when the transport connection cannot be established."""
    kind = ErrorKind.CONNECTION_FAILED
    retryable = False


class RetriesExhaustedError(KestrelError):
    """Raised when an optional attempt cap is reached while errors stay retryable."""

    def __init__(self, message: str, attempts: int, last_error: DispatchError):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


# SDK Errors
class ResponseFormatError(KestrelError):
    """Raised when a successful reply does not have the shape an SDK helper expects."""
    pass
