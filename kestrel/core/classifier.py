"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Service error classification.

Maps a failed reply (HTTP status, service error type, message, raw body) to
exactly one DispatchError. Known error names live in two static tables,
one for fatal errors and one for transient errors, so new names can be added
without touching the dispatch logic.
"""

from typing import Dict, Mapping, Optional, Type

from kestrel.core.wire import TransportReply, parse_error_body
from kestrel.exceptions import (
    AccessDeniedError,
    AuthenticationFailedError,
    ConditionalCheckFailedError,
    ConnectionInterruptedError,
    DispatchError,
    ErrorKind,
    InternalServerError,
    ItemCollectionTooLargeError,
    LimitExceededError,
    ProvisionedThroughputExceededError,
    RequestTooLargeError,
    ResourceInUseError,
    ResourceNotFoundError,
    SerializationError,
    ServiceUnavailableError,
    ThrottlingError,
    TransactionCanceledError,
    TransactionConflictError,
    UnclassifiedServiceError,
    ValidationError,
)
from kestrel.logging_config import get_logger

logger = get_logger(__name__)

HTTP_REQUEST_TOO_LARGE = 413

FATAL_ERRORS: Dict[str, ErrorKind] = {
    "ValidationException": ErrorKind.VALIDATION,
    "ConditionalCheckFailedException": ErrorKind.CONDITIONAL_CHECK_FAILED,
    "ResourceNotFoundException": ErrorKind.RESOURCE_NOT_FOUND,
    "ResourceInUseException": ErrorKind.RESOURCE_IN_USE,
    "ItemCollectionSizeLimitExceededException": ErrorKind.ITEM_COLLECTION_TOO_LARGE,
    "AccessDeniedException": ErrorKind.ACCESS_DENIED,
    "IncompleteSignatureException": ErrorKind.AUTHENTICATION_FAILED,
    "InvalidSignatureException": ErrorKind.AUTHENTICATION_FAILED,
    "MissingAuthenticationTokenException": ErrorKind.AUTHENTICATION_FAILED,
    "UnrecognizedClientException": ErrorKind.AUTHENTICATION_FAILED,
    "TransactionCanceledException": ErrorKind.TRANSACTION_CANCELED,
    "TransactionConflictException": ErrorKind.TRANSACTION_CONFLICT,
    "SerializationException": ErrorKind.SERIALIZATION,
}

TRANSIENT_ERRORS: Dict[str, ErrorKind] = {
    "ProvisionedThroughputExceededException": ErrorKind.PROVISIONED_THROUGHPUT_EXCEEDED,
    "ThrottlingException": ErrorKind.THROTTLING,
    "InternalServerError": ErrorKind.INTERNAL_SERVER_ERROR,
    "ServiceUnavailable": ErrorKind.SERVICE_UNAVAILABLE,
    "ServiceUnavailableException": ErrorKind.SERVICE_UNAVAILABLE,
    "LimitExceededException": ErrorKind.LIMIT_EXCEEDED,
    "RequestLimitExceeded": ErrorKind.LIMIT_EXCEEDED,
}

ERROR_CLASSES: Dict[ErrorKind, Type[DispatchError]] = {
    ErrorKind.REQUEST_TOO_LARGE: RequestTooLargeError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.CONDITIONAL_CHECK_FAILED: ConditionalCheckFailedError,
    ErrorKind.RESOURCE_NOT_FOUND: ResourceNotFoundError,
    ErrorKind.RESOURCE_IN_USE: ResourceInUseError,
    ErrorKind.ITEM_COLLECTION_TOO_LARGE: ItemCollectionTooLargeError,
    ErrorKind.ACCESS_DENIED: AccessDeniedError,
    ErrorKind.AUTHENTICATION_FAILED: AuthenticationFailedError,
    ErrorKind.TRANSACTION_CANCELED: TransactionCanceledError,
    ErrorKind.TRANSACTION_CONFLICT: TransactionConflictError,
    ErrorKind.SERIALIZATION: SerializationError,
    ErrorKind.PROVISIONED_THROUGHPUT_EXCEEDED: ProvisionedThroughputExceededError,
    ErrorKind.THROTTLING: ThrottlingError,
    ErrorKind.INTERNAL_SERVER_ERROR: InternalServerError,
    ErrorKind.SERVICE_UNAVAILABLE: ServiceUnavailableError,
    ErrorKind.LIMIT_EXCEEDED: LimitExceededError,
    ErrorKind.UNCLASSIFIED: UnclassifiedServiceError,
}

# Fatal kinds whose error keeps the raw reply body as supplementary detail
_KINDS_WITH_PAYLOAD = frozenset({
    ErrorKind.CONDITIONAL_CHECK_FAILED,
    ErrorKind.TRANSACTION_CANCELED,
})


def short_error_name(error_type: str) -> str:
    """
    Strip the namespace from a service error type.

    ``"com.amazonaws.dynamodb.v20120810#ValidationException"`` becomes
    ``"ValidationException"``; a type without ``#`` is returned unchanged.
    """
    return error_type.rsplit("#", 1)[-1].strip()


class ErrorClassifier:
    """
    Classify failed replies into DispatchError values.

    Args:
        extra_fatal: Additional short error names treated as fatal
        extra_transient: Additional short error names treated as retryable

    Extra names must map to an ErrorKind present in ERROR_CLASSES; a name in
    both extra tables is rejected.
    """

    def __init__(
        self,
        extra_fatal: Optional[Mapping[str, ErrorKind]] = None,
        extra_transient: Optional[Mapping[str, ErrorKind]] = None,
    ):
        self.fatal_errors: Dict[str, ErrorKind] = dict(FATAL_ERRORS)
        self.transient_errors: Dict[str, ErrorKind] = dict(TRANSIENT_ERRORS)

        for name, kind in (extra_fatal or {}).items():
            self._check_kind(name, kind)
            self.fatal_errors[name] = kind
            self.transient_errors.pop(name, None)
        for name, kind in (extra_transient or {}).items():
            self._check_kind(name, kind)
            if extra_fatal and name in extra_fatal:
                raise ValueError(f"Error name '{name}' cannot be both fatal and transient")
            self.transient_errors[name] = kind
            self.fatal_errors.pop(name, None)

    @staticmethod
    def _check_kind(name: str, kind: ErrorKind) -> None:
        if kind not in ERROR_CLASSES:
            raise ValueError(f"Error name '{name}' maps to unsupported kind {kind!r}")

    def classify(
        self,
        status_code: int,
        error_type: str,
        message: str,
        payload: bytes,
    ) -> Optional[DispatchError]:
        """
        Classify a reply from its status and parsed error fields.

        Args:
            status_code: HTTP status of the reply
            error_type: Service error type, possibly namespaced with '#'
            message: Service-reported message
            payload: Raw reply body

        Returns:
            None for a success status, otherwise the classified error
        """
        if status_code == HTTP_REQUEST_TOO_LARGE:
            return RequestTooLargeError(
                message or "Request body exceeds the service size limit",
                error_type=error_type or None,
                status_code=status_code,
            )

        if 200 <= status_code < 300:
            return None

        name = short_error_name(error_type or "")

        kind = self.fatal_errors.get(name)
        if kind is not None:
            error = ERROR_CLASSES[kind](
                message,
                error_type=error_type,
                status_code=status_code,
                payload=payload if kind in _KINDS_WITH_PAYLOAD else None,
            )
            # The table that matched decides retryability, not the kind
            error.retryable = False
            return error

        kind = self.transient_errors.get(name)
        if kind is not None:
            error = ERROR_CLASSES[kind](
                message,
                error_type=error_type,
                status_code=status_code,
            )
            error.retryable = True
            return error

        raw = payload.decode("utf-8", errors="replace") if payload else ""
        return UnclassifiedServiceError(
            f"Unclassified service error '{error_type or '<none>'}' "
            f"(status {status_code}): {message} [payload: {raw}]",
            error_type=error_type,
            status_code=status_code,
            payload=payload,
        )

    def classify_reply(self, reply: TransportReply) -> Optional[DispatchError]:
        """
        Classify a raw transport reply.

        The 413 status is checked before the body is inspected. An error
        reply whose body cannot be parsed yields a retryable
        ConnectionInterruptedError.

        Returns:
            None when the reply is a success, otherwise the classified error
        """
        if reply.status_code == HTTP_REQUEST_TOO_LARGE:
            return self.classify(reply.status_code, "", "", reply.body)

        if reply.ok:
            return None

        try:
            error_type, message = parse_error_body(reply.body)
        except ConnectionInterruptedError as e:
            e.status_code = reply.status_code
            logger.debug(
                "unparsable_error_reply",
                status_code=reply.status_code,
                body_length=len(reply.body),
            )
            return e

        return self.classify(reply.status_code, error_type, message, reply.body)
