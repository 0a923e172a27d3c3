"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Unit tests for service error classification.
"""

import json

import pytest

from kestrel.core.classifier import (
    ERROR_CLASSES,
    FATAL_ERRORS,
    TRANSIENT_ERRORS,
    ErrorClassifier,
    short_error_name,
)
from kestrel.core.wire import TransportReply
from kestrel.exceptions import (
    ConditionalCheckFailedError,
    ConnectionInterruptedError,
    ErrorKind,
    ProvisionedThroughputExceededError,
    RequestTooLargeError,
    ResourceNotFoundError,
    ThrottlingError,
    UnclassifiedServiceError,
    ValidationError,
)

NAMESPACE = "com.amazonaws.dynamodb.v20120810#"


def _body(error_type: str, message: str = "") -> bytes:
    return json.dumps({"__type": error_type, "message": message}).encode()


class TestShortErrorName:
    def test_strips_namespace(self):
        assert short_error_name(NAMESPACE + "ValidationException") == "ValidationException"

    def test_uses_last_separator(self):
        assert short_error_name("a#b#ThrottlingException") == "ThrottlingException"

    def test_without_namespace(self):
        assert short_error_name("ThrottlingException") == "ThrottlingException"

    def test_empty(self):
        assert short_error_name("") == ""


class TestRequestTooLarge:
    """HTTP 413 short-circuits every other field."""

    @pytest.mark.parametrize("error_type", [
        "",
        NAMESPACE + "ValidationException",
        NAMESPACE + "ProvisionedThroughputExceededException",
        "garbage",
    ])
    def test_413_always_request_too_large(self, error_type):
        error = ErrorClassifier().classify(413, error_type, "msg", b"not even json")
        assert isinstance(error, RequestTooLargeError)
        assert error.kind is ErrorKind.REQUEST_TOO_LARGE
        assert error.retryable is False

    def test_413_reply_with_validation_body(self):
        reply = TransportReply(413, _body(NAMESPACE + "ValidationException", "too big"))
        error = ErrorClassifier().classify_reply(reply)
        assert isinstance(error, RequestTooLargeError)
        assert error.status_code == 413

    def test_413_reply_with_unparsable_body(self):
        reply = TransportReply(413, b"<html>Request Entity Too Large")
        error = ErrorClassifier().classify_reply(reply)
        assert isinstance(error, RequestTooLargeError)


class TestKnownErrors:
    @pytest.mark.parametrize("name", sorted(FATAL_ERRORS))
    def test_fatal_names_are_not_retryable(self, name):
        error = ErrorClassifier().classify(400, NAMESPACE + name, "nope", b"{}")
        assert error.retryable is False
        assert error.kind is FATAL_ERRORS[name]
        assert isinstance(error, ERROR_CLASSES[FATAL_ERRORS[name]])

    @pytest.mark.parametrize("name", sorted(TRANSIENT_ERRORS))
    def test_transient_names_are_retryable(self, name):
        error = ErrorClassifier().classify(400, NAMESPACE + name, "slow down", b"{}")
        assert error.retryable is True
        assert error.kind is TRANSIENT_ERRORS[name]

    def test_validation_carries_message(self):
        error = ErrorClassifier().classify(400, NAMESPACE + "ValidationException", "bad key", b"{}")
        assert isinstance(error, ValidationError)
        assert error.message == "bad key"
        assert str(error) == "bad key"
        assert error.payload is None

    def test_conditional_check_carries_payload(self):
        body = _body(NAMESPACE + "ConditionalCheckFailedException", "condition failed")
        error = ErrorClassifier().classify(400, NAMESPACE + "ConditionalCheckFailedException", "condition failed", body)
        assert isinstance(error, ConditionalCheckFailedError)
        assert error.payload == body

    def test_resource_not_found(self):
        error = ErrorClassifier().classify(400, NAMESPACE + "ResourceNotFoundException", "no table", b"{}")
        assert isinstance(error, ResourceNotFoundError)

    def test_internal_server_error_on_500(self):
        error = ErrorClassifier().classify(500, NAMESPACE + "InternalServerError", "oops", b"{}")
        assert error.kind is ErrorKind.INTERNAL_SERVER_ERROR
        assert error.retryable is True


class TestUnclassified:
    def test_unknown_name_is_fatal_with_diagnostics(self):
        body = _body(NAMESPACE + "BrandNewException", "surprise")
        error = ErrorClassifier().classify(400, NAMESPACE + "BrandNewException", "surprise", body)
        assert isinstance(error, UnclassifiedServiceError)
        assert error.retryable is False
        assert "BrandNewException" in error.message
        assert "surprise" in error.message
        assert error.payload == body

    def test_missing_type(self):
        error = ErrorClassifier().classify(500, "", "", b"{}")
        assert isinstance(error, UnclassifiedServiceError)


class TestClassifyReply:
    def test_success_returns_none(self):
        assert ErrorClassifier().classify_reply(TransportReply(200, b'{"ok": true}')) is None

    def test_error_reply_is_parsed(self):
        reply = TransportReply(400, _body(NAMESPACE + "ThrottlingException", "rate"))
        error = ErrorClassifier().classify_reply(reply)
        assert isinstance(error, ThrottlingError)
        assert error.message == "rate"
        assert error.status_code == 400

    def test_capitalized_message_field(self):
        body = json.dumps({"__type": NAMESPACE + "ValidationException", "Message": "upper"}).encode()
        error = ErrorClassifier().classify_reply(TransportReply(400, body))
        assert error.message == "upper"

    def test_unparsable_error_body_is_connection_interrupted(self):
        error = ErrorClassifier().classify_reply(TransportReply(400, b'{"__type": "trunc'))
        assert isinstance(error, ConnectionInterruptedError)
        assert error.retryable is True
        assert error.status_code == 400

    def test_empty_error_body_is_connection_interrupted(self):
        error = ErrorClassifier().classify_reply(TransportReply(503, b""))
        assert isinstance(error, ConnectionInterruptedError)

    def test_non_object_error_body_is_connection_interrupted(self):
        error = ErrorClassifier().classify_reply(TransportReply(400, b"[1, 2]"))
        assert isinstance(error, ConnectionInterruptedError)


class TestExtensibleTables:
    def test_extra_transient_name(self):
        classifier = ErrorClassifier(extra_transient={"SlowDown": ErrorKind.THROTTLING})
        error = classifier.classify(400, NAMESPACE + "SlowDown", "", b"{}")
        assert isinstance(error, ThrottlingError)
        # Module tables are untouched
        assert "SlowDown" not in TRANSIENT_ERRORS

    def test_extra_fatal_overrides_transient(self):
        classifier = ErrorClassifier(
            extra_fatal={"ThrottlingException": ErrorKind.VALIDATION},
        )
        error = classifier.classify(400, NAMESPACE + "ThrottlingException", "", b"{}")
        assert isinstance(error, ValidationError)
        assert error.retryable is False

    def test_extra_fatal_with_transient_kind_is_not_retryable(self):
        classifier = ErrorClassifier(extra_fatal={"QuotaGone": ErrorKind.THROTTLING})
        error = classifier.classify(400, NAMESPACE + "QuotaGone", "quota revoked", b"{}")
        assert isinstance(error, ThrottlingError)
        assert error.retryable is False

    def test_extra_transient_with_fatal_kind_is_retryable(self):
        classifier = ErrorClassifier(extra_transient={"Busy": ErrorKind.VALIDATION})
        error = classifier.classify(400, NAMESPACE + "Busy", "", b"{}")
        assert isinstance(error, ValidationError)
        assert error.retryable is True

    def test_table_retryability_does_not_leak_to_class(self):
        ErrorClassifier(extra_fatal={"QuotaGone": ErrorKind.THROTTLING}).classify(
            400, NAMESPACE + "QuotaGone", "", b"{}"
        )
        error = ErrorClassifier().classify(400, NAMESPACE + "ThrottlingException", "", b"{}")
        assert ThrottlingError.retryable is True
        assert error.retryable is True

    def test_name_in_both_extra_tables_rejected(self):
        with pytest.raises(ValueError):
            ErrorClassifier(
                extra_fatal={"Both": ErrorKind.VALIDATION},
                extra_transient={"Both": ErrorKind.THROTTLING},
            )

    def test_unsupported_kind_rejected(self):
        with pytest.raises(ValueError):
            ErrorClassifier(extra_fatal={"Lost": ErrorKind.CONNECTION_FAILED})

    def test_throughput_is_transient_by_default(self):
        error = ErrorClassifier().classify(400, NAMESPACE + "ProvisionedThroughputExceededException", "", b"{}")
        assert isinstance(error, ProvisionedThroughputExceededError)
