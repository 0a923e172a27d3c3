"""
Unit tests for exception hierarchy.
"""

import pytest
from kestrel.exceptions import (
    AccessDeniedError,
    ConditionalCheckFailedError,
    ConfigurationError,
    ConnectionFailedError,
    ConnectionInterruptedError,
    DispatchError,
    ErrorKind,
    FatalServiceError,
    InternalServerError,
    InvalidConfigurationError,
    KestrelError,
    ProvisionedThroughputExceededError,
    RequestTooLargeError,
    RetriesExhaustedError,
    SDKConfigurationError,
    SigningError,
    ThrottlingError,
    TransientServiceError,
    UnclassifiedServiceError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Test that exception hierarchy is correctly defined."""

    def test_base_exception(self):
        """Test that KestrelError is the base exception."""
        error = KestrelError("test error")
        assert isinstance(error, Exception)
        assert str(error) == "test error"

    def test_configuration_errors_inherit_from_base(self):
        assert issubclass(ConfigurationError, KestrelError)
        assert issubclass(InvalidConfigurationError, ConfigurationError)
        assert issubclass(SDKConfigurationError, ConfigurationError)

    def test_signing_error_inherits_from_base(self):
        assert issubclass(SigningError, KestrelError)

    @pytest.mark.parametrize("error_class", [
        RequestTooLargeError,
        ValidationError,
        ConditionalCheckFailedError,
        AccessDeniedError,
        UnclassifiedServiceError,
    ])
    def test_fatal_service_errors(self, error_class):
        assert issubclass(error_class, FatalServiceError)
        assert issubclass(error_class, DispatchError)
        assert error_class.retryable is False

    @pytest.mark.parametrize("error_class", [
        ProvisionedThroughputExceededError,
        ThrottlingError,
        InternalServerError,
    ])
    def test_transient_service_errors(self, error_class):
        assert issubclass(error_class, TransientServiceError)
        assert error_class.retryable is True

    def test_transport_errors(self):
        assert ConnectionInterruptedError.retryable is True
        assert ConnectionInterruptedError.kind is ErrorKind.CONNECTION_INTERRUPTED
        assert ConnectionFailedError.retryable is False
        assert ConnectionFailedError.kind is ErrorKind.CONNECTION_FAILED

    def test_interrupted_does_not_shadow_builtin_hierarchy(self):
        assert not issubclass(ConnectionInterruptedError, OSError)


class TestDispatchError:
    def test_attributes(self):
        error = ValidationError(
            "bad key",
            error_type="com.amazonaws.dynamodb.v20120810#ValidationException",
            status_code=400,
            payload=b"{}",
        )
        assert error.kind is ErrorKind.VALIDATION
        assert error.message == "bad key"
        assert error.status_code == 400
        assert error.payload == b"{}"
        assert str(error) == "bad key"

    def test_repr(self):
        assert repr(ThrottlingError("slow down")) == (
            "ThrottlingError(kind='ThrottlingException', retryable=True, message='slow down')"
        )

    def test_connection_lost_flag(self):
        assert ConnectionInterruptedError("reset", connection_lost=True).connection_lost is True
        assert ConnectionInterruptedError("timeout").connection_lost is False

    def test_retries_exhausted(self):
        last = ThrottlingError("slow down")
        error = RetriesExhaustedError("gave up", attempts=3, last_error=last)
        assert isinstance(error, KestrelError)
        assert not isinstance(error, DispatchError)
        assert error.attempts == 3
        assert error.last_error is last
