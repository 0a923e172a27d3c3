"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Unit tests for the JSON wire format.
"""

import pytest

from kestrel.core.wire import (
    JSON_CONTENT_TYPE,
    TransportReply,
    build_headers,
    decode_body,
    encode_payload,
    parse_error_body,
)
from kestrel.exceptions import ConnectionInterruptedError


class TestHeaders:
    def test_build_headers(self):
        headers = build_headers("DynamoDB", "20120810", "PutItem")
        assert headers == {
            "Content-Type": JSON_CONTENT_TYPE,
            "X-Amz-Target": "DynamoDB_20120810.PutItem",
            "Connection": "keep-alive",
        }

    def test_headers_are_fresh_per_call(self):
        first = build_headers("DynamoDB", "20120810", "GetItem")
        first["Authorization"] = "stale"
        assert "Authorization" not in build_headers("DynamoDB", "20120810", "GetItem")


class TestPayloadEncoding:
    def test_compact_json(self):
        assert encode_payload({"TableName": "users", "Limit": 5}) == b'{"TableName":"users","Limit":5}'

    def test_none_is_empty_object(self):
        assert encode_payload(None) == b"{}"

    def test_non_ascii_is_utf8(self):
        assert encode_payload({"name": "Zoë"}) == '{"name":"Zoë"}'.encode("utf-8")


class TestBodyDecoding:
    def test_decode_object(self):
        assert decode_body(b'{"Item": {"pk": {"S": "a"}}}') == {"Item": {"pk": {"S": "a"}}}

    @pytest.mark.parametrize("body", [b"", b"   "])
    def test_empty_body_is_empty_object(self, body):
        assert decode_body(body) == {}

    @pytest.mark.parametrize("body", [b'{"Item": {"pk"', b"<html>oops</html>", b"\xff\xfe"])
    def test_unparsable_body(self, body):
        with pytest.raises(ConnectionInterruptedError) as exc_info:
            decode_body(body)
        assert exc_info.value.payload == body
        assert exc_info.value.retryable is True


class TestErrorBody:
    def test_type_and_lowercase_message(self):
        body = b'{"__type": "com.amazonaws.dynamodb.v20120810#ValidationException", "message": "bad key"}'
        assert parse_error_body(body) == (
            "com.amazonaws.dynamodb.v20120810#ValidationException",
            "bad key",
        )

    def test_capitalized_message(self):
        assert parse_error_body(b'{"__type": "ThrottlingException", "Message": "slow down"}') == (
            "ThrottlingException",
            "slow down",
        )

    def test_missing_fields(self):
        assert parse_error_body(b"{}") == ("", "")

    def test_non_object_body(self):
        with pytest.raises(ConnectionInterruptedError):
            parse_error_body(b'["not", "an", "object"]')

    def test_empty_body(self):
        with pytest.raises(ConnectionInterruptedError):
            parse_error_body(b"")


def test_transport_reply_ok():
    assert TransportReply(200).ok
    assert TransportReply(204).ok
    assert not TransportReply(400).ok
    assert not TransportReply(500).ok
