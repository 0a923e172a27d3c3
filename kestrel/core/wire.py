"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Wire format and request/reply data structures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from kestrel.exceptions import ConnectionInterruptedError

JSON_CONTENT_TYPE = "application/x-amz-json-1.0"


@dataclass
class OutgoingRequest:
    """One signed transmission of a service call."""
    operation: str
    method: str
    url: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class TransportReply:
    """Raw reply read from the transport."""
    status_code: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def target_header(service_name: str, api_version: str, operation: str) -> str:
    """Format the target header value, e.g. ``DynamoDB_20120810.GetItem``."""
    return f"{service_name}_{api_version}.{operation}"


def build_headers(service_name: str, api_version: str, operation: str) -> Dict[str, str]:
    """Headers identifying the target operation, before signing."""
    return {
        "Content-Type": JSON_CONTENT_TYPE,
        "X-Amz-Target": target_header(service_name, api_version, operation),
        "Connection": "keep-alive",
    }


def encode_payload(payload: Any) -> bytes:
    """Serialize a call payload to compact UTF-8 JSON."""
    if payload is None:
        payload = {}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def decode_body(body: bytes) -> Any:
    """
    Parse a reply body.

    An empty body decodes to an empty object.

    Raises:
        ConnectionInterruptedError: If the body is not valid JSON
    """
    if not body or not body.strip():
        return {}
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ConnectionInterruptedError(
            f"Reply body could not be parsed: {e}",
            payload=body,
        ) from e


def parse_error_body(body: bytes) -> Tuple[str, str]:
    """
    Extract the service error type and message from an error reply.

    Returns:
        Tuple of (error_type, message); either may be empty

    Raises:
        ConnectionInterruptedError: If the body is empty or not a JSON object
    """
    if not body or not body.strip():
        raise ConnectionInterruptedError("Error reply has an empty body", payload=body)
    decoded = decode_body(body)
    if not isinstance(decoded, dict):
        raise ConnectionInterruptedError(
            "Error reply body is not a JSON object",
            payload=body,
        )
    error_type = decoded.get("__type") or ""
    message: Optional[str] = decoded.get("message")
    if message is None:
        message = decoded.get("Message", "")
    return str(error_type), str(message or "")
