"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Request signing.

The dispatcher hands every transmission to a Signer together with the time
of that transmission. Signatures are bound to the timestamp and the body, so
a request is re-signed on every attempt.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Tuple
from urllib.parse import quote

from kestrel.config.settings import CredentialsConfig
from kestrel.core.wire import OutgoingRequest
from kestrel.exceptions import SigningError
from kestrel.logging_config import get_logger

logger = get_logger(__name__)

SIGV4_ALGORITHM = "AWS4-HMAC-SHA256"
AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


class Signer(ABC):
    """Attaches authentication headers to an outgoing request."""

    @abstractmethod
    def sign(self, request: OutgoingRequest, timestamp: datetime) -> None:
        """
        Sign ``request`` in place for transmission at ``timestamp``.

        Raises:
            SigningError: If the request cannot be signed
        """
        ...


def _utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class NullSigner(Signer):
    """Adds only the timestamp header. For local emulators that skip authentication."""

    def sign(self, request: OutgoingRequest, timestamp: datetime) -> None:
        request.headers["X-Amz-Date"] = _utc(timestamp).strftime(AMZ_DATE_FORMAT)


def _hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


class SigV4Signer(Signer):
    """
    AWS Signature Version 4 signer.

    Args:
        credentials: Access key, secret key and optional session token
        region: Signing region (e.g. "us-east-1")
        service: Signing service name (e.g. "dynamodb")
    """

    def __init__(self, credentials: CredentialsConfig, region: str, service: str):
        if credentials.is_empty:
            raise SigningError("SigV4 signing requires an access key and secret key")
        if not region:
            raise SigningError("SigV4 signing requires a region")
        if not service:
            raise SigningError("SigV4 signing requires a service name")
        self.credentials = credentials
        self.region = region
        self.service = service

    def credential_scope(self, date_stamp: str) -> str:
        return f"{date_stamp}/{self.region}/{self.service}/aws4_request"

    def signing_key(self, date_stamp: str) -> bytes:
        k_date = _hmac_sha256(("AWS4" + self.credentials.secret_access_key).encode("utf-8"), date_stamp)
        k_region = _hmac_sha256(k_date, self.region)
        k_service = _hmac_sha256(k_region, self.service)
        return _hmac_sha256(k_service, "aws4_request")

    @staticmethod
    def canonical_headers(headers: Dict[str, str]) -> Tuple[str, str]:
        """
        Build the canonical header block and signed-header list.

        Returns:
            Tuple of (canonical_headers, signed_headers)
        """
        normalized: Dict[str, str] = {}
        for name, value in headers.items():
            key = name.strip().lower()
            if key in ("authorization", "connection"):
                continue
            normalized[key] = " ".join(str(value).strip().split())
        names = sorted(normalized)
        block = "".join(f"{name}:{normalized[name]}\n" for name in names)
        return block, ";".join(names)

    def canonical_request(self, request: OutgoingRequest, payload_hash: str) -> Tuple[str, str]:
        """
        Build the canonical request string.

        Returns:
            Tuple of (canonical_request, signed_headers)
        """
        canonical_uri = quote(request.path or "/", safe="/-_.~")
        header_block, signed_headers = self.canonical_headers(request.headers)
        canonical = "\n".join([
            request.method.upper(),
            canonical_uri,
            "",  # no query string on this endpoint
            header_block,
            signed_headers,
            payload_hash,
        ])
        return canonical, signed_headers

    def sign(self, request: OutgoingRequest, timestamp: datetime) -> None:
        moment = _utc(timestamp)
        amz_date = moment.strftime(AMZ_DATE_FORMAT)
        date_stamp = moment.strftime("%Y%m%d")

        # Drop headers left over from a previous attempt
        for stale in ("Authorization", "X-Amz-Date", "X-Amz-Security-Token"):
            request.headers.pop(stale, None)

        payload_hash = hashlib.sha256(request.body).hexdigest()
        request.headers["X-Amz-Date"] = amz_date
        if not any(name.lower() == "host" for name in request.headers):
            raise SigningError("Request must carry a Host header before signing")
        if self.credentials.session_token:
            request.headers["X-Amz-Security-Token"] = self.credentials.session_token

        canonical, signed_headers = self.canonical_request(request, payload_hash)
        scope = self.credential_scope(date_stamp)
        string_to_sign = "\n".join([
            SIGV4_ALGORITHM,
            amz_date,
            scope,
            hashlib.sha256(canonical.encode("utf-8")).hexdigest(),
        ])
        signature = hmac.new(
            self.signing_key(date_stamp),
            string_to_sign.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        request.headers["Authorization"] = (
            f"{SIGV4_ALGORITHM} Credential={self.credentials.access_key_id}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )


def signer_for(config) -> Signer:
    """
    Choose a signer for a ClientConfig.

    Returns a SigV4Signer when credentials are configured, otherwise a NullSigner.
    """
    if config.credentials.is_empty:
        logger.warning(
            "no_credentials_configured",
            endpoint=config.endpoint,
            detail="requests will be sent unsigned",
        )
        return NullSigner()
    return SigV4Signer(config.credentials, config.region, config.signing_name)
