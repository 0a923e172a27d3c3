"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Kestrel - Signed request dispatch for key-value database services

Kestrel sends signed JSON operations to a remote key-value database over a
persistent HTTP connection and retries transient service failures with
exponential backoff, from blocking or asyncio code.
"""

from kestrel._version import __version__
from kestrel.config import ClientConfig, CredentialsConfig, RetryConfig, load_config
from kestrel.core.dispatcher import AsyncRequestDispatcher, RequestDispatcher
from kestrel.logging_config import configure_logging
from kestrel.sdk.client import AsyncKestrelClient, KestrelClient

__all__ = [
    "__version__",
    "configure_logging",
    "AsyncKestrelClient",
    "AsyncRequestDispatcher",
    "ClientConfig",
    "CredentialsConfig",
    "KestrelClient",
    "RequestDispatcher",
    "RetryConfig",
    "load_config",
]
