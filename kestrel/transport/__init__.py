"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Transport connections.
"""

from kestrel.transport.connection import AsyncConnection, Connection, translate_transport_error

__all__ = [
    "AsyncConnection",
    "Connection",
    "translate_transport_error",
]
