"""
Kestrel SDK.

Blocking and asyncio clients for the key-value database service.
"""

from kestrel.sdk.client import AsyncKestrelClient, KestrelClient

__all__ = ["AsyncKestrelClient", "KestrelClient"]
