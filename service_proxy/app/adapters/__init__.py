"""
Adapters package for the proxy service.

Contains the HTTP client wrapper for the upstream origin. Adapters own
timeouts and map transport failures to shared errors.
"""

from .upstream_client import UpstreamClient, UpstreamResponse

__all__ = [
    "UpstreamClient",
    "UpstreamResponse",
]
