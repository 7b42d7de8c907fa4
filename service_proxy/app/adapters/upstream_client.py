"""
HTTP client for the upstream origin.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import httpx

from shared.errors import UpstreamFetchError
from shared.logging import get_logger


DEFAULT_UPSTREAM_TIMEOUT = 10.0

# Not forwarded: the origin's own Host is used and no request body is sent.
_DROPPED_HEADERS = {b"host", b"content-length", b"transfer-encoding"}


@dataclass(frozen=True)
class UpstreamResponse:
    """Body and status of an upstream fetch."""

    url: str
    status_code: int
    body: bytes


def forwardable_headers(raw_headers: Iterable[Tuple[bytes, bytes]]) -> List[Tuple[bytes, bytes]]:
    """Copy inbound headers verbatim, minus the ones tied to the inbound connection."""
    return [(name, value) for name, value in raw_headers if name.lower() not in _DROPPED_HEADERS]


class UpstreamClient:
    """Thin async wrapper issuing forwarded GET requests to the origin."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_UPSTREAM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = get_logger("proxy.upstream")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def url_for(self, key: str) -> str:
        return f"{self.base_url}{key}"

    async def fetch(self, key: str, headers: Iterable[Tuple[bytes, bytes]] = ()) -> UpstreamResponse:
        """
        GET ``base_url + key`` with the given headers and read the whole body.

        The whole exchange, body included, is bounded by ``timeout`` seconds.
        Any transport failure, timeout or body read error surfaces as
        UpstreamFetchError. The status code is returned, not judged.
        """
        url = self.url_for(key)
        try:
            request = self._client.build_request("GET", url, headers=forwardable_headers(headers))
            response = await asyncio.wait_for(self._client.send(request), self.timeout)
            body = response.content
        except asyncio.TimeoutError as exc:
            message = f"upstream fetch timed out after {self.timeout:g}s"
            self.logger.error("Upstream fetch failed", url=url, error=message)
            raise UpstreamFetchError(url, message) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self.logger.error("Upstream fetch failed", url=url, error=str(exc) or type(exc).__name__)
            raise UpstreamFetchError(url, str(exc) or type(exc).__name__) from exc

        if response.is_error:
            self.logger.warning("Upstream returned error status", url=url, status_code=response.status_code)

        return UpstreamResponse(url=url, status_code=response.status_code, body=body)
