"""
Intercept-fetch-store pipeline between inbound requests and the origin.
"""

import time
from typing import Iterable, Optional, Tuple, TYPE_CHECKING

from shared.errors import CacheMissAfterInterceptorError, NormalizeError, UpstreamFetchError
from shared.logging import get_logger

from ..adapters.upstream_client import UpstreamClient
from ..caching.single_flight import SingleFlight
from ..caching.store import CacheEntry, Store
from .normalizer import normalize

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


Headers = Iterable[Tuple[bytes, bytes]]


class ProxyPipeline:
    """
    Serves request targets from the store, filling misses from the origin.

    A miss forwards the inbound headers to ``upstream_base_url + key``,
    normalizes the body when it is JSON (raw bytes otherwise) and stores it
    for ``ttl`` seconds. Hits never touch the origin.

    Concurrent misses for one key each fetch and each write the store unless
    ``single_flight`` is enabled, in which case they share one fetch.
    """

    def __init__(
        self,
        store: Store,
        upstream: UpstreamClient,
        *,
        ttl: Optional[float] = None,
        single_flight: bool = False,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.upstream = upstream
        self.ttl = ttl
        self.metrics = metrics
        self.logger = get_logger("proxy.pipeline")
        self._flights: Optional[SingleFlight] = SingleFlight() if single_flight else None

    async def ensure_cached(self, key: str, headers: Headers = ()) -> bool:
        """Make sure ``key`` has a live entry; return True when it was already cached."""
        if self.store.get(key) is not None:
            self.logger.debug("Data present in cache", key=key)
            self._record_lookup(hit=True)
            return True

        self._record_lookup(hit=False)
        self.logger.info("Path not cached, forwarding headers and fetching", key=key)
        if self._flights is None:
            await self._fetch_and_store(key, headers)
        else:
            _, shared = await self._flights.do(key, lambda: self._fetch_and_store(key, headers))
            if shared:
                self.logger.debug("Reused in-flight fetch", key=key)
        return False

    def serve(self, key: str) -> bytes:
        """Return the cached body for ``key``; raises if the caching stage left nothing."""
        entry = self.store.get(key)
        if entry is None:
            self.logger.error("Resource missing after caching stage", key=key)
            raise CacheMissAfterInterceptorError(key)
        return entry.value

    async def handle(self, key: str, headers: Headers = ()) -> bytes:
        """Run the whole pipeline for one request target."""
        await self.ensure_cached(key, headers)
        return self.serve(key)

    async def _fetch_and_store(self, key: str, headers: Headers) -> CacheEntry:
        start = time.perf_counter()
        try:
            response = await self.upstream.fetch(key, headers)
        except UpstreamFetchError:
            self._observe_fetch("error", time.perf_counter() - start)
            if self.metrics:
                self.metrics.increment_counter("upstream_errors_total")
            raise
        self._observe_fetch("ok", time.perf_counter() - start)

        body = response.body
        try:
            body = normalize(body)
        except NormalizeError as exc:
            self.logger.debug("Body is not JSON, caching raw bytes", key=key, error=exc.details.get("error"))

        entry = self.store.set(key, body, self.ttl)
        self.logger.info("Caching data", url=response.url, key=key, bytes=len(body))
        if self.metrics:
            self.metrics.set_gauge("cache_entries", self.store.count())
        return entry

    def _record_lookup(self, hit: bool) -> None:
        if self.metrics:
            self.metrics.record_cache_lookup(hit)

    def _observe_fetch(self, outcome: str, duration: float) -> None:
        if self.metrics:
            self.metrics.observe_histogram("upstream_fetch_duration_seconds", duration, outcome=outcome)
