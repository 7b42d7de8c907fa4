"""
Caching reverse proxy service.
"""

import time
from typing import Callable, Optional

import httpx
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response

from shared.base_service import BaseService
from shared.config import ProxyConfig
from shared.errors import UpstreamFetchError
from shared.logging import set_cache_key

from .adapters.upstream_client import UpstreamClient
from .domain.pipeline import ProxyPipeline
from .lifecycle import LifecycleCoordinator


def cache_key_for(request: Request) -> str:
    """The raw request-target: path plus query string, exactly as received."""
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    key = raw_path.split(b"?", 1)[0].decode("latin-1")
    query = request.scope.get("query_string", b"")
    if query:
        key = f"{key}?{query.decode('latin-1')}"
    return key


class ProxyService(BaseService):
    """Reverse proxy that answers from a TTL cache and snapshots it across restarts."""

    def __init__(
        self,
        config: Optional[ProxyConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.pipeline: Optional[ProxyPipeline] = None
        super().__init__("proxy", config)

        self.upstream = UpstreamClient(
            self.config.upstream_base_url,
            timeout=self.config.upstream_timeout,
            transport=transport,
        )
        self.coordinator = LifecycleCoordinator(
            self.config.snapshot_path,
            self.config.ttl,
            save_timeout=self.config.save_timeout,
            sweep_interval=self.config.sweep_interval,
            metrics=self.metrics,
            clock=clock,
        )

        # Expose service instance via app state for introspection/testing
        self.app.state.proxy_service = self

    async def _startup(self) -> None:
        store = await self.coordinator.start()
        self.pipeline = ProxyPipeline(
            store,
            self.upstream,
            ttl=self.config.ttl,
            single_flight=self.config.single_flight,
            metrics=self.metrics,
        )
        if self.config.metrics_port:
            self.metrics.start_metrics_server(self.config.metrics_port)
        self.logger.info(
            "Server listening",
            address=self.config.listen_address,
            upstream=self.config.upstream_base_url,
            ttl_seconds=self.config.ttl,
            single_flight=self.config.single_flight,
        )

    async def _shutdown(self) -> None:
        await self.coordinator.drain()
        await self.upstream.close()
        self.logger.info("Server stopped", uptime_seconds=round(self._get_uptime(), 1))

    def _setup_routes(self):
        """Caching middleware in front of a catch-all handler that serves from the store."""

        @self.app.middleware("http")
        async def caching_middleware(request: Request, call_next):
            if self.pipeline is None:
                return PlainTextResponse("service not ready", status_code=503)

            key = cache_key_for(request)
            set_cache_key(key)
            try:
                await self.pipeline.ensure_cached(key, request.headers.raw)
            except UpstreamFetchError as exc:
                self.metrics.record_error(exc.code)
                return PlainTextResponse(exc.message, status_code=500)
            return await call_next(request)

        async def handle_request(request: Request) -> Response:
            body = self.pipeline.serve(cache_key_for(request))
            return Response(content=body, status_code=200)

        # methods=None: every method, standard or not, is served like GET
        self.app.router.add_route("/{path:path}", handle_request, methods=None, include_in_schema=False)


def create_app(config: Optional[ProxyConfig] = None):
    """Create FastAPI application."""
    service = ProxyService(config)
    return service.app


if __name__ == "__main__":
    from .cli import main

    main()
