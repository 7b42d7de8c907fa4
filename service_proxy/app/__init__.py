"""
Caching reverse proxy service package.

The proxy fronts an upstream HTTP origin and answers repeated GETs from an
in-memory TTL store that is snapshotted to disk at shutdown and reloaded at
startup.

Structure:
- app.main: FastAPI app, caching middleware and catch-all handler.
- app.cli: Typer command line.
- app.lifecycle: Store ownership, snapshot load/save, optional sweeper.
- app.adapters: HTTP client for the upstream origin.
- app.caching: Store, snapshot persistence and single-flight registry.
- app.domain: Request pipeline and JSON normalization.
"""
