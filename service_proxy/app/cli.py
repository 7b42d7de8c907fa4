"""Command-line entry point for the caching reverse proxy.

Flags override the ``PROXY_*`` environment variables and ``.env`` values
read by :class:`shared.config.ProxyConfig`.
"""

from typing import Optional

import typer
from pydantic import ValidationError

from shared.config import get_config


app = typer.Typer(
    name="cache-proxy",
    help="Reverse proxy that caches upstream GET responses and persists them across restarts.",
    add_completion=False,
)


@app.command()
def serve(
    url: Optional[str] = typer.Option(None, "--url", help="URL to proxy requests against."),
    ttl: Optional[str] = typer.Option(None, "--ttl", help="Duration to cache requests for (e.g. 24h, 90m)."),
    addr: Optional[str] = typer.Option(None, "--addr", help="Address/port to serve on (e.g. :8000)."),
    snapshot: Optional[str] = typer.Option(None, "--snapshot", help="Path of the cache snapshot file."),
    single_flight: Optional[bool] = typer.Option(
        None,
        "--single-flight/--no-single-flight",
        help="Share one upstream fetch between concurrent misses for the same path.",
    ),
    sweep_interval: Optional[str] = typer.Option(
        None, "--sweep-interval", help="Purge expired entries this often (disabled when unset)."
    ),
    metrics_port: Optional[int] = typer.Option(None, "--metrics-port", help="Expose Prometheus metrics on this port."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (debug, info, warning, error)."),
) -> None:
    """Serve the proxy until interrupted, then snapshot the cache."""
    try:
        config = get_config(
            upstream_base_url=url,
            ttl=ttl,
            listen_address=addr,
            snapshot_path=snapshot,
            single_flight=single_flight,
            sweep_interval=sweep_interval,
            metrics_port=metrics_port,
            log_level=log_level,
        )
    except ValidationError as exc:
        typer.echo(f"Invalid configuration:\n{exc}", err=True)
        raise typer.Exit(code=2)

    from .main import ProxyService

    ProxyService(config).run()


def main() -> None:
    """Console-script entry point."""
    app()
