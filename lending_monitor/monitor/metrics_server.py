"""Prometheus scrape endpoint served by aiohttp.

Exposes:
- ``GET /metrics`` → Prometheus text exposition of the injected registry
- ``GET /healthz`` → liveness probe
"""

from __future__ import annotations

from aiohttp import web

from lending_monitor.monitor.metrics import MetricsRegistry

METRICS_KEY = web.AppKey("metrics", MetricsRegistry)


async def _handle_metrics(request: web.Request) -> web.Response:
    metrics = request.app[METRICS_KEY]
    return web.Response(
        body=metrics.expose(),
        headers={"Content-Type": metrics.content_type},
    )


async def _handle_healthz(request: web.Request) -> web.Response:
    return web.Response(text="ok")


def create_metrics_app(metrics: MetricsRegistry) -> web.Application:
    """Create the aiohttp application serving *metrics*."""
    app = web.Application()
    app[METRICS_KEY] = metrics
    app.router.add_get("/metrics", _handle_metrics)
    app.router.add_get("/healthz", _handle_healthz)
    return app


async def start_metrics_server(
    metrics: MetricsRegistry,
    host: str = "0.0.0.0",
    port: int = 9090,
) -> web.AppRunner:
    """Start the metrics server. Returns the runner for cleanup."""
    runner = web.AppRunner(create_metrics_app(metrics))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    return runner
