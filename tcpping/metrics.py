"""
Operational metrics.

Every app owns its own CollectorRegistry so several apps (tests) can coexist
in one process. The registry is served on GET /metrics and, when Grafana
Cloud credentials are configured, pushed periodically to a Pushgateway.
"""

import asyncio
import contextlib
import time
from typing import Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from prometheus_client.exposition import basic_auth_handler, pushadd_to_gateway

from .config import Settings
from .logger import get_logger

logger = get_logger("metrics")

# Buckets in milliseconds, sized for internet RTTs up to the default timeout
PROBE_LATENCY_BUCKETS_MS = (1, 5, 10, 25, 50, 100, 250, 500, 1000, 2000, 5000)

# Delay before the first push, so the server is fully up
INITIAL_PUSH_DELAY_S = 5.0


class ServiceMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None, prefix: str = "tcpping"):
        self.registry = registry or CollectorRegistry()

        # Default process metrics
        ProcessCollector(registry=self.registry)
        PlatformCollector(registry=self.registry)
        GCCollector(registry=self.registry)

        # Route metrics
        self.requests = Counter(
            f"{prefix}_http_requests_total", "HTTP requests by route and status",
            ["method", "route", "status_code"], registry=self.registry
        )
        self.request_duration = Histogram(
            f"{prefix}_http_request_duration_seconds", "HTTP request duration",
            ["method", "route"], registry=self.registry
        )

        # Probe metrics
        self.probes = Counter(
            f"{prefix}_probes_total", "Latency measurements by outcome",
            ["outcome"], registry=self.registry
        )
        self.probe_latency = Histogram(
            f"{prefix}_probe_latency_ms", "Successful per-attempt connect latency",
            buckets=PROBE_LATENCY_BUCKETS_MS, registry=self.registry
        )

    def observe_request(self, method: str, route: str, status: int, duration_s: float):
        self.requests.labels(method=method, route=route, status_code=str(status)).inc()
        self.request_duration.labels(method=method, route=route).observe(duration_s)

    def observe_probe(self, outcome: str, times=()):
        self.probes.labels(outcome=outcome).inc()
        for t in times:
            self.probe_latency.observe(t)

    def render(self) -> bytes:
        return generate_latest(self.registry)


METRICS_KEY = web.AppKey("metrics", ServiceMetrics)


def _route_label(request: web.Request) -> str:
    route = request.match_info.route
    if route is None or route.resource is None:
        return "unmatched"
    return route.resource.canonical


def metrics_middleware(metrics: ServiceMetrics):
    @web.middleware
    async def middleware(request: web.Request, handler):
        start = time.perf_counter()
        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as e:
            status = e.status
            raise
        finally:
            metrics.observe_request(request.method, _route_label(request), status,
                                    time.perf_counter() - start)
    return middleware


async def handle_metrics(request: web.Request) -> web.Response:
    body = request.app[METRICS_KEY].render()
    return web.Response(body=body, headers={"Content-Type": CONTENT_TYPE_LATEST})


class MetricsPusher:
    """
    Pushes the registry to a Pushgateway (Grafana Cloud) on an interval.
    Push failures are logged and never stop the service.
    """

    def __init__(self, settings: Settings, metrics: ServiceMetrics,
                 initial_delay: float = INITIAL_PUSH_DELAY_S):
        self.settings = settings
        self.metrics = metrics
        self.initial_delay = initial_delay
        self._task: Optional[asyncio.Task] = None

    def _auth_handler(self, url, method, timeout, headers, data):
        return basic_auth_handler(url, method, timeout, headers, data,
                                  self.settings.push_username, self.settings.push_api_key)

    def _push_blocking(self):
        pushadd_to_gateway(
            self.settings.push_url,
            job=self.settings.job_name,
            registry=self.metrics.registry,
            handler=self._auth_handler,
        )

    async def push(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._push_blocking)
        except Exception as e:
            # urllib raises a mix of OSError / HTTPError / ValueError here
            logger.error("Error pushing metrics to Grafana Cloud: %s", e)
            return False
        logger.debug("Successfully pushed metrics to Grafana Cloud")
        return True

    async def _run(self):
        await asyncio.sleep(self.initial_delay)
        interval = self.settings.push_interval_ms / 1000.0
        while True:
            await self.push()
            await asyncio.sleep(interval)

    async def on_startup(self, app: web.Application):
        self._task = asyncio.create_task(self._run())
        logger.info("Grafana Cloud metrics push configured:")
        logger.info("  URL: %s", self.settings.push_url)
        logger.info("  Job Name: %s", self.settings.job_name)
        logger.info("  Push Interval: %dms", self.settings.push_interval_ms)

    async def on_cleanup(self, app: web.Application):
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        # Final push before shutdown
        await self.push()


def setup_metrics_push(app: web.Application, settings: Settings, metrics: ServiceMetrics):
    if not settings.push_enabled:
        logger.warning("Grafana Cloud configuration not found. Metrics will only be available via /metrics endpoint")
        logger.info("To enable Grafana Cloud metrics, set the following environment variables:")
        logger.info("  GRAFANA_CLOUD_URL (or PROMETHEUS_PUSH_URL): Your Grafana Cloud Prometheus push URL")
        logger.info("  GRAFANA_CLOUD_USERNAME: Your Grafana Cloud username/stack name")
        logger.info("  GRAFANA_CLOUD_API_KEY: Your Grafana Cloud API key")
        return None

    pusher = MetricsPusher(settings, metrics)
    app.on_startup.append(pusher.on_startup)
    app.on_cleanup.append(pusher.on_cleanup)
    return pusher
