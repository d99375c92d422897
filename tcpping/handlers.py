"""
HTTP boundary of the prober: validates the request body, runs one
measurement, and shapes the result or failure into the response envelope.
"""

import math

from aiohttp import web

from .config import ProbeConfig, Settings
from .errors import TargetValidationError, error_envelope
from .logger import get_logger
from .metrics import METRICS_KEY
from .prober import LatencyProber, tcp_ping
from .utils import validate_ipv4

logger = get_logger("handlers")

SETTINGS_KEY = web.AppKey("settings", Settings)
PROBE_CONFIG_KEY = web.AppKey("probe_config", ProbeConfig)
CONNECT_KEY = web.AppKey("connect", object)


def round_half_up(value: float) -> int:
    # round() would give banker's rounding (2.5 -> 2)
    return int(math.floor(value + 0.5))


def bad_request(message: str) -> web.Response:
    return web.json_response({"error": message}, status=400)


async def handle_health(request: web.Request) -> web.Response:
    return web.Response(text="pong")


async def handle_ping(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except (ValueError, LookupError):
        # JSONDecodeError and UnicodeDecodeError are ValueErrors; LookupError is an unknown charset
        return bad_request("Invalid JSON in request body")
    if not isinstance(body, dict):
        return bad_request("Invalid JSON in request body")

    try:
        ip_address = validate_ipv4(body.get("ip_address"))
    except TargetValidationError as e:
        return bad_request(str(e))

    app = request.app
    prober = LatencyProber(app[PROBE_CONFIG_KEY], connect=app.get(CONNECT_KEY, tcp_ping))
    metrics = app.get(METRICS_KEY)

    try:
        result = await prober.measure(ip_address)
    except Exception as e:
        logger.exception("Latency measurement for %s failed", ip_address)
        if metrics is not None:
            metrics.observe_probe("failure")
        return web.json_response(
            error_envelope(str(e) or "Internal server error", function="handlePing"),
            status=500
        )

    if metrics is not None:
        metrics.observe_probe("partial" if result.failed_attempts else "success", result.times)

    return web.json_response({
        "success": True,
        "ip": ip_address,
        "average_ping_ms": round_half_up(result.average),
        "individual_times_ms": result.times,
        "port_used": result.port_used,
    })
