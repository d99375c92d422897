import functools
from typing import Optional

import aiohttp_cors
from aiohttp import web

from .auth import bearer_token, verify_jwt
from .config import ProbeConfig, Settings
from .errors import AuthError, error_envelope
from .handlers import CONNECT_KEY, PROBE_CONFIG_KEY, SETTINGS_KEY, handle_health, handle_ping
from .logger import get_logger
from .metrics import METRICS_KEY, ServiceMetrics, handle_metrics, metrics_middleware, setup_metrics_push

logger = get_logger("server")


def authenticated(handler):
    """
    Rejects the request with 401 unless it carries a valid bearer token
    signed with the process secret.
    """
    @functools.wraps(handler)
    async def wrapper(request: web.Request):
        secret = request.app[SETTINGS_KEY].api_key
        try:
            claims = verify_jwt(secret, bearer_token(request.headers.get("Authorization")))
        except AuthError as e:
            logger.debug("Rejected %s %s: %s", request.method, request.path, e)
            return web.json_response({"error": "Invalid auth token"}, status=401)
        logger.debug("Authenticated %s %s as %s", request.method, request.path, claims.get("iss"))
        return await handler(request)
    return wrapper


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return web.json_response({"error": "Not found"}, status=404)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response(
            error_envelope(str(e) or "Internal server error", function="server"),
            status=500
        )


def setup_cors(app: web.Application):
    cors = aiohttp_cors.setup(app, defaults={
        "*": aiohttp_cors.ResourceOptions(
            allow_credentials=False,
            allow_headers=("Content-Type", "Authorization"),
            allow_methods=["GET", "POST", "OPTIONS"],
        )
    })
    for route in list(app.router.routes()):
        cors.add(route)


def create_app(settings: Settings, probe_config: Optional[ProbeConfig] = None,
               connect=None, metrics: Optional[ServiceMetrics] = None,
               push_metrics: bool = True) -> web.Application:
    """
    Builds the aiohttp application. `connect` replaces the TCP probe
    (tests script outcomes through it).
    """
    metrics = metrics or ServiceMetrics()

    app = web.Application(middlewares=[metrics_middleware(metrics), error_middleware])
    app[SETTINGS_KEY] = settings
    app[PROBE_CONFIG_KEY] = probe_config or ProbeConfig()
    app[METRICS_KEY] = metrics
    if connect is not None:
        app[CONNECT_KEY] = connect

    # Public endpoints
    app.router.add_get("/ping", handle_health)
    app.router.add_get("/metrics", handle_metrics)

    # Protected endpoints
    app.router.add_post("/ping", authenticated(handle_ping))

    setup_cors(app)

    if push_metrics:
        setup_metrics_push(app, settings, metrics)

    return app


def start_server(settings: Settings, port: Optional[int] = None, probe_config: Optional[ProbeConfig] = None):
    """
    Runs the service until SIGINT/SIGTERM. aiohttp's runner performs the
    graceful shutdown (on_shutdown / on_cleanup hooks).
    """
    port = port or settings.port
    app = create_app(settings, probe_config=probe_config)
    logger.info("Server listening on port: %d", port)
    web.run_app(app, host="0.0.0.0", port=port, print=None,
                access_log=get_logger("access"))
