"""
Error taxonomy for the latency service.

Per-attempt failures (ProbeConnectionError, ProbeTimeoutError) are recovered
inside the prober. Everything else escalates to the HTTP layer or the CLI.
"""

from typing import Dict

INTERNAL_ERROR_CODE = "00000"


class TcpPingError(Exception):
    """Base class for every error raised by tcpping."""


class TargetValidationError(TcpPingError):
    """Missing or malformed IPv4 target. Surfaced as a 400."""


class ProbeConnectionError(TcpPingError, ConnectionError):
    """Transport refused, reset or unreachable for one attempt/port."""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(f"TCP connect to {host}:{port} failed: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class ProbeTimeoutError(TcpPingError, TimeoutError):
    """No connection outcome within the per-attempt timeout."""

    def __init__(self, host: str, port: int):
        super().__init__(f"TCP ping timeout on port {port}")
        self.host = host
        self.port = port


class AllAttemptsFailedError(TcpPingError):
    """Every attempt on every candidate port failed."""

    def __init__(self, host: str, attempts: int, ports):
        super().__init__("All ping attempts failed on all ports")
        self.host = host
        self.attempts = attempts
        self.ports = list(ports)


class AuthError(TcpPingError):
    """Missing, malformed, badly signed or expired bearer token."""


class ConfigError(TcpPingError):
    """Required process configuration is absent or invalid."""

    def __init__(self, message: str, missing=None):
        super().__init__(message)
        self.missing = list(missing or [])


def error_envelope(message: str, function: str, source: str = "internal",
                   code: str = INTERNAL_ERROR_CODE) -> Dict:
    """Builds the fixed 500 response body."""
    return {
        "success": False,
        "error": {
            "source": source,
            "code": code,
            "message": message or "Internal server error",
            "function": function,
        },
    }
