"""
Latency Prober

Measures TCP connect latency to an IPv4 address:
1. tcp_ping - one connection, one port, elapsed milliseconds
2. LatencyProber.measure - N sequential attempts, each walking the candidate
   ports in order until one answers, aggregated into a mean
"""

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from .config import ProbeConfig
from .errors import AllAttemptsFailedError, ProbeConnectionError, ProbeTimeoutError
from .logger import get_logger
from .utils import validate_ipv4

logger = get_logger("prober")

# Connections a single prober may have open at once. Attempts and ports are
# walked sequentially; keep this at 1, targets are caller-supplied.
MAX_IN_FLIGHT_CONNECTIONS = 1

ConnectFn = Callable[[str, int, int], Awaitable[int]]
SleepFn = Callable[[float], Awaitable[None]]


async def tcp_ping(host: str, port: int = 443, timeout_ms: int = 2000) -> int:
    """
    Opens a TCP connection to host:port and returns the time it took to
    establish, in milliseconds. Nothing is sent; the socket is closed at once.

    Raises ProbeTimeoutError if the connect does not finish in timeout_ms,
    ProbeConnectionError on any transport error before that.
    """
    start = time.perf_counter()
    try:
        # wait_for cancels the pending connect on timeout, which closes its socket
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout_ms / 1000.0
        )
    except asyncio.TimeoutError as e:
        # Must come first: TimeoutError is an OSError subclass
        raise ProbeTimeoutError(host, port) from e
    except OSError as e:
        raise ProbeConnectionError(host, port, e.strerror or str(e) or type(e).__name__) from e

    elapsed_ms = max(0, round((time.perf_counter() - start) * 1000))

    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()
    return elapsed_ms


@dataclass
class ProbeResult:
    """Aggregate of the successful attempts of one measurement"""
    host: str
    times: List[int]
    average: float  # unrounded; rounding belongs to the response
    port_used: int
    attempts: int
    ports_hit: List[int] = field(default_factory=list)  # port that answered, per successful attempt

    @property
    def failed_attempts(self) -> int:
        return self.attempts - len(self.times)


class LatencyProber:
    """
    Runs `attempts` measurement rounds against one host.

    Each round tries the configured ports in order and stops at the first one
    that connects; each port is tried at most once per round. Rounds are
    separated by a constant pacing delay (not a backoff). Only total failure
    is an error.
    At most MAX_IN_FLIGHT_CONNECTIONS connects run at a time, even when one
    prober is shared by concurrent measure() calls.
    """

    def __init__(self, config: Optional[ProbeConfig] = None,
                 connect: ConnectFn = tcp_ping, sleep: SleepFn = asyncio.sleep):
        self.config = config or ProbeConfig()
        self._connect = connect
        self._sleep = sleep
        self._in_flight = asyncio.Semaphore(MAX_IN_FLIGHT_CONNECTIONS)

    async def _attempt(self, host: str, attempt: int):
        """Returns (elapsed_ms, port) for the first port that answers, or None."""
        for port in self.config.ports:
            try:
                async with self._in_flight:
                    elapsed = await self._connect(host, port, self.config.timeout_ms)
            except (ProbeConnectionError, ProbeTimeoutError) as e:
                logger.error("Attempt %d on port %d failed: %s", attempt, port, e)
                continue
            logger.debug("Attempt %d on port %d: %dms", attempt, port, elapsed)
            return elapsed, port

        logger.error("All ports failed for attempt %d (tried %s)", attempt,
                     ", ".join(str(p) for p in self.config.ports))
        return None

    async def measure(self, host: str) -> ProbeResult:
        host = validate_ipv4(host)
        times: List[int] = []
        ports_hit: List[int] = []

        for attempt in range(1, self.config.attempts + 1):
            outcome = await self._attempt(host, attempt)
            if outcome is not None:
                elapsed, port = outcome
                times.append(elapsed)
                ports_hit.append(port)

            if attempt < self.config.attempts:
                await self._sleep(self.config.delay_ms / 1000.0)

        if not times:
            raise AllAttemptsFailedError(host, self.config.attempts, self.config.ports)

        average = sum(times) / len(times)
        logger.info("%s: %d/%d attempts succeeded, mean %.2fms",
                    host, len(times), self.config.attempts, average)

        return ProbeResult(
            host=host,
            times=times,
            average=average,
            # Always the first candidate, whichever port answered
            port_used=self.config.primary_port,
            attempts=self.config.attempts,
            ports_hit=ports_hit,
        )
