"""HTTP reachability probes via aiohttp."""
from __future__ import annotations

import asyncio
import time
from typing import Optional

import aiohttp

from ..utils.logger import logger
from .base import Endpoint, FailureReason, ProbeExecutor, ProbeResult

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class HttpProbeExecutor(ProbeExecutor):
    """
    Probes endpoints over HTTP with a hard per-endpoint timeout.
    One shared session; safe to call concurrently for different endpoints.
    """

    def __init__(self, user_agent: str = "connwatch/1.0"):
        self.user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            headers = dict(NO_CACHE_HEADERS)
            headers["User-Agent"] = self.user_agent
            self._session = aiohttp.ClientSession(headers=headers)
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "HttpProbeExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def probe(self, endpoint: Endpoint) -> ProbeResult:
        """
        Probe one endpoint.

        The request is cancelled once ``endpoint.timeout_ms`` elapses. Every
        failure comes back as ``success=False`` with a coarse reason.
        """
        started = time.perf_counter()
        timeout = aiohttp.ClientTimeout(total=endpoint.timeout_seconds)
        try:
            session = await self._get_session()
            async with session.request(
                endpoint.method,
                endpoint.url,
                timeout=timeout,
                allow_redirects=True,
            ) as response:
                latency_ms = (time.perf_counter() - started) * 1000
                if 200 <= response.status < 300:
                    logger.debug(f"Probe {endpoint.name} ok ({response.status}, {latency_ms:.0f}ms)")
                    return ProbeResult(
                        endpoint=endpoint,
                        success=True,
                        latency_ms=latency_ms,
                        status_code=response.status,
                    )
                logger.debug(f"Probe {endpoint.name} returned HTTP {response.status}")
                return ProbeResult(
                    endpoint=endpoint,
                    success=False,
                    latency_ms=latency_ms,
                    error=FailureReason.HTTP_ERROR,
                    status_code=response.status,
                    detail=f"HTTP {response.status}",
                )
        except asyncio.TimeoutError:
            logger.debug(f"Probe {endpoint.name} timed out after {endpoint.timeout_ms}ms")
            return ProbeResult(
                endpoint=endpoint,
                success=False,
                error=FailureReason.TIMEOUT,
                detail=f"no response within {endpoint.timeout_ms}ms",
            )
        except (aiohttp.ClientError, OSError) as exc:
            logger.debug(f"Probe {endpoint.name} failed: {exc}")
            return ProbeResult(
                endpoint=endpoint,
                success=False,
                latency_ms=(time.perf_counter() - started) * 1000,
                error=FailureReason.NETWORK_ERROR,
                detail=type(exc).__name__,
            )
