"""HTTP trading backend client."""
from __future__ import annotations

import asyncio
from typing import Optional

import aiohttp

from ..utils.logger import logger
from .base import BackendClient


class HttpBackendClient(BackendClient):
    """Confirms backend reachability with a GET on its ping endpoint."""

    def __init__(self, ping_url: str, timeout_seconds: float = 10.0):
        self.ping_url = ping_url
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def test_connection(self) -> bool:
        try:
            session = await self._get_session()
            async with session.get(self.ping_url, headers={"Cache-Control": "no-cache"}) as response:
                if response.status == 200:
                    return True
                logger.warning(f"⚠️  Backend ping returned HTTP {response.status}")
                return False
        except asyncio.TimeoutError:
            logger.warning(f"⚠️  Backend ping timeout ({self.timeout_seconds:.0f}s exceeded)")
            return False
        except (aiohttp.ClientError, OSError) as e:
            logger.warning(f"⚠️  Backend ping failed: {e}")
            return False
