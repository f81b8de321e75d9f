"""Ordered probe chains with short-circuit on first success."""
from __future__ import annotations

from typing import Iterable, List, Sequence

from ..utils.logger import logger
from .base import ChainOutcome, ConnectivityHint, Endpoint, ProbeExecutor, ProbeResult


def order_endpoints(endpoints: Iterable[Endpoint], prefer_backend: bool = False) -> List[Endpoint]:
    """Return endpoints in probe order, preserving configured order within a class.

    General endpoints go first so "no internet" can be told apart from
    "backend unreachable". Once backend reachability has been confirmed,
    ``prefer_backend`` moves backend endpoints to the front.
    """
    endpoints = list(endpoints)
    general = [e for e in endpoints if not e.is_backend]
    backend = [e for e in endpoints if e.is_backend]
    return backend + general if prefer_backend else general + backend


class ProbeChainRunner:
    """Runs endpoints sequentially and stops at the first reachable one."""

    def __init__(self, executor: ProbeExecutor):
        self.executor = executor

    async def run_chain(self, endpoints: Sequence[Endpoint]) -> ChainOutcome:
        results: List[ProbeResult] = []
        for endpoint in endpoints:
            result = await self.executor.probe(endpoint)
            results.append(result)
            if result.success:
                logger.debug(f"Chain reached {endpoint.name} after {len(results)} probe(s)")
                return ChainOutcome(reachable=True, via=endpoint, results=tuple(results))
            reason = result.error.value if result.error else "unknown"
            logger.debug(f"Endpoint {endpoint.name} unreachable ({reason}), trying next")

        if endpoints:
            logger.info(f"All {len(endpoints)} endpoint(s) unreachable")
        return ChainOutcome(reachable=False, results=tuple(results))


def classify(general_ok: bool, backend_ok: bool) -> ConnectivityHint:
    """Suggest where to look when a cycle did not reach the backend."""
    if backend_ok:
        return ConnectivityHint.NONE
    if general_ok:
        return ConnectivityHint.CHECK_BACKEND_CONFIG
    return ConnectivityHint.CHECK_NETWORK
