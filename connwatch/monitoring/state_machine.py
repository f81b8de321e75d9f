"""Connectivity state machine.

All state lives behind a single asyncio actor: triggers (start-up, timer, OS
notifications, manual and external requests) are posted to one inbox and one
consumer task applies them in order. Probe cycles run as separate tasks and
report back through the same inbox, so callers only ever see whole
``MonitorSnapshot`` values.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from ..config import MonitorConfig
from ..probes.base import ChainOutcome, Endpoint
from ..probes.chain import ProbeChainRunner, classify, order_endpoints
from ..services.base import BackendClient, TradingService
from ..utils.logger import logger
from .offline_mode import OfflineModeCoordinator
from .state import (
    CheckTrigger,
    ConnectivityHint,
    ConnectivityState,
    MonitorSnapshot,
    NetworkEvent,
)
from .transition_log import log_transition

SnapshotCallback = Callable[[MonitorSnapshot], None]


@dataclass(frozen=True)
class CycleResult:
    """Settled verdict of one probe cycle."""

    state: ConnectivityState
    hint: ConnectivityHint = ConnectivityHint.NONE
    via: Optional[Endpoint] = None
    outcome: Optional[ChainOutcome] = None


@dataclass
class _CheckRequest:
    trigger: CheckTrigger
    waiter: Optional[asyncio.Future] = None


@dataclass
class _CycleFinished:
    result: CycleResult


@dataclass
class _NetworkChanged:
    event: NetworkEvent


@dataclass
class _Dismiss:
    waiter: Optional[asyncio.Future] = None


@dataclass
class _ForceOffline:
    waiter: Optional[asyncio.Future] = None


class Subscription:
    """Handle for a snapshot callback. Closing it detaches the callback."""

    def __init__(self, monitor: "ConnectivityMonitor", callback: SnapshotCallback):
        self._monitor = monitor
        self._callback = callback
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self._monitor._unsubscribe(self._callback)
        self.closed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ConnectivityMonitor:
    """Process-wide connectivity monitor."""

    def __init__(
        self,
        chain_runner: ProbeChainRunner,
        endpoints: Sequence[Endpoint],
        config: Optional[MonitorConfig] = None,
        backend_client: Optional[BackendClient] = None,
        trading_service: Optional[TradingService] = None,
        interface_watcher=None,
    ):
        self.chain_runner = chain_runner
        self.endpoints = tuple(endpoints)
        self.config = config or MonitorConfig()
        self.backend_client = backend_client
        self.trading_service = trading_service
        self.interface_watcher = interface_watcher
        self.offline_mode = OfflineModeCoordinator(trading_service, self.config.offline_mode_threshold)

        self._snapshot = MonitorSnapshot(offline_mode=self.offline_mode.is_offline_mode())
        self._subscribers: List[SnapshotCallback] = []

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._inbox: Optional[asyncio.Queue] = None
        self._actor_task: Optional[asyncio.Task] = None
        self._periodic_task: Optional[asyncio.Task] = None
        self._startup_handle: Optional[asyncio.TimerHandle] = None
        self._settle_handle: Optional[asyncio.TimerHandle] = None
        self._watcher_subscription = None

        # Owned by the actor task
        self._cycle_task: Optional[asyncio.Task] = None
        self._cycle_waiters: List[asyncio.Future] = []
        self._cycle_manual = False
        self._cycle_trigger: Optional[CheckTrigger] = None
        self._settled_state = ConnectivityState.UNKNOWN

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> MonitorSnapshot:
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._actor_task is not None and not self._actor_task.done()

    def subscribe(self, callback: SnapshotCallback) -> Subscription:
        self._subscribers.append(callback)
        return Subscription(self, callback)

    async def start(self) -> None:
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._actor_task = asyncio.create_task(self._run(), name="connectivity-monitor")
        self._periodic_task = asyncio.create_task(self._periodic_loop(), name="connectivity-periodic")
        if self.config.startup_check:
            self._startup_handle = self._loop.call_later(
                self.config.startup_delay_seconds,
                self._post,
                _CheckRequest(CheckTrigger.STARTUP),
            )
        if self.interface_watcher is not None:
            self._watcher_subscription = self.interface_watcher.subscribe(self.notify_network_change)
            await self.interface_watcher.start()
        logger.info(
            f"🛰️  Connectivity monitor started ({len(self.endpoints)} endpoint(s), "
            f"periodic every {self.config.periodic_interval_seconds:.0f}s)"
        )

    async def stop(self) -> None:
        if not self.is_running:
            return
        for handle in (self._startup_handle, self._settle_handle):
            if handle is not None:
                handle.cancel()
        self._startup_handle = self._settle_handle = None

        if self._watcher_subscription is not None:
            self._watcher_subscription.close()
            self._watcher_subscription = None
            await self.interface_watcher.stop()

        tasks = [t for t in (self._periodic_task, self._cycle_task, self._actor_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        pending = list(self._cycle_waiters)
        while self._inbox is not None and not self._inbox.empty():
            message = self._inbox.get_nowait()
            waiter = getattr(message, "waiter", None)
            if waiter is not None:
                pending.append(waiter)
        for waiter in pending:
            if not waiter.done():
                waiter.cancel()

        self._cycle_task = None
        self._cycle_waiters = []
        self._periodic_task = self._actor_task = None
        if self._snapshot.is_checking:
            self._publish(replace(self._snapshot, state=self._settled_state, is_checking=False))
        self._loop = None
        self._inbox = None
        logger.info("Connectivity monitor stopped")

    async def trigger_manual_check(self) -> MonitorSnapshot:
        """Run (or join) a probe cycle and return the snapshot it settles on."""
        return await self._request(lambda waiter: _CheckRequest(CheckTrigger.MANUAL, waiter))

    def request_check(self, reason: str = "external") -> None:
        """Fire-and-forget recheck, callable from any thread."""
        if self._loop is None:
            logger.warning(f"Connectivity recheck ({reason}) ignored: monitor is not running")
            return
        logger.debug(f"Connectivity recheck requested: {reason}")
        self._post(_CheckRequest(CheckTrigger.EXTERNAL))

    def notify_network_change(self, event: NetworkEvent) -> None:
        """Accept an OS link notification. It is only a hint and gets confirmed by a probe."""
        if self._loop is None:
            return
        self._post(_NetworkChanged(NetworkEvent(event)))

    async def dismiss_alert(self) -> MonitorSnapshot:
        return await self._request(lambda waiter: _Dismiss(waiter))

    async def force_offline_mode(self) -> MonitorSnapshot:
        return await self._request(lambda waiter: _ForceOffline(waiter))

    # ------------------------------------------------------------------
    # Actor
    # ------------------------------------------------------------------

    async def _request(self, factory) -> MonitorSnapshot:
        if self._loop is None:
            raise RuntimeError("connectivity monitor is not running")
        waiter = self._loop.create_future()
        self._post(factory(waiter))
        return await waiter

    def _post(self, message) -> None:
        loop = self._loop
        if loop is None or self._inbox is None:
            logger.debug(f"Dropping {type(message).__name__}: monitor is not running")
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._inbox.put_nowait(message)
        else:
            loop.call_soon_threadsafe(self._inbox.put_nowait, message)

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                self._handle(message)
            except Exception:  # noqa: BLE001
                logger.exception(f"Connectivity monitor failed to handle {type(message).__name__}")

    def _handle(self, message) -> None:
        if isinstance(message, _CheckRequest):
            self._on_check_request(message)
        elif isinstance(message, _CycleFinished):
            self._on_cycle_finished(message.result)
        elif isinstance(message, _NetworkChanged):
            self._on_network_changed(message.event)
        elif isinstance(message, _Dismiss):
            self._publish(replace(self._snapshot, alert_visible=False))
            self._resolve(message.waiter)
        elif isinstance(message, _ForceOffline):
            self._on_force_offline()
            self._resolve(message.waiter)

    def _on_check_request(self, request: _CheckRequest) -> None:
        if self._cycle_task is not None:
            if request.trigger is CheckTrigger.PERIODIC:
                logger.debug("Periodic check skipped: a check is already in flight")
                return
            if request.waiter is not None:
                self._cycle_waiters.append(request.waiter)
            if request.trigger is CheckTrigger.MANUAL:
                self._cycle_manual = True
            logger.debug(f"{request.trigger.value} check joined the in-flight cycle")
            return

        self._cycle_trigger = request.trigger
        self._cycle_manual = request.trigger is CheckTrigger.MANUAL
        self._cycle_waiters = [request.waiter] if request.waiter is not None else []
        prefer_backend = self._settled_state is ConnectivityState.ONLINE

        logger.debug(f"Starting {request.trigger.value} connectivity check")
        self._publish(
            replace(
                self._snapshot,
                state=ConnectivityState.CHECKING,
                is_checking=True,
                trigger=request.trigger,
            )
        )
        task = asyncio.create_task(self._run_cycle(prefer_backend), name="connectivity-cycle")
        task.add_done_callback(self._on_cycle_done)
        self._cycle_task = task

    def _on_cycle_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Connectivity check crashed; treating as offline")
            result = CycleResult(ConnectivityState.OFFLINE, ConnectivityHint.CHECK_NETWORK)
        else:
            result = task.result()
        self._post(_CycleFinished(result))

    def _on_cycle_finished(self, result: CycleResult) -> None:
        waiters, self._cycle_waiters = self._cycle_waiters, []
        manual = self._cycle_manual
        self._cycle_task = None
        self._cycle_manual = False

        previous = self._settled_state
        self._settled_state = result.state

        if manual:
            self.offline_mode.on_manual_check_result(result.state is ConnectivityState.ONLINE)

        alert_visible = self._snapshot.alert_visible
        if result.state is ConnectivityState.ONLINE:
            alert_visible = False
        elif result.state.is_failure and (result.state is not previous or manual):
            alert_visible = True

        snapshot = MonitorSnapshot(
            state=result.state,
            is_checking=False,
            attempt_counter=self.offline_mode.attempt_counter,
            last_checked_at=datetime.now(timezone.utc),
            via=result.via.name if result.via else None,
            hint=result.hint,
            alert_visible=alert_visible,
            offline_mode=self.offline_mode.is_offline_mode(),
            trigger=self._cycle_trigger,
        )

        log_transition(previous, snapshot)
        self._publish(snapshot)
        for waiter in waiters:
            self._resolve(waiter)

    def _on_network_changed(self, event: NetworkEvent) -> None:
        delay = self.config.settle_delay_seconds
        logger.info(f"OS reports network {event.value.replace('_', ' ')}; confirming in {delay:.1f}s")
        if self._settle_handle is not None:
            self._settle_handle.cancel()
        self._settle_handle = self._loop.call_later(delay, self._post, _CheckRequest(CheckTrigger.NETWORK))

    def _on_force_offline(self) -> None:
        if self.trading_service is None:
            logger.warning("⚠️  No trading service attached; offline mode unavailable")
        else:
            try:
                self.trading_service.set_offline_mode(True)
            except Exception as exc:  # noqa: BLE001
                logger.error(f"❌ Failed to enable offline mode: {exc}")
        self._publish(
            replace(
                self._snapshot,
                alert_visible=False,
                offline_mode=self.offline_mode.is_offline_mode(),
            )
        )

    def _resolve(self, waiter: Optional[asyncio.Future]) -> None:
        if waiter is not None and not waiter.done():
            waiter.set_result(self._snapshot)

    def _publish(self, snapshot: MonitorSnapshot) -> None:
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:  # noqa: BLE001
                logger.exception("Connectivity snapshot subscriber failed")

    def _unsubscribe(self, callback: SnapshotCallback) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    async def _periodic_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.periodic_interval_seconds)
            self._post(_CheckRequest(CheckTrigger.PERIODIC))

    # ------------------------------------------------------------------
    # Probe cycle (runs outside the actor; reads configuration only)
    # ------------------------------------------------------------------

    async def _run_cycle(self, prefer_backend: bool) -> CycleResult:
        if self.config.bypass_checks:
            logger.debug("Connectivity checks bypassed; reporting online")
            return CycleResult(ConnectivityState.ONLINE, ConnectivityHint.BYPASSED)

        endpoints = order_endpoints(self.endpoints, prefer_backend=prefer_backend)
        outcome = await self.chain_runner.run_chain(endpoints)

        if not outcome.reachable:
            logger.warning("❌ No endpoint reachable - check your network connection")
            return CycleResult(ConnectivityState.OFFLINE, classify(False, False), outcome=outcome)

        if outcome.via.is_backend:
            return CycleResult(ConnectivityState.ONLINE, via=outcome.via, outcome=outcome)

        tried = outcome.tried
        remaining = [e for e in endpoints if e.is_backend and e not in tried]
        if remaining:
            confirmation = await self.chain_runner.run_chain(remaining)
            if confirmation.reachable:
                return CycleResult(ConnectivityState.ONLINE, via=outcome.via, outcome=outcome)

        if await self._confirm_backend():
            return CycleResult(ConnectivityState.ONLINE, via=outcome.via, outcome=outcome)

        logger.warning(
            f"⚠️  Internet reachable via {outcome.via.name} but the trading backend is not - "
            "check backend configuration (API keys, proxy, region)"
        )
        return CycleResult(
            ConnectivityState.DEGRADED,
            classify(general_ok=True, backend_ok=False),
            via=outcome.via,
            outcome=outcome,
        )

    async def _confirm_backend(self) -> bool:
        if self.backend_client is None:
            return False
        timeout = self.config.backend_confirm_timeout_seconds
        try:
            return bool(await asyncio.wait_for(self.backend_client.test_connection(), timeout=timeout))
        except asyncio.TimeoutError:
            logger.warning(f"⚠️  Backend confirmation timed out after {timeout:.0f}s")
            return False
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"⚠️  Backend confirmation failed: {exc}")
            return False
