import asyncio

import pytest

from connwatch.monitoring.state import CheckTrigger, ConnectivityState, NetworkEvent
from connwatch.probes.base import ConnectivityHint
from tests.mock_probes import FakeBackendClient, FakeProbeExecutor, FakeTradingService, backend, general, make_monitor


async def wait_until(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_all_endpoints_failing_settles_offline():
    monitor, executor, backend_client, _ = make_monitor([general("a"), general("b"), backend("ping")])
    states = []
    monitor.subscribe(lambda snapshot: states.append(snapshot.state))

    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.OFFLINE
    assert snapshot.hint is ConnectivityHint.CHECK_NETWORK
    assert snapshot.via is None
    assert snapshot.alert_visible is True
    assert snapshot.last_checked_at is not None
    assert ConnectivityState.ONLINE not in states
    assert ConnectivityState.DEGRADED not in states
    assert executor.calls == ["a", "b", "ping"]
    assert backend_client.calls == 0


@pytest.mark.asyncio
async def test_general_success_without_backend_is_degraded():
    monitor, executor, backend_client, _ = make_monitor(
        [general("a"), backend("ping")],
        script={"a": True, "ping": False},
        backend_client=FakeBackendClient(reachable=False),
    )
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.DEGRADED
    assert snapshot.hint is ConnectivityHint.CHECK_BACKEND_CONFIG
    assert snapshot.via == "a"
    assert executor.calls == ["a", "ping"]
    assert backend_client.calls == 1


@pytest.mark.asyncio
async def test_degraded_via_second_general_endpoint():
    monitor, executor, _, _ = make_monitor(
        [general("general-A"), general("general-B"), backend("backend-ping")],
        script={"general-A": False, "general-B": True, "backend-ping": False},
    )
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.DEGRADED
    assert snapshot.via == "general-B"
    assert executor.calls == ["general-A", "general-B", "backend-ping"]


@pytest.mark.asyncio
async def test_backend_endpoint_success_is_online_even_when_general_fails():
    monitor, executor, backend_client, _ = make_monitor(
        [general("a"), general("b"), backend("ping")],
        script={"a": False, "b": False, "ping": True},
    )
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.ONLINE
    assert snapshot.via == "ping"
    assert snapshot.hint is ConnectivityHint.NONE
    assert snapshot.alert_visible is False
    assert backend_client.calls == 0


@pytest.mark.asyncio
async def test_general_success_confirmed_by_backend_probe_is_online():
    monitor, executor, backend_client, _ = make_monitor(
        [general("a"), backend("ping")],
        script={"a": True, "ping": True},
    )
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.ONLINE
    assert snapshot.via == "a"
    assert executor.calls == ["a", "ping"]
    assert backend_client.calls == 0


@pytest.mark.asyncio
async def test_backend_client_confirms_when_backend_probes_fail():
    monitor, _, backend_client, _ = make_monitor(
        [general("a"), backend("ping")],
        script={"a": True, "ping": False},
        backend_client=FakeBackendClient(reachable=True),
    )
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.ONLINE
    assert backend_client.calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client",
    [
        FakeBackendClient(error=RuntimeError("boom")),
        FakeBackendClient(reachable=True, delay=1.0),
    ],
    ids=["raises", "too-slow"],
)
async def test_backend_confirmation_failures_are_swallowed(client):
    monitor, _, _, _ = make_monitor(
        [general("a")],
        script={"a": True},
        backend_client=client,
        backend_confirm_timeout_seconds=0.05,
    )
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.DEGRADED
    assert snapshot.hint is ConnectivityHint.CHECK_BACKEND_CONFIG


@pytest.mark.asyncio
async def test_backend_endpoints_go_first_once_online():
    monitor, executor, _, _ = make_monitor(
        [general("a"), backend("ping")],
        script={"a": True, "ping": True},
    )
    await monitor.start()
    try:
        await monitor.trigger_manual_check()
        executor.calls.clear()
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.ONLINE
    assert executor.calls == ["ping"]


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_chain():
    monitor, executor, _, _ = make_monitor([general("a"), backend("ping")], script={"ping": True})
    executor.gate = asyncio.Event()
    await monitor.start()
    try:
        first = asyncio.create_task(monitor.trigger_manual_check())
        await wait_until(lambda: executor.in_flight == 1)
        assert monitor.snapshot.state is ConnectivityState.CHECKING
        assert monitor.snapshot.is_checking is True

        second = asyncio.create_task(monitor.trigger_manual_check())
        monitor.request_check("api_error")
        await asyncio.sleep(0.05)
        assert executor.calls == ["a"]

        executor.gate.set()
        first_snapshot, second_snapshot = await asyncio.gather(first, second)
    finally:
        await monitor.stop()

    assert first_snapshot is second_snapshot
    assert first_snapshot.state is ConnectivityState.ONLINE
    assert executor.max_in_flight == 1
    assert executor.calls == ["a", "ping"]
    # One manual result per cycle
    assert first_snapshot.attempt_counter == 0


@pytest.mark.asyncio
async def test_periodic_check_skipped_while_cycle_in_flight():
    monitor, executor, _, _ = make_monitor(
        [general("a")],
        script={"a": False},
        periodic_interval_seconds=0.02,
    )
    executor.gate = asyncio.Event()
    await monitor.start()
    try:
        await wait_until(lambda: executor.in_flight == 1)
        assert monitor.snapshot.trigger is CheckTrigger.PERIODIC
        await asyncio.sleep(0.15)
        assert executor.calls == ["a"]
        assert executor.max_in_flight == 1
    finally:
        executor.gate.set()
        await monitor.stop()


@pytest.mark.asyncio
async def test_manual_request_joining_external_cycle_counts_once():
    monitor, executor, _, _ = make_monitor([general("a")], script={"a": False})
    executor.gate = asyncio.Event()
    await monitor.start()
    try:
        monitor.request_check("api_error")
        await wait_until(lambda: executor.in_flight == 1)
        manual = asyncio.create_task(monitor.trigger_manual_check())
        await asyncio.sleep(0.02)
        executor.gate.set()
        snapshot = await manual
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.OFFLINE
    assert snapshot.trigger is CheckTrigger.EXTERNAL
    assert snapshot.attempt_counter == 1
    assert executor.calls == ["a"]


@pytest.mark.asyncio
async def test_network_notification_confirmed_by_probe_does_not_flap():
    monitor, executor, _, _ = make_monitor([general("a"), backend("ping")], script={"a": True, "ping": True})
    await monitor.start()
    try:
        await monitor.trigger_manual_check()
        states = []
        monitor.subscribe(lambda snapshot: states.append(snapshot.state))
        executor.calls.clear()

        monitor.notify_network_change(NetworkEvent.WENT_OFFLINE)
        monitor.notify_network_change(NetworkEvent.WENT_ONLINE)
        monitor.notify_network_change(NetworkEvent.WENT_OFFLINE)
        await asyncio.sleep(0.01)
        # Notifications alone never flip the state
        assert monitor.snapshot.state is ConnectivityState.ONLINE

        await wait_until(lambda: monitor.snapshot.trigger is CheckTrigger.NETWORK and not monitor.snapshot.is_checking)
        await asyncio.sleep(0.1)
    finally:
        await monitor.stop()

    assert monitor.snapshot.state is ConnectivityState.ONLINE
    assert ConnectivityState.OFFLINE not in states
    assert ConnectivityState.DEGRADED not in states
    # Three notifications inside the settle window collapse into one check
    assert executor.calls == ["ping"]


@pytest.mark.asyncio
async def test_network_notification_confirms_real_outage():
    monitor, executor, _, _ = make_monitor([backend("ping")], script={"ping": True})
    await monitor.start()
    try:
        await monitor.trigger_manual_check()
        executor.set("ping", False)
        monitor.notify_network_change(NetworkEvent.WENT_OFFLINE)
        await wait_until(lambda: monitor.snapshot.state is ConnectivityState.OFFLINE)
    finally:
        await monitor.stop()

    assert monitor.snapshot.trigger is CheckTrigger.NETWORK
    assert monitor.snapshot.alert_visible is True
    # Automatic checks never touch the manual attempt counter
    assert monitor.snapshot.attempt_counter == 0


@pytest.mark.asyncio
async def test_startup_check_runs_after_start():
    monitor, executor, _, _ = make_monitor(
        [backend("ping")],
        script={"ping": True},
        startup_check=True,
        startup_delay_seconds=0.01,
    )
    assert monitor.snapshot.state is ConnectivityState.UNKNOWN
    await monitor.start()
    try:
        await wait_until(lambda: monitor.snapshot.state is ConnectivityState.ONLINE)
    finally:
        await monitor.stop()

    assert monitor.snapshot.trigger is CheckTrigger.STARTUP
    assert executor.calls == ["ping"]


@pytest.mark.asyncio
async def test_alert_visibility_follows_changes_and_manual_checks():
    monitor, executor, _, _ = make_monitor([general("a")], script={"a": False})
    await monitor.start()
    try:
        monitor.request_check("timer")
        await wait_until(lambda: monitor.snapshot.state is ConnectivityState.OFFLINE)
        assert monitor.snapshot.alert_visible is True

        snapshot = await monitor.dismiss_alert()
        assert snapshot.alert_visible is False

        # Same settled state from an automatic check keeps the alert dismissed
        monitor.request_check("timer")
        await wait_until(lambda: len(executor.calls) == 2 and not monitor.snapshot.is_checking)
        assert monitor.snapshot.alert_visible is False

        snapshot = await monitor.trigger_manual_check()
        assert snapshot.alert_visible is True

        executor.set("a", True)
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    # General-only success without backend confirmation
    assert snapshot.state is ConnectivityState.DEGRADED
    assert snapshot.alert_visible is True


@pytest.mark.asyncio
async def test_force_offline_mode_hides_alert():
    trading = FakeTradingService()
    monitor, _, _, _ = make_monitor([general("a")], trading_service=trading)
    await monitor.start()
    try:
        await monitor.trigger_manual_check()
        snapshot = await monitor.force_offline_mode()
    finally:
        await monitor.stop()

    assert trading.set_calls == [True]
    assert snapshot.offline_mode is True
    assert snapshot.alert_visible is False


@pytest.mark.asyncio
async def test_bypass_reports_online_without_probing():
    monitor, executor, backend_client, _ = make_monitor([general("a")], bypass_checks=True)
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.ONLINE
    assert snapshot.hint is ConnectivityHint.BYPASSED
    assert executor.calls == []
    assert backend_client.calls == 0


class ExplodingExecutor(FakeProbeExecutor):
    async def probe(self, endpoint):
        raise RuntimeError("probe bug")


@pytest.mark.asyncio
async def test_crashing_cycle_settles_offline():
    monitor, _, _, _ = make_monitor([general("a")])
    monitor.chain_runner.executor = ExplodingExecutor()
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.OFFLINE
    assert snapshot.is_checking is False


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_monitor():
    monitor, _, _, _ = make_monitor([backend("ping")], script={"ping": True})
    received = []

    def broken(snapshot):
        raise ValueError("subscriber bug")

    monitor.subscribe(broken)
    subscription = monitor.subscribe(received.append)
    await monitor.start()
    try:
        snapshot = await monitor.trigger_manual_check()
        count = len(received)
        subscription.close()
        await monitor.trigger_manual_check()
    finally:
        await monitor.stop()

    assert snapshot.state is ConnectivityState.ONLINE
    assert count == 2  # checking + settled
    assert len(received) == count


@pytest.mark.asyncio
async def test_stop_cancels_pending_waiters():
    monitor, executor, _, _ = make_monitor([general("a")])
    executor.gate = asyncio.Event()
    await monitor.start()
    waiter = asyncio.create_task(monitor.trigger_manual_check())
    await wait_until(lambda: executor.in_flight == 1)

    await monitor.stop()

    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert monitor.snapshot.is_checking is False
    assert monitor.snapshot.state is ConnectivityState.UNKNOWN
    assert monitor.is_running is False


@pytest.mark.asyncio
async def test_manual_check_requires_running_monitor():
    monitor, _, _, _ = make_monitor([general("a")])
    with pytest.raises(RuntimeError):
        await monitor.trigger_manual_check()
