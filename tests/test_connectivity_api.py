import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from connwatch.config import Settings
from connwatch.monitoring.alerter import Alerter
from connwatch.monitoring.notification_surface import NotificationSurface
from connwatch.monitoring.state import CheckTrigger, ConnectivityState, MonitorSnapshot
from connwatch.probes.base import ConnectivityHint
from connwatch.runtime import MonitorRuntime
from dashboard.backend.dashboard_api import create_app
from tests.mock_probes import FakeTradingService, backend, general, make_monitor


def _runtime_factory(script=None, trading=None):
    created = {}

    def factory(settings):
        monitor, executor, backend_client, trading_service = make_monitor(
            [general("a"), backend("ping")],
            script=script,
            trading_service=trading or FakeTradingService(),
        )
        alerter = Alerter()
        runtime = MonitorRuntime(
            settings=settings,
            executor=MagicMock(close=AsyncMock()),
            backend_client=backend_client,
            trading_service=trading_service,
            monitor=monitor,
            surface=NotificationSurface(monitor, alerter=alerter),
            alerter=alerter,
        )
        created["runtime"] = runtime
        created["executor"] = executor
        return runtime

    return factory, created


@pytest.fixture
def trading():
    return FakeTradingService()


@pytest.fixture
def app_and_state(trading):
    factory, created = _runtime_factory(trading=trading)
    return create_app(settings=Settings(), runtime_factory=factory), created


def test_status_before_any_check(app_and_state):
    app, _ = app_and_state
    with TestClient(app) as client:
        response = client.get("/api/connectivity")

    assert response.status_code == 200
    data = response.json()
    assert data["snapshot"]["state"] == "unknown"
    assert data["snapshot"]["attempt_counter"] == 0
    assert data["alert"]["visible"] is False


def test_manual_check_dismiss_and_offline_mode(app_and_state, trading):
    app, created = app_and_state
    with TestClient(app) as client:
        checked = client.post("/api/connectivity/check").json()
        dismissed = client.post("/api/connectivity/dismiss").json()
        forced = client.post("/api/connectivity/offline-mode").json()

    assert checked["snapshot"]["state"] == "offline"
    assert checked["snapshot"]["hint"] == "check_network"
    assert checked["snapshot"]["attempt_counter"] == 1
    assert checked["alert"]["visible"] is True
    assert checked["alert"]["level"] == "error"
    assert [a["key"] for a in checked["alert"]["actions"]] == ["check_now", "enable_offline_mode", "dismiss"]

    assert dismissed["alert"]["visible"] is False

    assert forced["snapshot"]["offline_mode"] is True
    assert "enable_offline_mode" not in [a["key"] for a in forced["alert"]["actions"]]
    assert trading.set_calls == [True]
    assert created["runtime"].backend_client.closed is True


def test_external_recheck_request(app_and_state):
    app, created = app_and_state
    with TestClient(app) as client:
        response = client.post("/api/connectivity/request", json={"reason": "api_error"})
        assert response.status_code == 202
        assert response.json() == {"accepted": True, "reason": "api_error"}

        deadline = time.monotonic() + 2.0
        state = None
        while time.monotonic() < deadline:
            state = client.get("/api/connectivity").json()["snapshot"]
            if state["trigger"] == "external" and not state["is_checking"]:
                break
            time.sleep(0.01)

    assert state["state"] == "offline"
    assert state["trigger"] == "external"
    # Automatic checks never count as manual attempts
    assert state["attempt_counter"] == 0


def test_request_without_body_defaults_reason(app_and_state):
    app, _ = app_and_state
    with TestClient(app) as client:
        response = client.post("/api/connectivity/request")

    assert response.status_code == 202
    assert response.json()["reason"] == "external"


def test_unavailable_without_running_monitor(app_and_state):
    app, _ = app_and_state
    client = TestClient(app)

    response = client.get("/api/connectivity")

    assert response.status_code == 503


def test_websocket_sends_current_snapshot(app_and_state):
    app, _ = app_and_state
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as websocket:
            assert websocket.receive_json()["type"] == "connected"
            update = websocket.receive_json()
            websocket.send_text("ping")
            assert websocket.receive_json() == {"type": "pong"}

    assert update["type"] == "connectivity"
    assert update["data"]["state"] == "unknown"


def test_action_response_uses_the_settled_snapshot(app_and_state):
    app, created = app_and_state
    settled = MonitorSnapshot(
        state=ConnectivityState.OFFLINE,
        attempt_counter=1,
        hint=ConnectivityHint.CHECK_NETWORK,
        alert_visible=True,
        trigger=CheckTrigger.MANUAL,
    )
    with TestClient(app) as client:
        monitor = created["runtime"].monitor
        # The live snapshot has moved on by the time the route responds
        monitor.trigger_manual_check = AsyncMock(return_value=settled)
        data = client.post("/api/connectivity/check").json()
        live_state = monitor.snapshot.state

    assert live_state is ConnectivityState.UNKNOWN
    assert data["snapshot"]["state"] == "offline"
    assert data["snapshot"]["attempt_counter"] == 1
    assert data["alert"]["state"] == data["snapshot"]["state"]
    assert data["alert"]["visible"] is data["snapshot"]["alert_visible"] is True
