"""
Tests for the control endpoint and app wiring.

Run:  pytest tests/test_main.py -v
"""

import asyncio
import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from downtime_handler.main import create_app, install_fatal_error_hook
from downtime_handler.middleware import ERROR_MESSAGE
from downtime_handler.utils.downtime import DowntimeController, DowntimeStatus


@pytest.fixture
def client(transport, collection, make_settings):
    app = create_app(
        settings=make_settings(DOWNTIME_DELAY=30, FORCE_DOWNTIME=False),
        transport=transport,
        collection=collection,
    )
    with TestClient(app) as c:
        yield c


def _controller(client):
    return client.app.state.controller


# ══════════════════════════════════════════════════════════════════════════
# OPS
# ══════════════════════════════════════════════════════════════════════════
class TestOps:
    def test_index(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "service": "downtime-handler"}

    def test_request_id_auto_generated(self, client):
        resp = client.get("/")
        assert "x-request-id" in resp.headers

    def test_request_id_forwarded(self, client):
        resp = client.get("/", headers={"X-Request-ID": "my-custom-req-id"})
        assert resp.headers["x-request-id"] == "my-custom-req-id"

    def test_status_snapshot_initially_up(self, client):
        resp = client.get("/downtime")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "up",
            "pendingSince": None,
            "forced": False,
            "active": False,
        }

    def test_subscriptions_registered(self, client, transport):
        assert len(transport.membership_callbacks) == 1
        assert len(transport.text_callbacks) == 1


# ══════════════════════════════════════════════════════════════════════════
# CONTROL ENDPOINT
# ══════════════════════════════════════════════════════════════════════════
class TestReportEndpoint:
    def test_down_starts_countdown(self, client, transport):
        resp = client.post("/downtime", json={"down": True})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

        status = client.get("/downtime").json()
        assert status["status"] == "pending_down"
        assert status["pendingSince"] is not None
        assert status["active"] is False
        assert _controller(client).timer_pending
        assert transport.starts == 0

    def test_up_clears_pending(self, client):
        client.post("/downtime", json={"down": True})
        resp = client.post("/downtime", json={"down": False})
        assert resp.json() == {"ok": True}
        assert client.get("/downtime").json()["status"] == "up"
        assert not _controller(client).timer_pending

    @pytest.mark.parametrize(
        "body",
        [{"down": "yes"}, {"down": 1}, {"down": None}, {}, {"up": True}, [True], "down"],
    )
    def test_invalid_body_rejected(self, client, body):
        resp = client.post("/downtime", json=body)
        assert resp.status_code == 200
        assert resp.json() == {"ok": False}
        assert _controller(client).state.status == DowntimeStatus.UP

    def test_malformed_json_returns_generic_error(self, client):
        resp = client.post(
            "/downtime",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == ERROR_MESSAGE
        assert data["err"]["type"] == "JSONDecodeError"

    def test_endpoint_survives_malformed_json(self, client):
        client.post("/downtime", content=b"{", headers={"content-type": "application/json"})
        resp = client.post("/downtime", json={"down": True})
        assert resp.json() == {"ok": True}

    def test_unhandled_exception_caught_at_boundary(self, client):
        with patch.object(
            _controller(client), "report_down", AsyncMock(side_effect=RuntimeError("boom"))
        ):
            resp = client.post("/downtime", json={"down": True})
        assert resp.status_code == 200
        assert resp.json() == {
            "message": ERROR_MESSAGE,
            "err": {"type": "RuntimeError", "detail": "boom"},
        }


class TestDelayedTakeover:
    def test_takeover_after_delay(self, transport, collection, make_settings):
        app = create_app(
            settings=make_settings(DOWNTIME_DELAY=0.1),
            transport=transport,
            collection=collection,
        )
        with TestClient(app) as client:
            assert client.post("/downtime", json={"down": True}).json() == {"ok": True}
            time.sleep(0.5)
            status = client.get("/downtime").json()
            assert status["status"] == "down"
            assert status["active"] is True
            assert transport.starts == 1
            assert len(transport.alerts) == 1

            client.post("/downtime", json={"down": False})
            assert transport.stops == 1


class TestForcedStartup:
    def test_forced_downtime_active_on_start(self, transport, collection, make_settings):
        app = create_app(
            settings=make_settings(FORCE_DOWNTIME=True),
            transport=transport,
            collection=collection,
        )
        with TestClient(app) as client:
            status = client.get("/downtime").json()
            assert status["status"] == "down"
            assert status["forced"] is True
            assert status["active"] is True
            assert transport.starts == 1
            assert transport.alerts == []

            client.post("/downtime", json={"down": True})
            assert not _controller(client).timer_pending

            client.post("/downtime", json={"down": False})
            assert client.get("/downtime").json()["status"] == "up"
        assert not transport.running


# ══════════════════════════════════════════════════════════════════════════
# PROCESS-LEVEL ERRORS
# ══════════════════════════════════════════════════════════════════════════
class TestFatalErrorHook:
    @pytest.mark.anyio
    async def test_loop_error_stops_failover_handler(self, transport):
        controller = DowntimeController(transport, delay=0, alert_factory=lambda: None, forced=True)
        await controller.start()
        loop = asyncio.get_running_loop()
        previous = install_fatal_error_hook(loop, controller)
        try:
            loop.call_exception_handler(
                {"message": "Task exception was never retrieved", "exception": RuntimeError("x")}
            )
            await asyncio.sleep(0.05)
        finally:
            loop.set_exception_handler(previous)
        assert not transport.running
        assert controller.state.status == DowntimeStatus.DOWN

    @pytest.mark.anyio
    async def test_failed_halt_is_logged_not_reraised(self, transport, caplog):
        controller = DowntimeController(transport, delay=0, alert_factory=lambda: None)
        loop = asyncio.get_running_loop()
        previous = install_fatal_error_hook(loop, controller)
        reported = []
        try:
            with patch.object(
                controller, "halt_failover", AsyncMock(side_effect=RuntimeError("stop failed"))
            ) as halt:
                loop.call_exception_handler({"message": "boom", "exception": RuntimeError("x")})
                await asyncio.sleep(0.05)
                loop.set_exception_handler(lambda _loop, context: reported.append(context))
        finally:
            loop.set_exception_handler(previous)
        halt.assert_awaited_once()
        assert "Failed to stop failover handler." in caplog.text
        assert reported == []
