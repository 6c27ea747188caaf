"""End-to-end API tests: alert lifecycle, receivers, devices, users and the live WebSocket feed."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient
from app.config import settings
from app.main import APIKeyMiddleware
from app.models.receiver import Receiver
from app.schemas.alert import DeliveryFailure, DeliveryReport
from app.exceptions import PersistenceError, DeliveryError

API = "/api/v1"
INTRUSION = {"alert_type": "Unauthorized Access", "severity": "high", "source_device": "Camera-1"}


class TestAlertLifecycle:
    def test_create_list_acknowledge(self, client):
        created = client.post(f"{API}/alerts", json=INTRUSION)
        assert created.status_code == 201
        alert = created.json()["alert"]
        assert alert["acknowledged"] is False
        assert created.json()["delivery"] == {"attempted": 0, "succeeded": 0, "failures": []}

        [latest] = client.get(f"{API}/alerts", params={"limit": 1}).json()
        assert latest["id"] == alert["id"]
        assert latest["acknowledged"] is False

        acked = client.post(f"{API}/alerts/{alert['id']}/acknowledge")
        assert acked.status_code == 200

        [latest] = client.get(f"{API}/alerts", params={"limit": 1}).json()
        assert latest["acknowledged"] is True
        assert latest["acknowledged_at"] is not None

    def test_acknowledge_twice(self, client):
        alert_id = client.post(f"{API}/alerts", json=INTRUSION).json()["alert"]["id"]

        first = client.post(f"{API}/alerts/{alert_id}/acknowledge").json()
        second = client.post(f"{API}/alerts/{alert_id}/acknowledge")

        assert second.status_code == 200
        assert second.json()["acknowledged_at"] == first["acknowledged_at"]

    def test_invalid_alert_rejected(self, client):
        resp = client.post(f"{API}/alerts", json={**INTRUSION, "severity": "critical"})
        assert resp.status_code == 422
        assert client.get(f"{API}/alerts").json() == []

    def test_unknown_alert(self, client):
        assert client.get(f"{API}/alerts/999").status_code == 404
        assert client.post(f"{API}/alerts/999/acknowledge").status_code == 404

    def test_dashboard_test_alert(self, client):
        resp = client.post(f"{API}/alerts/test")
        assert resp.status_code == 201
        alert = resp.json()["alert"]
        assert alert["severity"] == "medium"
        assert alert["source_device"] == "Dashboard"

    def test_delivery_report_returned(self, client):
        report = DeliveryReport(attempted=2, succeeded=1, failures=[
            DeliveryFailure(device_name="B", address="http://10.0.0.2:8080", reason="timed out after 4.0s"),
        ])
        with patch("app.routers.alerts.broadcast", new_callable=AsyncMock, return_value=report):
            resp = client.post(f"{API}/alerts", json=INTRUSION)

        assert resp.status_code == 201
        assert resp.json()["delivery"]["attempted"] == 2
        assert resp.json()["delivery"]["succeeded"] == 1

    def test_registry_failure_does_not_fail_creation(self, client):
        with patch("app.routers.alerts.broadcast", new_callable=AsyncMock,
                   side_effect=PersistenceError("registry down")):
            resp = client.post(f"{API}/alerts", json=INTRUSION)

        assert resp.status_code == 201
        assert resp.json()["delivery"] is None
        assert len(client.get(f"{API}/alerts").json()) == 1

    def test_store_failure_surfaced(self, client):
        with patch("app.routers.alerts.create_alert", new_callable=AsyncMock,
                   side_effect=PersistenceError("Failed to create alert")):
            resp = client.post(f"{API}/alerts", json=INTRUSION)

        assert resp.status_code == 503
        assert resp.json()["detail"] == "Failed to create alert"


class TestReceivers:
    def test_heartbeat_and_offline(self, client):
        resp = client.post(f"{API}/receivers/heartbeat",
                           json={"device_name": "Lab-ESP32", "ip_address": "192.168.1.100", "device_type": "esp32"})
        assert resp.status_code == 200
        assert resp.json()["port"] == 80
        assert resp.json()["status"] == "online"

        assert [r["device_name"] for r in client.get(f"{API}/receivers/online").json()] == ["Lab-ESP32"]

        client.post(f"{API}/receivers/Lab-ESP32/offline")
        assert client.get(f"{API}/receivers/online").json() == []
        assert client.get(f"{API}/receivers").json()[0]["status"] == "offline"

    def test_offline_unknown_device(self, client):
        assert client.post(f"{API}/receivers/ghost/offline").status_code == 404


class TestDevices:
    def _register(self, client):
        client.post(f"{API}/receivers/heartbeat",
                    json={"device_name": "Lab-ESP32", "ip_address": "192.168.1.100", "device_type": "esp32"})

    def test_unknown_device(self, client):
        assert client.get(f"{API}/devices/ghost/status").status_code == 404

    def test_unreachable_device_is_bad_gateway(self, client):
        self._register(client)
        with patch("app.routers.devices.get_device_status", new_callable=AsyncMock,
                   side_effect=DeliveryError("Lab-ESP32", "timed out after 5.0s")):
            resp = client.get(f"{API}/devices/Lab-ESP32/status")

        assert resp.status_code == 502
        assert resp.json()["device_name"] == "Lab-ESP32"

    def test_reboot_reports_acceptance(self, client):
        self._register(client)
        with patch("app.routers.devices.reboot_device", new_callable=AsyncMock, return_value=False):
            resp = client.post(f"{API}/devices/Lab-ESP32/reboot")

        assert resp.status_code == 200
        assert resp.json()["accepted"] is False


class TestUsersAndSummary:
    def test_enroll_and_deactivate(self, client):
        resp = client.post(f"{API}/users", data={"name": "Ada"},
                           files={"image": ("ada.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 32, "image/png")})
        assert resp.status_code == 201
        user_id = resp.json()["id"]

        assert [u["name"] for u in client.get(f"{API}/users").json()] == ["Ada"]

        client.post(f"{API}/users/{user_id}/deactivate")
        assert client.get(f"{API}/users").json() == []

    def test_enroll_rejects_non_image(self, client):
        resp = client.post(f"{API}/users", data={"name": "Ada"},
                           files={"image": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 422

    def test_summary_counts(self, client):
        client.post(f"{API}/alerts", json=INTRUSION)
        low = client.post(f"{API}/alerts", json={**INTRUSION, "severity": "low"}).json()["alert"]
        client.post(f"{API}/alerts/{low['id']}/acknowledge")
        client.post(f"{API}/receivers/heartbeat", json={"device_name": "Phone", "ip_address": "10.0.0.9"})

        summary = client.get(f"{API}/dashboard/summary").json()
        assert summary["active_alerts"] == 1
        assert summary["high_priority"] == 1
        assert summary["receivers_online"] == 1
        assert summary["receivers_total"] == 1
        assert summary["total_users"] == 0


class TestLiveFeed:
    def test_two_dashboards_see_new_alert(self, client):
        with client.websocket_connect("/ws/alerts") as first, client.websocket_connect("/ws/alerts") as second:
            assert first.receive_json() == {"type": "alerts", "alerts": []}
            assert second.receive_json() == {"type": "alerts", "alerts": []}

            alert_id = client.post(f"{API}/alerts", json=INTRUSION).json()["alert"]["id"]

            for ws in (first, second):
                message = ws.receive_json()
                assert message["type"] == "alerts"
                assert [a["id"] for a in message["alerts"]] == [alert_id]
                assert message["alerts"][0]["acknowledged"] is False

    def test_ping_pong(self, client):
        with client.websocket_connect("/ws/alerts") as ws:
            ws.receive_json()
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}


class TestAPIKey:
    def _app(self, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "secret")
        secured = FastAPI()
        secured.add_middleware(APIKeyMiddleware)

        @secured.post("/api/v1/receivers/heartbeat")
        async def heartbeat():
            return {"ok": True}

        @secured.post("/api/v1/receivers/{device_name}/offline")
        async def offline(device_name: str):
            return {"ok": True}

        @secured.get("/api/v1/alerts")
        async def alerts():
            return []

        return TestClient(secured)

    def test_devices_can_report_without_key(self, monkeypatch):
        client = self._app(monkeypatch)
        assert client.post(f"{API}/receivers/heartbeat").status_code == 200
        assert client.post(f"{API}/receivers/Guard Phone/offline").status_code == 200

    def test_other_routes_require_key(self, monkeypatch):
        client = self._app(monkeypatch)
        assert client.get(f"{API}/alerts").status_code == 401
        assert client.get(f"{API}/alerts", headers={"X-API-Key": "secret"}).status_code == 200


class TestUploadLimit:
    def test_oversized_upload_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 16)
        resp = client.post(f"{API}/users", data={"name": "Ada"},
                           files={"image": ("ada.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 1024, "image/png")})
        assert resp.status_code == 422
        assert client.get(f"{API}/users").json() == []


class TestDeviceTestAlert:
    def test_push_uses_receiver_payload(self, client):
        client.post(f"{API}/receivers/heartbeat", json={"device_name": "Phone", "ip_address": "10.0.0.9"})
        with patch("app.routers.devices.push_alert", new_callable=AsyncMock) as push:
            resp = client.post(f"{API}/devices/Phone/test-alert")

        assert resp.json() == {"attempted": 1, "succeeded": 1, "failures": []}
        payload = push.call_args.args[2]
        assert set(payload) == {"type", "severity", "message", "timestamp", "source"}
        assert payload["severity"] == "high"


class TestHealth:
    def test_stale_boards_not_pinged(self, client, session_factory):
        client.post(f"{API}/receivers/heartbeat",
                    json={"device_name": "Lab-ESP32", "ip_address": "192.168.1.100", "device_type": "esp32"})
        session = session_factory()
        board = session.query(Receiver).filter(Receiver.device_name == "Lab-ESP32").one()
        board.last_heartbeat = datetime.utcnow() - timedelta(seconds=settings.HEARTBEAT_EXPIRY_SECONDS + 5)
        session.commit()
        session.close()

        with patch("app.routers.health.requests.get") as get:
            resp = client.get(f"{API}/health")

        get.assert_not_called()
        assert resp.json()["devices"] == {}
