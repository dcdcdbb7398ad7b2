"""
Host Application Tests
======================

HTTP endpoints and the /ws channel, exercised through the TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from crowd_whisper import main
from crowd_whisper.models import Alert, AlertStatus


@pytest.fixture
def client(monkeypatch, zones_file):
    monkeypatch.setattr(main.settings.zones, "definition_path", str(zones_file))
    with TestClient(main.app) as test_client:
        yield test_client


def reading_message(device_id="device-1", lat=0.001, lng=0.002):
    return {
        "event": "sensor_data",
        "data": {
            "device_id": device_id,
            "timestamp": 1770500938.284,
            "location": {"lat": lat, "lng": lng},
        },
    }


def receive_until(ws, event_name):
    while True:
        message = ws.receive_json()
        if message["event"] == event_name:
            return message


class TestHttpEndpoints:
    """Read-only HTTP surface."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_zones(self, client):
        zones = client.get("/zones").json()
        assert [z["id"] for z in zones] == ["main-stage", "food-court", "entry-plaza"]

    def test_alerts_start_empty(self, client):
        assert client.get("/alerts").json() == []
        assert client.get("/alerts", params={"status": "active"}).json() == []

    def test_alerts_default_to_active(self, client):
        store = main._alert_store
        handled = store.create_alert(Alert(
            type="density", severity=3, affected_zones=["main-stage"],
            message="High density level (85.0%) in Main Stage.", timestamp=1000.0,
        ))
        pending = store.create_alert(Alert(
            type="density", severity=5, affected_zones=["food-court"],
            message="Critical density level (95.0%) in Food Court!", timestamp=1001.0,
        ))
        store.update_status(handled.id, AlertStatus.ACKNOWLEDGED)

        assert [a["id"] for a in client.get("/alerts").json()] == [pending.id]
        acknowledged = client.get("/alerts", params={"status": "acknowledged"}).json()
        assert [a["id"] for a in acknowledged] == [handled.id]

    def test_alerts_invalid_status(self, client):
        assert client.get("/alerts", params={"status": "bogus"}).status_code == 422

    def test_metrics(self, client):
        metrics = client.get("/metrics").json()
        assert metrics["running"] is True
        assert metrics["readings_processed"] == 0
        assert "buffer" in metrics


class TestWebSocket:
    """Bidirectional /ws channel."""

    def test_reading_produces_density_update(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json(reading_message())
            message = receive_until(ws, "density_update")

        assert message["data"]["zone_id"] == "main-stage"
        assert message["data"]["value"] == 0.1
        assert message["data"]["trend"] == "stable"

    def test_invalid_reading_returns_error(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "sensor_data", "data": {"device_id": "device-1"}})
            message = ws.receive_json()

        assert message["event"] == "error"
        assert "sensor_data" in message["data"]["message"]

    def test_non_object_message_returns_error(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json(["not", "an", "object"])
            message = ws.receive_json()

        assert message == {"event": "error", "data": {"message": "Message must be a JSON object"}}

    def test_unknown_event_returns_error(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "telemetry", "data": {}})
            message = ws.receive_json()

        assert message["data"]["message"] == "Unknown event: telemetry"

    def test_disconnect_stops_simulation(self, client):
        engine = main.get_engine()

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "control", "data": {"type": "start-simulation"}})
            # Any error reply proves the control message was handled first
            ws.send_json({"event": "ping", "data": {}})
            receive_until(ws, "error")
            assert engine.simulator.is_running is True

        assert engine.simulator.is_running is False
