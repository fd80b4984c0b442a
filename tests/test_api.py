import pytest
from fastapi.testclient import TestClient

import api
from app import app


@pytest.fixture
def client(controller, scheduler):
    api.controller = controller
    api.scheduler = scheduler
    yield TestClient(app)
    api.controller = None
    api.scheduler = None


def test_status(client, controller):
    controller.handle_line("junk")
    controller.handle_line("T1=10000 x")

    response = client.get("/status")
    assert response.status_code == 200
    body = response.json()
    assert body["raw"] == {"R": 0, "T1": 10000}
    assert body["computed"]["temperature"] == pytest.approx(100.0)
    assert body["setpoint"] == 0


def test_history(client):
    assert client.get("/history").json() == []


def test_relays_on_off(client, transport):
    assert client.post("/on").json() == {"ok": True}
    assert client.post("/off").json() == {"ok": True}
    assert transport.commands == ["ON", "OFF"]


def test_relay_command_failure(client, transport):
    transport.fail_writes = True
    response = client.post("/on")
    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "write failed"}


def test_set_temperature(client, controller):
    response = client.post("/set", json={"temperature": 500})
    assert response.json() == {"ok": True}
    assert controller.get_target_temperature() == 500


@pytest.mark.parametrize("body", [{"temperature": -1}, {"temperature": "hot"}, {}])
def test_set_temperature_rejects_bad_input(client, body):
    response = client.post("/set", json=body)
    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_set_temperature_out_of_range(client, controller):
    response = client.post("/set", json={"temperature": 5000})
    assert response.status_code == 400
    assert "between 20 and 1300" in response.json()["error"]
    assert controller.get_target_temperature() == 0


def test_tunings(client, controller):
    assert client.get("/tunings").json() == {"Kp": 400, "Ki": 100, "Kd": 30}
    assert client.post("/tunings", json={"Kp": 1, "Ki": 2, "Kd": 3}).json() == {"ok": True}
    assert controller.get_tunings().to_dict() == {"Kp": 1, "Ki": 2, "Kd": 3}


def test_tunings_rejects_missing_gain(client):
    response = client.post("/tunings", json={"Kp": 1, "Ki": 2})
    assert response.status_code == 400


def test_schedule_roundtrip(client, controller):
    assert client.get("/schedule").json()["currentStep"] is None

    response = client.post(
        "/schedule", json={"schedule": [{"temperature": 300, "soakMinutes": 10}]}
    )
    assert response.json() == {"ok": True}
    assert client.get("/schedule").json()["currentStep"] == {
        "temperature": 300,
        "rampMinutes": 0,
        "soakMinutes": 10,
    }
    assert controller.get_target_temperature() == 300

    assert client.post("/schedule", json={"schedule": None}).json() == {"ok": True}
    assert client.get("/schedule").json()["currentStep"] is None
    assert controller.get_target_temperature() == 0


def test_invalid_schedule(client):
    response = client.post("/schedule", json={"schedule": [{"temperature": 300}]})
    assert response.status_code == 400
    assert response.json() == {
        "ok": False,
        "error": "Step 1: ramp and soak times cannot both be zero",
    }


def test_not_initialized():
    api.controller = None
    response = TestClient(app).get("/status")
    assert response.status_code == 503
    assert response.json()["ok"] is False


def test_non_finite_schedule_minutes(client):
    response = client.post(
        "/schedule",
        content='{"schedule": [{"temperature": 100, "soakMinutes": Infinity}]}',
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {
        "ok": False,
        "error": "Step 1: soak time must be a non-negative number",
    }
