"""Tests for the HTTP bridge in front of the command dispatcher"""

from __future__ import annotations

from unittest.mock import DEFAULT, patch

import pytest
from fastapi.testclient import TestClient

from calq.api.app import build_dispatcher, create_app, main
from calq.storage.models import ReminderConfig


@pytest.fixture
def client(dispatcher):
    return TestClient(create_app(dispatcher))


def test_health(client, mock_oauth):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "CalQ API"
    assert body["authenticated"] is False
    assert body["reminders_armed"] is False
    mock_oauth.is_authenticated.assert_called_once_with()


def test_list_commands(client):
    actions = client.get("/api/commands").json()["actions"]

    assert "check-auth" in actions
    assert "get-view" in actions


def test_run_command(client):
    response = client.post("/api/commands/check-credentials")

    assert response.status_code == 200
    assert response.json() == {"success": True, "hasCredentials": False, "clientId": ""}


def test_run_command_with_object_body(client):
    response = client.post(
        "/api/commands/save-google-credentials",
        json={"clientId": "my-id", "clientSecret": "my-secret"},
    )

    assert response.json() == {"success": True}
    assert client.post("/api/commands/check-credentials").json()["hasCredentials"] is True


def test_run_command_with_list_body(client):
    response = client.post("/api/commands/save-selected-calendars", json=["a", "b"])

    assert response.json()["calendarIds"] == ["a", "b"]


def test_failure_is_a_200_result(client):
    response = client.post("/api/commands/get-view", json={"view": "year"})

    assert response.status_code == 200
    assert response.json()["error_type"] == "invalid_request"


def test_unknown_command_is_404(client):
    response = client.post("/api/commands/format-disk")

    assert response.status_code == 404
    assert response.json()["detail"] == "Unknown command: format-disk"


def test_malformed_json_is_422(client):
    response = client.post(
        "/api/commands/check-auth",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 422
    assert "Invalid request format" in response.json()["detail"]


def test_build_dispatcher_wires_real_components(db_path, encryption_key, monkeypatch):
    monkeypatch.setenv("CALQ_ENCRYPTION_KEY", encryption_key.decode())

    dispatcher = build_dispatcher(db_path)

    assert dispatcher.dispatch("check-auth") == {"success": True, "isAuthenticated": False}
    assert dispatcher.dispatch("get-email-settings")["armed"] is False


def test_main_arms_from_stored_reminders(dispatcher, settings_store):
    settings_store.save_reminder_config(ReminderConfig(enabled=True, morning_time="06:30"))
    seen = {}

    def fake_run(app, host, port):
        seen["times"] = dispatcher.scheduler.job_times()

    with (
        patch.multiple(
            "calq.api.app",
            load_dotenv=DEFAULT,
            configure_file_logging=DEFAULT,
            init_database=DEFAULT,
            validate_schema=DEFAULT,
        ),
        patch("calq.api.app.build_dispatcher", return_value=dispatcher),
        patch("calq.api.app.uvicorn.run", side_effect=fake_run),
    ):
        main()

    assert seen["times"] == {"digest-morning": "06:30", "digest-evening": "19:00"}
    assert not dispatcher.scheduler.scheduler.running
