from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from intake_bot.config import Settings
from intake_bot.main import create_app
from intake_bot.pipeline import build_pipeline
from intake_bot.services.notion_service import DEFAULT_PROPERTY_SCHEMA
from intake_bot.services.result import TRANSIENT, VALIDATION, Result


@pytest.fixture
def records():
    service = Mock()
    service.create_record = AsyncMock(return_value=Result.success("abc-123"))
    service.get_database_schema = AsyncMock(return_value=None)
    return service


@pytest.fixture
def make_client(telegram, records):
    def _make(**overrides):
        app_settings = Settings(_env_file=None, **overrides)
        pipeline = build_pipeline(app_settings, telegram=telegram, records=records)
        return TestClient(create_app(pipeline)), pipeline

    return _make


class TestCreateTask:
    def test_creates_task(self, make_client, records):
        client, _ = make_client()

        response = client.post("/api/tasks", json={"title": "Buy milk", "properties": {"project": "household-tasks"}})

        assert response.status_code == 201
        assert response.json() == {"status": "success", "message": "Task created successfully", "id": "abc-123"}
        records.create_record.assert_awaited_once_with("Buy milk", {"project": "household-tasks"})

    def test_empty_title_rejected(self, make_client, records):
        client, _ = make_client()

        response = client.post("/api/tasks", json={"title": "  "})

        assert response.status_code == 400
        records.create_record.assert_not_awaited()

    def test_transient_failure_is_bad_gateway(self, make_client, records):
        records.create_record = AsyncMock(return_value=Result.failure("Notion API error: 503", TRANSIENT))
        client, _ = make_client()

        response = client.post("/api/tasks", json={"title": "Buy milk"})

        assert response.status_code == 502

    def test_validation_failure_is_bad_request(self, make_client, records):
        records.create_record = AsyncMock(return_value=Result.failure("Notion API error: 400", VALIDATION))
        client, _ = make_client()

        response = client.post("/api/tasks", json={"title": "Buy milk"})

        assert response.status_code == 400
        assert "Notion API error: 400" in response.json()["detail"]

    def test_invalid_body(self, make_client):
        client, _ = make_client()
        assert client.post("/api/tasks", json={"title": 5, "properties": []}).status_code == 422


class TestProperties:
    def test_default_schema_when_unavailable(self, make_client):
        client, _ = make_client()

        response = client.get("/api/properties")

        assert response.status_code == 200
        assert response.json() == DEFAULT_PROPERTY_SCHEMA

    def test_live_schema_is_simplified(self, make_client, records):
        records.get_database_schema = AsyncMock(
            return_value={
                "Name": {"type": "title", "title": {}},
                "project": {"type": "select", "select": {"options": [{"name": "household-tasks"}]}},
            }
        )
        client, _ = make_client()

        response = client.get("/api/properties")

        assert response.json() == {
            "Name": {"type": "title", "required": True},
            "project": {"type": "select", "options": ["household-tasks"]},
        }


class TestReminderTrigger:
    def test_requires_configured_token(self, make_client):
        client, _ = make_client()
        assert client.post("/reminders/run").status_code == 500

    def test_rejects_wrong_token(self, make_client):
        client, _ = make_client(admin_token="t0ken")
        response = client.post("/reminders/run", headers={"X-Admin-Token": "nope"})
        assert response.status_code == 401

    def test_runs_check(self, make_client):
        client, pipeline = make_client(admin_token="t0ken")
        pipeline.reminders.run_check = AsyncMock(return_value={"checked": 0, "notified": 0})

        response = client.post("/reminders/run", headers={"X-Admin-Token": "t0ken"})

        assert response.status_code == 202
        assert response.json() == {"success": True, "message": "Task check triggered"}
        pipeline.reminders.run_check.assert_awaited_once()
