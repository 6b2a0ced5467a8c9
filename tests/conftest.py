from unittest.mock import AsyncMock, Mock

import pytest

from tests.fakes import FakeRecordStore


@pytest.fixture
def telegram():
    """Mock Telegram service whose calls all succeed."""
    service = Mock()
    service.set_message_reaction = AsyncMock(return_value={"ok": True, "result": True})
    service.send_message = AsyncMock(return_value={"ok": True, "result": {"message_id": 1}})
    service.get_updates = AsyncMock(return_value={"ok": True, "result": []})
    service.set_webhook = AsyncMock(return_value={"ok": True, "result": True})
    service.download_file = AsyncMock(return_value=b"OggS")
    return service


@pytest.fixture
def record_store():
    return FakeRecordStore()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records the requested delays."""
    delays: list[float] = []

    async def _sleep(seconds: float):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:test-token")
    monkeypatch.setenv("NOTION_API_KEY", "secret_test")
    monkeypatch.setenv("NOTION_DATABASE_ID", "db-test")
    monkeypatch.setenv("BACKGROUND_WORKERS_ENABLED", "false")
