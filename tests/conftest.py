import os
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

# Settings are read at import time, so the environment must be seeded first.
os.environ.update(
    {
        "BOT_TOKEN": "123456:TEST-token",
        "DATABASE_URL": "mongodb://localhost:27017",
        "DB_NAME": "bot",
        "DB_COLLECTION": "users",
        "ONCALL_ADMIN": "555000111",
        "PROJECT_ID": "proj-42",
        "SERVER_PORT": "8080",
        "SUPPORT_CHAT": "@support",
        "FORCE_DOWNTIME": "false",
        "DOWNTIME_DELAY": "60",
    }
)

from downtime_handler.config import settings  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeTransport:
    """In-memory stand-in for the Telegram transport."""

    def __init__(self):
        self.bot_user = SimpleNamespace(id=4242)
        self.running = False
        self.starts = 0
        self.stops = 0
        self.sent = []
        self.alerts = []
        self.membership_callbacks = []
        self.text_callbacks = []

    def on_membership_change(self, callback):
        self.membership_callbacks.append(callback)

    def on_text_message(self, callback):
        self.text_callbacks.append(callback)

    async def start(self, on_start=None):
        self.running = True
        self.starts += 1
        if on_start is not None:
            await on_start(self.bot_user)

    async def stop(self):
        if self.running:
            self.running = False
            self.stops += 1

    async def close(self):
        await self.stop()

    async def send_message(self, chat_id, text):
        self.sent.append((chat_id, text))

    async def send_alert(self, alert):
        self.alerts.append(alert)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def collection():
    coll = AsyncMock()
    coll.update_one.return_value = SimpleNamespace(matched_count=1, modified_count=1)
    return coll


@pytest.fixture
def make_settings():
    def _make(**overrides):
        return settings.model_copy(update=overrides)

    return _make
