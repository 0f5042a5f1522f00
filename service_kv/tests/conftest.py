"""
Shared fixtures for Key-Value Gateway tests.
"""

import asyncio
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from shared.config import Settings
from service_kv.app.context import check_deadline
from service_kv.app.main import create_app
from service_kv.app.store import KeyValueStore

ADMIN_TOKEN = "test-admin-token"
ADMIN_HEADERS = {"Authorization": f"Bearer {ADMIN_TOKEN}"}


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis``.

    Covers the commands the store issues. ``delay`` and ``gate`` slow every
    command down before it touches the data; ``fail_with`` makes every
    command raise.
    """

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.calls: List[str] = []
        self.delay: float = 0.0
        self.gate: Optional[asyncio.Event] = None
        self.fail_with: Optional[Exception] = None
        self.closed = False

    async def _command(self, name: str) -> None:
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    async def get(self, key):
        await self._command("GET")
        return self.data.get(key)

    async def set(self, key, value):
        await self._command("SET")
        self.data[key] = bytes(value)
        return True

    async def delete(self, key):
        await self._command("DEL")
        return 1 if self.data.pop(key, None) is not None else 0

    async def keys(self, pattern="*"):
        await self._command("KEYS")
        return [key.encode("utf-8") for key in self.data]

    async def flushall(self):
        await self._command("FLUSHALL")
        self.data.clear()
        return True

    async def ping(self):
        await self._command("PING")
        return True

    async def aclose(self, close_connection_pool=None):
        self.closed = True


@pytest.fixture
def fake_redis():
    """Fresh in-memory Redis double."""
    return FakeRedis()


@pytest.fixture
def settings():
    """Small limits so boundaries are cheap to hit."""
    return Settings(
        _env_file=None,
        concurrency_limit=4,
        timeout_in_millis=2000,
        max_payload_bytes=64,
        admin_token=ADMIN_TOKEN,
        compression_min_size=16,
    )


@pytest.fixture
def store(fake_redis):
    """KeyValueStore wired to the Redis double."""
    return KeyValueStore("redis://test:6379/0", client=fake_redis, deadline_check=check_deadline)


@pytest.fixture
def app(settings, store):
    """Create FastAPI app instance."""
    return create_app(settings, store)


@pytest.fixture
def service(app):
    """The KeyValueService behind the app."""
    return app.state.kv_service


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)
