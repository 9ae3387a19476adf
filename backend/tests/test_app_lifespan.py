import pytest

from replay import main
from replay.platform import redis as redis_module
from replay.platform.config import settings
from replay.platform.db import session as db_session
from replay.platform.storage.database import DatabaseReplyStore
from replay.platform.storage.memory import MemoryReplyStore


class _FakeRedis:
    def __init__(self) -> None:
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


def test_store_follows_storage_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "storage_backend", "memory")
    assert isinstance(main.store_from_settings(), MemoryReplyStore)

    monkeypatch.setattr(settings, "storage_backend", "database")
    monkeypatch.setattr(db_session, "_engine", None)
    monkeypatch.setattr(db_session, "_session_factory", None)
    assert isinstance(main.store_from_settings(), DatabaseReplyStore)


@pytest.mark.asyncio
async def test_shutdown_closes_shared_clients(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeRedis()
    monkeypatch.setattr(redis_module, "_redis", fake)
    monkeypatch.setattr(db_session, "_engine", None)

    app = main.create_app(store=MemoryReplyStore())
    async with main.lifespan(app):
        assert redis_module.get_redis() is fake

    assert fake.closed is True
    assert redis_module._redis is None
