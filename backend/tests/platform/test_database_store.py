import os
import asyncio
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from replay.platform.errors import DuplicateTransactionError
from replay.platform.storage.database import DatabaseReplyStore

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


@pytest.mark.asyncio
async def test_database_store_enforces_one_reply_per_tx() -> None:
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set")

    engine = create_async_engine(database_url, pool_pre_ping=True)
    try:
        async with engine.begin() as connection:
            await connection.execute(text("DROP SCHEMA IF EXISTS public CASCADE"))
            await connection.execute(text("CREATE SCHEMA public"))

        await asyncio.to_thread(command.upgrade, Config(str(ALEMBIC_INI)), "head")

        store = DatabaseReplyStore(async_sessionmaker(engine, expire_on_commit=False))
        assert await store.ping() is True

        author = await store.get_or_create_user("0x00000000000000000000000000000000000000AA")
        same = await store.get_or_create_user("0x00000000000000000000000000000000000000aa")
        assert same.id == author.id

        post = await store.create_post(author.id, "first post")
        reply = await store.add_reply(post.id, author.id, "paid reply", "0xtx1", "20000")

        with pytest.raises(DuplicateTransactionError):
            await store.add_reply(post.id, author.id, "again", "0xtx1", "20000")

        assert (await store.get_reply_by_tx("0xtx1")).id == reply.id

        posts = await store.get_posts()
        assert posts[0].reply_count == 1
        assert posts[0].total_tips == "20000"

        detail = await store.get_post(post.id)
        assert [r.content for r in detail.replies] == ["paid reply"]
    finally:
        await engine.dispose()
