from __future__ import annotations

from uuid import UUID

from sqlalchemy import cast, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.types import Numeric

from replay.platform.db.models import Post, Reply, User
from replay.platform.errors import DuplicateTransactionError, StorageError
from replay.platform.storage.base import PostRecord, ReplyRecord, UserRecord, default_display_name


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except (TypeError, ValueError):
        return False
    return True


def _user_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        wallet_address=row.wallet_address,
        display_name=row.display_name or default_display_name(row.wallet_address),
        created_at=row.created_at,
    )


def _reply_record(row: Reply, author: User | None = None) -> ReplyRecord:
    return ReplyRecord(
        id=row.id,
        post_id=row.post_id,
        author_id=row.author_id,
        content=row.content,
        tx_id=row.payment_tx_hash,
        amount=row.payment_amount,
        created_at=row.created_at,
        author=_user_record(author) if author is not None else None,
    )


class DatabaseReplyStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    def _post_stats(self):
        return (
            select(
                Reply.post_id,
                func.count(Reply.id).label("reply_count"),
                func.coalesce(func.sum(cast(Reply.payment_amount, Numeric)), 0).label("total_tips"),
            )
            .group_by(Reply.post_id)
            .subquery()
        )

    async def get_posts(self) -> list[PostRecord]:
        stats = self._post_stats()
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Post, User, stats.c.reply_count, stats.c.total_tips)
                    .join(User, User.id == Post.author_id)
                    .outerjoin(stats, stats.c.post_id == Post.id)
                    .order_by(Post.created_at.desc())
                    .limit(100)
                )
                rows = result.all()
        except SQLAlchemyError as exc:
            raise StorageError("failed to load posts") from exc

        return [
            PostRecord(
                id=post.id,
                author_id=post.author_id,
                content=post.content,
                created_at=post.created_at,
                author=_user_record(author),
                reply_count=int(reply_count or 0),
                total_tips=str(int(total_tips or 0)),
            )
            for post, author, reply_count, total_tips in rows
        ]

    async def get_post(self, post_id: str) -> PostRecord | None:
        if not _is_uuid(post_id):
            return None
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Post, User).join(User, User.id == Post.author_id).where(Post.id == post_id)
                )
                row = result.one_or_none()
                if row is None:
                    return None
                post, author = row
                replies = await self._load_replies(session, post.id)
        except SQLAlchemyError as exc:
            raise StorageError("failed to load post") from exc

        return PostRecord(
            id=post.id,
            author_id=post.author_id,
            content=post.content,
            created_at=post.created_at,
            author=_user_record(author),
            reply_count=len(replies),
            total_tips=str(sum(int(r.amount) for r in replies)),
            replies=replies,
        )

    async def create_post(self, author_id: str, content: str) -> PostRecord:
        try:
            async with self._session_factory() as session:
                author = await session.get(User, author_id)
                if author is None:
                    raise StorageError("author not found")
                row = Post(author_id=author_id, content=content)
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as exc:
            raise StorageError("failed to create post") from exc

        return PostRecord(
            id=row.id,
            author_id=row.author_id,
            content=row.content,
            created_at=row.created_at,
            author=_user_record(author),
        )

    async def get_or_create_user(self, wallet_address: str) -> UserRecord:
        normalized = wallet_address.lower()
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(User).where(User.wallet_address == normalized))
                user = result.scalar_one_or_none()
                if user is not None:
                    return _user_record(user)

                user = User(wallet_address=normalized, display_name=default_display_name(normalized))
                session.add(user)
                try:
                    await session.commit()
                except IntegrityError:
                    # Lost a race with a concurrent insert for the same wallet.
                    await session.rollback()
                    result = await session.execute(select(User).where(User.wallet_address == normalized))
                    return _user_record(result.scalar_one())
                await session.refresh(user)
                return _user_record(user)
        except SQLAlchemyError as exc:
            raise StorageError("failed to resolve user") from exc

    async def add_reply(
        self,
        post_id: str,
        author_id: str,
        content: str,
        tx_id: str,
        amount: str,
    ) -> ReplyRecord:
        try:
            async with self._session_factory() as session:
                row = Reply(
                    post_id=post_id,
                    author_id=author_id,
                    content=content,
                    payment_tx_hash=tx_id,
                    payment_amount=amount,
                )
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    existing = await session.execute(select(Reply.id).where(Reply.payment_tx_hash == tx_id))
                    if existing.scalar_one_or_none() is not None:
                        raise DuplicateTransactionError(tx_id) from exc
                    raise StorageError("failed to insert reply") from exc
                await session.refresh(row)
                author = await session.get(User, author_id)
        except SQLAlchemyError as exc:
            raise StorageError("failed to insert reply") from exc

        return _reply_record(row, author)

    async def _load_replies(self, session: AsyncSession, post_id: str) -> list[ReplyRecord]:
        result = await session.execute(
            select(Reply, User)
            .join(User, User.id == Reply.author_id)
            .where(Reply.post_id == post_id)
            .order_by(Reply.created_at.asc())
        )
        return [_reply_record(reply, author) for reply, author in result.all()]

    async def get_replies(self, post_id: str) -> list[ReplyRecord]:
        if not _is_uuid(post_id):
            return []
        try:
            async with self._session_factory() as session:
                return await self._load_replies(session, post_id)
        except SQLAlchemyError as exc:
            raise StorageError("failed to load replies") from exc

    async def get_reply_by_tx(self, tx_id: str) -> ReplyRecord | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Reply, User).join(User, User.id == Reply.author_id).where(Reply.payment_tx_hash == tx_id)
                )
                row = result.one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError("failed to load reply") from exc

        if row is None:
            return None
        reply, author = row
        return _reply_record(reply, author)
