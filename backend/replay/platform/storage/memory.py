from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from replay.platform.errors import DuplicateTransactionError, StorageError
from replay.platform.storage.base import PostRecord, ReplyRecord, UserRecord, default_display_name


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_DEMO_USERS = [
    ("user-1", "0x1234567890abcdef1234567890abcdef12345678", "alice.eth", 3 * 24),
    ("user-2", "0xabcdef1234567890abcdef1234567890abcdef12", "bob_builder", 2 * 24),
    ("user-3", "0xdeadbeef1234567890abcdef1234567890abcdef", "crypto_curious", 24),
]

_DEMO_POSTS = [
    (
        "post-1",
        "user-1",
        "Just discovered atomic payments on Movement. One tap, payment clears, reply appears. "
        "No gas estimation popups, no pending states.",
        2,
    ),
    (
        "post-2",
        "user-2",
        "Building with x402 on Movement EVM. The HTTP 402, payment, retry pattern is elegant. "
        "Your reply doesn't exist until you pay.",
        5,
    ),
    (
        "post-3",
        "user-3",
        "The embedded wallet experience is seamless. Sign in with email, wallet auto-created, payments work.",
        8,
    ),
]

_DEMO_REPLIES = [
    (
        "reply-1",
        "post-1",
        "user-2",
        "Completely agree! The one-tap payment flow removes so much friction.",
        "0x1234...abcd",
        60,
    ),
    (
        "reply-2",
        "post-1",
        "user-3",
        "Economic skin in the game means thoughtful replies only.",
        "0x5678...efgh",
        30,
    ),
    (
        "reply-3",
        "post-2",
        "user-1",
        "The elegance of HTTP 402 is underrated.",
        "0x9abc...ijkl",
        45,
    ),
]

_DEMO_REPLY_AMOUNT = "20000"


class MemoryReplyStore:
    """Process-local store; swapped for DatabaseReplyStore in production."""

    def __init__(self, *, seed: bool = False) -> None:
        self._users: dict[str, UserRecord] = {}
        self._posts: dict[str, PostRecord] = {}
        self._replies: dict[str, ReplyRecord] = {}
        self._replies_by_tx: dict[str, str] = {}
        self._lock = asyncio.Lock()
        if seed:
            self._seed()

    def _seed(self) -> None:
        now = _utcnow()
        for user_id, wallet, name, hours_ago in _DEMO_USERS:
            self._users[user_id] = UserRecord(
                id=user_id,
                wallet_address=wallet,
                display_name=name,
                created_at=now - timedelta(hours=hours_ago),
            )
        for post_id, author_id, content, hours_ago in _DEMO_POSTS:
            self._posts[post_id] = PostRecord(
                id=post_id,
                author_id=author_id,
                content=content,
                created_at=now - timedelta(hours=hours_ago),
            )
        for reply_id, post_id, author_id, content, tx_id, minutes_ago in _DEMO_REPLIES:
            self._replies[reply_id] = ReplyRecord(
                id=reply_id,
                post_id=post_id,
                author_id=author_id,
                content=content,
                tx_id=tx_id,
                amount=_DEMO_REPLY_AMOUNT,
                created_at=now - timedelta(minutes=minutes_ago),
            )
            self._replies_by_tx[tx_id] = reply_id

    async def ping(self) -> bool:
        return True

    def _with_author(self, reply: ReplyRecord) -> ReplyRecord:
        return replace(reply, author=self._users.get(reply.author_id))

    def _replies_for(self, post_id: str) -> list[ReplyRecord]:
        rows = [r for r in self._replies.values() if r.post_id == post_id]
        return [self._with_author(r) for r in sorted(rows, key=lambda r: r.created_at)]

    def _hydrate(self, post: PostRecord, *, with_replies: bool) -> PostRecord:
        replies = self._replies_for(post.id)
        total = sum(int(r.amount) for r in replies)
        return replace(
            post,
            author=self._users.get(post.author_id),
            reply_count=len(replies),
            total_tips=str(total),
            replies=replies if with_replies else [],
        )

    async def get_posts(self) -> list[PostRecord]:
        posts = sorted(self._posts.values(), key=lambda p: p.created_at, reverse=True)
        return [self._hydrate(p, with_replies=False) for p in posts]

    async def get_post(self, post_id: str) -> PostRecord | None:
        post = self._posts.get(post_id)
        if post is None:
            return None
        return self._hydrate(post, with_replies=True)

    async def create_post(self, author_id: str, content: str) -> PostRecord:
        if author_id not in self._users:
            raise StorageError("author not found")
        post = PostRecord(id=str(uuid4()), author_id=author_id, content=content, created_at=_utcnow())
        self._posts[post.id] = post
        return self._hydrate(post, with_replies=True)

    async def get_or_create_user(self, wallet_address: str) -> UserRecord:
        normalized = wallet_address.lower()
        async with self._lock:
            for user in self._users.values():
                if user.wallet_address.lower() == normalized:
                    return user
            user = UserRecord(
                id=str(uuid4()),
                wallet_address=normalized,
                display_name=default_display_name(normalized),
                created_at=_utcnow(),
            )
            self._users[user.id] = user
            return user

    async def add_reply(
        self,
        post_id: str,
        author_id: str,
        content: str,
        tx_id: str,
        amount: str,
    ) -> ReplyRecord:
        async with self._lock:
            if post_id not in self._posts:
                raise StorageError("post not found")
            if author_id not in self._users:
                raise StorageError("author not found")
            if tx_id in self._replies_by_tx:
                raise DuplicateTransactionError(tx_id)

            reply = ReplyRecord(
                id=str(uuid4()),
                post_id=post_id,
                author_id=author_id,
                content=content,
                tx_id=tx_id,
                amount=amount,
                created_at=_utcnow(),
            )
            self._replies[reply.id] = reply
            self._replies_by_tx[tx_id] = reply.id
            return self._with_author(reply)

    async def get_replies(self, post_id: str) -> list[ReplyRecord]:
        return self._replies_for(post_id)

    async def get_reply_by_tx(self, tx_id: str) -> ReplyRecord | None:
        reply_id = self._replies_by_tx.get(tx_id)
        if reply_id is None:
            return None
        return self._with_author(self._replies[reply_id])
