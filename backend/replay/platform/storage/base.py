from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class UserRecord:
    id: str
    wallet_address: str
    display_name: str
    created_at: datetime


@dataclass(frozen=True)
class ReplyRecord:
    id: str
    post_id: str
    author_id: str
    content: str
    tx_id: str
    amount: str
    created_at: datetime
    author: UserRecord | None = None


@dataclass(frozen=True)
class PostRecord:
    id: str
    author_id: str
    content: str
    created_at: datetime
    author: UserRecord | None = None
    reply_count: int = 0
    total_tips: str = "0"
    replies: list[ReplyRecord] = field(default_factory=list)


class ReplyStore(Protocol):
    """Storage collaborator used by the API.

    Implementations raise StorageError when the backend fails and
    DuplicateTransactionError when add_reply sees a tx id that is already stored.
    """

    async def ping(self) -> bool: ...

    async def get_posts(self) -> list[PostRecord]: ...

    async def get_post(self, post_id: str) -> PostRecord | None: ...

    async def create_post(self, author_id: str, content: str) -> PostRecord: ...

    async def get_or_create_user(self, wallet_address: str) -> UserRecord: ...

    async def add_reply(
        self,
        post_id: str,
        author_id: str,
        content: str,
        tx_id: str,
        amount: str,
    ) -> ReplyRecord: ...

    async def get_replies(self, post_id: str) -> list[ReplyRecord]: ...

    async def get_reply_by_tx(self, tx_id: str) -> ReplyRecord | None: ...


def default_display_name(wallet_address: str) -> str:
    return f"{wallet_address[:6]}...{wallet_address[-4:]}"
