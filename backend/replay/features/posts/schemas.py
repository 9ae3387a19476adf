from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from replay.platform.storage.base import PostRecord, ReplyRecord, UserRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserOut(CamelModel):
    id: str
    wallet_address: str
    display_name: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserOut":
        return cls(
            id=record.id,
            wallet_address=record.wallet_address,
            display_name=record.display_name,
            created_at=record.created_at,
        )


class ReplyOut(CamelModel):
    id: str
    post_id: str
    author_id: str
    author: UserOut | None
    content: str
    payment_tx_hash: str
    payment_amount: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: ReplyRecord) -> "ReplyOut":
        return cls(
            id=record.id,
            post_id=record.post_id,
            author_id=record.author_id,
            author=UserOut.from_record(record.author) if record.author else None,
            content=record.content,
            payment_tx_hash=record.tx_id,
            payment_amount=record.amount,
            created_at=record.created_at,
        )


class PostOut(CamelModel):
    id: str
    author_id: str
    author: UserOut | None
    content: str
    reply_count: int
    total_tips: str
    created_at: datetime
    replies: list[ReplyOut] = []

    @classmethod
    def from_record(cls, record: PostRecord) -> "PostOut":
        return cls(
            id=record.id,
            author_id=record.author_id,
            author=UserOut.from_record(record.author) if record.author else None,
            content=record.content,
            reply_count=record.reply_count,
            total_tips=record.total_tips,
            created_at=record.created_at,
            replies=[ReplyOut.from_record(r) for r in record.replies],
        )


class PostListResponse(CamelModel):
    posts: list[PostOut]


class PostResponse(CamelModel):
    post: PostOut


class CreatePostRequest(CamelModel):
    content: str | None = None
    wallet_address: str | None = None


class CreatePostResponse(CamelModel):
    post: PostOut
    message: str
