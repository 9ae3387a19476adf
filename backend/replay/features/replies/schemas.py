from replay.features.posts.schemas import CamelModel, ReplyOut


class ReplyRequest(CamelModel):
    post_id: str | None = None
    content: str | None = None
    wallet_address: str | None = None


class ReplyResponse(CamelModel):
    reply: ReplyOut
    message: str
