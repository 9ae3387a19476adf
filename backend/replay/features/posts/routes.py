from fastapi import APIRouter, Depends, HTTPException

from replay.features.posts.schemas import (
    CreatePostRequest,
    CreatePostResponse,
    PostListResponse,
    PostOut,
    PostResponse,
)
from replay.platform.config import settings
from replay.platform.deps import get_store
from replay.platform.errors import StorageError
from replay.platform.security import Principal, get_current_principal
from replay.platform.storage.base import ReplyStore

router = APIRouter(prefix="/posts")


def _storage_unavailable() -> HTTPException:
    return HTTPException(status_code=503, detail="Storage unavailable")


@router.get("", response_model=PostListResponse)
async def list_posts(store: ReplyStore = Depends(get_store)) -> PostListResponse:
    try:
        posts = await store.get_posts()
    except StorageError as exc:
        raise _storage_unavailable() from exc
    return PostListResponse(posts=[PostOut.from_record(p) for p in posts])


@router.post("", status_code=201, response_model=CreatePostResponse)
async def create_post(
    body: CreatePostRequest,
    principal: Principal = Depends(get_current_principal),
    store: ReplyStore = Depends(get_store),
) -> CreatePostResponse:
    wallet_address = body.wallet_address or principal.wallet_address
    if not body.content or not wallet_address:
        raise HTTPException(status_code=400, detail="Missing required fields: content, walletAddress")
    if len(body.content) > settings.post_max_length:
        raise HTTPException(status_code=400, detail=f"Post too long (max {settings.post_max_length} characters)")

    try:
        author = await store.get_or_create_user(wallet_address)
        post = await store.create_post(author.id, body.content)
    except StorageError as exc:
        raise _storage_unavailable() from exc

    return CreatePostResponse(post=PostOut.from_record(post), message="Post created successfully")


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, store: ReplyStore = Depends(get_store)) -> PostResponse:
    try:
        post = await store.get_post(post_id)
    except StorageError as exc:
        raise _storage_unavailable() from exc
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return PostResponse(post=PostOut.from_record(post))
