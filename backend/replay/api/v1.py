from fastapi import APIRouter

from replay.features.health.routes import router as health_router
from replay.features.posts.routes import router as posts_router
from replay.features.replies.routes import router as replies_router

api_v1_router = APIRouter()

api_v1_router.include_router(health_router, tags=["health"])
api_v1_router.include_router(posts_router, tags=["posts"])
api_v1_router.include_router(replies_router, tags=["replies"])
