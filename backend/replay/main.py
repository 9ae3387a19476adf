import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from replay.api.v1 import api_v1_router
from replay.platform.config import settings
from replay.platform.db.session import dispose_engine, get_session_factory
from replay.platform.logs import configure_logging
from replay.platform.redis import close_redis
from replay.platform.services.settlement import SettlementNetwork, settlement_network_from_settings
from replay.platform.services.x402 import PAYMENT_REQUIREMENTS_HEADER, PAYMENT_RESPONSE_HEADER
from replay.platform.storage.base import ReplyStore
from replay.platform.storage.database import DatabaseReplyStore
from replay.platform.storage.memory import MemoryReplyStore

logger = logging.getLogger(__name__)


def store_from_settings() -> ReplyStore:
    if settings.storage_backend == "database":
        return DatabaseReplyStore(get_session_factory())
    return MemoryReplyStore(seed=settings.seed_demo_data)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "starting with store=%s network=%s settlement=%s",
        settings.storage_backend,
        settings.x402_network,
        "facilitator" if settings.x402_facilitator_url else "simulated",
    )
    yield
    await close_redis()
    await dispose_engine()


def create_app(
    store: ReplyStore | None = None,
    settlement_network: SettlementNetwork | None = None,
) -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(title="Replay API", lifespan=lifespan)
    app.state.store = store if store is not None else store_from_settings()
    app.state.settlement_network = (
        settlement_network if settlement_network is not None else settlement_network_from_settings()
    )

    allowed_origins = [o.strip() for o in str(settings.allowed_origins).split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[PAYMENT_REQUIREMENTS_HEADER, PAYMENT_RESPONSE_HEADER],
    )

    app.include_router(api_v1_router, prefix="/api/v1")
    return app


app = create_app()
