from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from replay.platform.config import settings
from replay.platform.deps import get_store
from replay.platform.storage.base import ReplyStore

router = APIRouter(prefix="/health")

VERSION = "0.1.0"


@router.get("")
async def health(store: ReplyStore = Depends(get_store)) -> dict:
    store_ok = await store.ping()
    return {
        "status": "ok" if store_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "store": {"backend": settings.storage_backend, "ok": store_ok},
        "config": {
            "network": settings.x402_network,
            "sellerConfigured": bool(settings.x402_seller_address),
            "facilitatorConfigured": bool(settings.x402_facilitator_url),
            "replyPrice": str(settings.reply_price_minor_units),
        },
    }
