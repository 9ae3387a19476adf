"""Record payments that settled on-chain but never produced a reply."""

import json
import logging
from datetime import datetime, timezone

from replay.platform.config import settings
from replay.platform.redis import get_redis

logger = logging.getLogger(__name__)


async def record_commit_failure(
    *,
    tx_id: str,
    post_id: str,
    author_address: str,
    amount: str,
    reason: str,
) -> bool:
    """Log the event and queue it for an operator; True if it reached the queue."""
    event = {
        "event": "reconciliation_required",
        "txId": tx_id,
        "postId": post_id,
        "authorAddress": author_address,
        "amount": amount,
        "reason": reason,
        "recordedAt": datetime.now(timezone.utc).isoformat(),
    }
    logger.error(
        "reconciliation_required tx=%s post=%s author=%s amount=%s reason=%s",
        tx_id,
        post_id,
        author_address,
        amount,
        reason,
    )

    try:
        redis = get_redis()
        await redis.rpush(settings.reconciliation_queue_key, json.dumps(event, separators=(",", ":")))
    except Exception as exc:
        logger.warning("could not queue reconciliation event for tx=%s: %s", tx_id, exc)
        return False
    return True
