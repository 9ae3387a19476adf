import logging

from replay.platform.errors import DuplicateTransactionError, StorageError
from replay.platform.storage.base import ReplyRecord, ReplyStore

logger = logging.getLogger(__name__)


class AlreadyCommittedError(Exception):
    """A reply for this settlement transaction already exists."""

    def __init__(self, tx_id: str, existing: ReplyRecord | None) -> None:
        super().__init__(f"reply already committed for transaction {tx_id}")
        self.tx_id = tx_id
        self.existing = existing


class CommitFailedError(Exception):
    """Settlement succeeded but the reply could not be persisted."""

    def __init__(self, tx_id: str, reason: str) -> None:
        super().__init__(f"reply commit failed for settled transaction {tx_id}: {reason}")
        self.tx_id = tx_id
        self.reason = reason


async def commit_reply(
    store: ReplyStore,
    *,
    post_id: str,
    author_id: str,
    content: str,
    tx_id: str,
    amount: str,
) -> ReplyRecord:
    """Persist the reply for a settled payment, at most once per tx id.

    The store's unique constraint on the tx id is the only guard against
    concurrent duplicates; this function only translates its outcome.
    """
    try:
        reply = await store.add_reply(post_id, author_id, content, tx_id, amount)
    except DuplicateTransactionError as exc:
        logger.warning("duplicate reply commit for tx=%s", tx_id)
        try:
            existing = await store.get_reply_by_tx(tx_id)
        except StorageError:
            existing = None
        raise AlreadyCommittedError(tx_id, existing) from exc
    except StorageError as exc:
        raise CommitFailedError(tx_id, str(exc)) from exc

    logger.info("reply committed id=%s post=%s tx=%s", reply.id, post_id, tx_id)
    return reply
