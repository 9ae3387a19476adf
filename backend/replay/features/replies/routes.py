import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from replay.features.posts.schemas import ReplyOut
from replay.features.replies.schemas import ReplyRequest, ReplyResponse
from replay.features.replies.services import AlreadyCommittedError, CommitFailedError, commit_reply
from replay.platform.config import settings
from replay.platform.deps import get_settlement_network, get_store
from replay.platform.errors import ErrorCode, StorageError
from replay.platform.reconciliation import record_commit_failure
from replay.platform.security import Principal, get_current_principal
from replay.platform.services.chain import usdc_minor_units_to_decimal
from replay.platform.services.settlement import SettlementNetwork
from replay.platform.services.verifier import verify_and_settle
from replay.platform.services.x402 import (
    PAYMENT_HEADER,
    PAYMENT_REQUIREMENTS_HEADER,
    PAYMENT_RESPONSE_HEADER,
    PaymentChallenge,
    SettlementReceipt,
    build_402_response,
    build_exact_challenge,
    encode_payment_requirements,
    encode_payment_response,
)
from replay.platform.storage.base import ReplyStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/replies")


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=400, detail=detail)


def _storage_unavailable() -> HTTPException:
    return HTTPException(status_code=503, detail="Storage unavailable")


def _reply_challenge(request: Request) -> PaymentChallenge:
    amount = settings.reply_price_minor_units
    return build_exact_challenge(
        amount=amount,
        resource=request.url.path,
        description=f"Reply fee {usdc_minor_units_to_decimal(amount)} USDC",
    )


@router.post("", status_code=201, response_model=ReplyResponse)
async def create_reply(
    body: ReplyRequest,
    request: Request,
    response: Response,
    principal: Principal = Depends(get_current_principal),
    store: ReplyStore = Depends(get_store),
    network: SettlementNetwork = Depends(get_settlement_network),
):
    if not body.post_id or not body.content or not body.wallet_address:
        raise _bad_request("Missing fields")
    if len(body.content) > settings.reply_max_length:
        raise _bad_request(f"Reply too long (max {settings.reply_max_length} characters)")

    try:
        post = await store.get_post(body.post_id)
    except StorageError as exc:
        raise _storage_unavailable() from exc
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")

    challenge = _reply_challenge(request)
    payment_header = request.headers.get(PAYMENT_HEADER)
    if not payment_header:
        logger.debug("payment required for %s by %s", challenge.resource, principal.subject)
        return build_402_response(challenge)

    outcome = await verify_and_settle(payment_header, challenge, network, payer=body.wallet_address)
    if not outcome.success:
        return JSONResponse(
            status_code=402,
            content={
                "error": outcome.message or "Payment failed",
                "code": outcome.failure_reason.value,
                "requirements": challenge.to_dict(),
            },
            headers={PAYMENT_REQUIREMENTS_HEADER: encode_payment_requirements(challenge)},
        )

    tx_id = outcome.tx_id
    amount = outcome.authorization.value
    receipt_header = encode_payment_response(
        SettlementReceipt(success=True, tx_id=tx_id, network_id=challenge.network)
    )

    try:
        author = await store.get_or_create_user(body.wallet_address)
        reply = await commit_reply(
            store,
            post_id=post.id,
            author_id=author.id,
            content=body.content,
            tx_id=tx_id,
            amount=amount,
        )
    except AlreadyCommittedError as exc:
        content = {
            "error": "Reply already committed for this payment",
            "code": ErrorCode.ALREADY_COMMITTED.value,
            "txId": tx_id,
        }
        if exc.existing is not None:
            content["reply"] = ReplyOut.from_record(exc.existing).model_dump(mode="json", by_alias=True)
        return JSONResponse(status_code=409, content=content, headers={PAYMENT_RESPONSE_HEADER: receipt_header})
    except (CommitFailedError, StorageError) as exc:
        await record_commit_failure(
            tx_id=tx_id,
            post_id=post.id,
            author_address=body.wallet_address,
            amount=amount,
            reason=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Payment settled but the reply could not be saved; it has been queued for reconciliation",
                "code": ErrorCode.COMMIT_FAILED.value,
                "txId": tx_id,
            },
            headers={PAYMENT_RESPONSE_HEADER: receipt_header},
        )

    response.headers[PAYMENT_RESPONSE_HEADER] = receipt_header
    return ReplyResponse(reply=ReplyOut.from_record(reply), message="Reply posted")
