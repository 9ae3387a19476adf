from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from replay.platform.config import settings
from replay.platform.errors import PaymentFailureReason
from replay.platform.services.chain import ChainClient
from replay.platform.services.settlement import SettlementNetwork
from replay.platform.services.x402 import (
    EXACT_SCHEME,
    DecodeError,
    PaymentChallenge,
    PaymentEnvelope,
    TransferAuthorization,
    decode_payment_envelope,
)

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_NONCE_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_SIGNATURE_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2})+$")
_UINT_RE = re.compile(r"^(0|[1-9][0-9]{0,77})$")
UINT256_MAX = 2**256 - 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SettlementOutcome:
    success: bool
    tx_id: str | None = None
    failure_reason: PaymentFailureReason | None = None
    message: str | None = None
    authorization: TransferAuthorization | None = None

    @classmethod
    def failed(cls, reason: PaymentFailureReason, message: str) -> "SettlementOutcome":
        return cls(success=False, failure_reason=reason, message=message)


def _check_structure(
    envelope: PaymentEnvelope,
    challenge: PaymentChallenge,
    now: int,
    payer: str | None = None,
) -> str | None:
    auth = envelope.authorization
    if envelope.scheme != EXACT_SCHEME:
        return f"unsupported scheme {envelope.scheme!r}"
    if envelope.network != challenge.network:
        return f"network mismatch: expected {challenge.network}"
    if not isinstance(envelope.signature, str) or not _SIGNATURE_RE.match(envelope.signature):
        return "signature must be a hex string"

    for name, value in (("from", auth.from_address), ("to", auth.to_address)):
        if not isinstance(value, str) or not _ADDRESS_RE.match(value):
            return f"authorization.{name} must be an address"
    if not isinstance(auth.nonce, str) or not _NONCE_RE.match(auth.nonce):
        return "authorization.nonce must be 32 bytes of hex"
    for name, value in (
        ("value", auth.value),
        ("validAfter", auth.valid_after),
        ("validBefore", auth.valid_before),
    ):
        if not isinstance(value, str) or not _UINT_RE.fullmatch(value):
            return f"authorization.{name} must be an unsigned integer string"
        if int(value) > UINT256_MAX:
            return f"authorization.{name} exceeds uint256"

    if auth.to_address.lower() != challenge.pay_to.lower():
        return "authorization.to does not match payTo"
    if payer is not None and auth.from_address.lower() != payer.lower():
        return "authorization.from does not match the paying wallet"
    if int(auth.valid_before) > now + challenge.max_timeout_seconds + settings.x402_clock_skew_seconds:
        return "authorization validity exceeds maxTimeoutSeconds"
    return None


def _signature_matches(envelope: PaymentEnvelope, challenge: PaymentChallenge) -> bool:
    try:
        signer = ChainClient.from_challenge(challenge).recover_authorizer(envelope.authorization, envelope.signature)
    except Exception as exc:
        logger.info("signature recovery failed: %s", exc)
        return False
    return signer.lower() == envelope.authorization.from_address.lower()


async def verify_and_settle(
    header_value: str,
    challenge: PaymentChallenge,
    network: SettlementNetwork,
    *,
    now: int | None = None,
    verify_signature: bool | None = None,
    payer: str | None = None,
) -> SettlementOutcome:
    """Run every payment gate in order and settle only if all of them pass.

    Returns a SettlementOutcome; never raises for a bad envelope or a failed
    settlement. When ``payer`` is given, authorization.from must be that wallet.
    The settlement call is bounded by the challenge timeout.
    """
    current = int(_utcnow().timestamp()) if now is None else now

    try:
        envelope = decode_payment_envelope(header_value)
    except DecodeError as exc:
        logger.info("payment rejected: undecodable envelope (%s)", exc)
        return SettlementOutcome.failed(PaymentFailureReason.INVALID_PAYLOAD, str(exc))

    problem = _check_structure(envelope, challenge, current, payer)
    if problem is not None:
        logger.info("payment rejected: %s", problem)
        return SettlementOutcome.failed(PaymentFailureReason.INVALID_PAYLOAD, problem)

    auth = envelope.authorization
    if int(auth.value) < int(challenge.max_amount_required):
        logger.info("payment rejected: value %s below %s", auth.value, challenge.max_amount_required)
        return SettlementOutcome.failed(
            PaymentFailureReason.INSUFFICIENT_AMOUNT,
            f"value {auth.value} is below required {challenge.max_amount_required}",
        )

    if current < int(auth.valid_after):
        return SettlementOutcome.failed(PaymentFailureReason.NOT_YET_VALID, "authorization is not valid yet")
    if current > int(auth.valid_before):
        return SettlementOutcome.failed(PaymentFailureReason.EXPIRED, "authorization has expired")

    check_signature = settings.x402_verify_signatures if verify_signature is None else verify_signature
    if check_signature and not _signature_matches(envelope, challenge):
        logger.info("payment rejected: signature does not match %s", auth.from_address)
        return SettlementOutcome.failed(PaymentFailureReason.INVALID_PAYLOAD, "signature does not match authorization.from")

    try:
        result = await asyncio.wait_for(
            network.settle(auth, envelope.signature, challenge=challenge),
            timeout=challenge.max_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning("settlement timed out after %ss for %s", challenge.max_timeout_seconds, auth.from_address)
        return SettlementOutcome.failed(PaymentFailureReason.SETTLEMENT_FAILED, "settlement timed out")
    except Exception as exc:
        logger.warning("settlement network error for %s: %s", auth.from_address, exc)
        return SettlementOutcome.failed(PaymentFailureReason.SETTLEMENT_FAILED, "settlement network error")

    if not result.ok or not result.tx_id:
        logger.warning("settlement rejected for %s: %s", auth.from_address, result.reason)
        return SettlementOutcome.failed(PaymentFailureReason.SETTLEMENT_FAILED, result.reason or "settlement rejected")

    logger.info("payment settled from=%s value=%s tx=%s", auth.from_address, auth.value, result.tx_id)
    return SettlementOutcome(success=True, tx_id=result.tx_id, authorization=auth)
