from __future__ import annotations

import logging
import secrets
import time
from typing import Protocol

from eth_account import Account

from replay.platform.services.chain import ChainClient
from replay.platform.services.x402 import (
    PaymentChallenge,
    PaymentEnvelope,
    TransferAuthorization,
    encode_payment_envelope,
)

logger = logging.getLogger(__name__)


class PaymentSigner(Protocol):
    async def sign(self, challenge: PaymentChallenge) -> str | None:
        """Return an encoded X-PAYMENT envelope, or None to cancel."""
        ...


def new_nonce() -> str:
    return "0x" + secrets.token_hex(32)


class EthAccountSigner:
    """Signs TransferWithAuthorization messages with a local private key."""

    def __init__(self, private_key: str, *, valid_after_offset: int = 5) -> None:
        self._private_key = private_key
        self._valid_after_offset = valid_after_offset
        self.address = Account.from_key(private_key).address

    def build_envelope(self, challenge: PaymentChallenge, *, now: int | None = None) -> PaymentEnvelope:
        current = int(time.time()) if now is None else now
        authorization = TransferAuthorization(
            from_address=self.address,
            to_address=challenge.pay_to,
            value=challenge.max_amount_required,
            valid_after=str(max(current - self._valid_after_offset, 0)),
            valid_before=str(current + challenge.max_timeout_seconds),
            nonce=new_nonce(),
        )
        signature = ChainClient.from_challenge(challenge).sign_authorization(authorization, self._private_key)
        return PaymentEnvelope(network=challenge.network, signature=signature, authorization=authorization)

    async def sign(self, challenge: PaymentChallenge) -> str | None:
        envelope = self.build_envelope(challenge)
        logger.debug("signed authorization nonce=%s for %s", envelope.authorization.nonce, challenge.resource)
        return encode_payment_envelope(envelope)
