from __future__ import annotations

import logging
from typing import Any

import httpx

from replay.client.signer import PaymentSigner
from replay.client.state import PaymentStateMachine, PaymentStatus
from replay.client.transport import (
    NoRequirementsError,
    PaymentCancelledError,
    X402ClientError,
    X402Transport,
    parse_payment_response,
)
from replay.platform.services.x402 import PaymentChallenge, SettlementReceipt

logger = logging.getLogger(__name__)


class PaymentFailedError(X402ClientError):
    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class PaidReplyClient:
    """Posts replies through the x402 handshake and keeps a status machine in step."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        signer: PaymentSigner,
        *,
        access_token: str,
        state: PaymentStateMachine | None = None,
        replies_path: str = "/api/v1/replies",
    ) -> None:
        self._transport = X402Transport(http)
        self._signer = signer
        self._access_token = access_token
        self._replies_path = replies_path
        self.state = state or PaymentStateMachine()
        self.last_receipt: SettlementReceipt | None = None

    @property
    def requests_sent(self) -> int:
        return self._transport.requests_sent

    async def _on_challenge(self, challenge: PaymentChallenge) -> str | None:
        try:
            payment = await self._signer.sign(challenge)
        except Exception as exc:
            logger.warning("signing failed: %s", exc)
            return None
        if payment:
            self.state.signed()
        return payment

    async def submit_paid_reply(self, post_id: str, content: str, wallet_address: str) -> dict[str, Any]:
        if self.state.busy:
            raise X402ClientError("a payment is already in progress")

        self.state.start()
        self.last_receipt = None
        try:
            response = await self._transport.perform(
                self._replies_path,
                on_challenge=self._on_challenge,
                method="POST",
                headers={"Authorization": f"Bearer {self._access_token}"},
                json={"postId": post_id, "content": content, "walletAddress": wallet_address},
            )
        except PaymentCancelledError:
            self.state.fail("Payment cancelled")
            raise
        except NoRequirementsError as exc:
            self.state.fail(str(exc))
            raise
        except httpx.HTTPError as exc:
            self.state.fail("Network error")
            raise PaymentFailedError("Network error") from exc

        self.last_receipt = parse_payment_response(response)

        if response.is_success:
            if self.state.status is PaymentStatus.SIGNING:
                self.state.signed()
            self.state.succeed()
            return response.json()

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        message = str(data.get("error") or data.get("detail") or "Payment failed")
        self.state.fail(message)
        raise PaymentFailedError(message, status_code=response.status_code, code=data.get("code"))
