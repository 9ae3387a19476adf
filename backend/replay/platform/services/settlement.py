"""Settlement network collaborators.

The verifier hands a fully validated authorization to one of these and treats
the answer as final. Value moves outside this service; nothing here can undo it.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from replay.platform.config import settings
from replay.platform.services.x402 import (
    X402_VERSION,
    PaymentChallenge,
    TransferAuthorization,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettleResult:
    ok: bool
    tx_id: str | None = None
    reason: str | None = None


class SettlementNetwork(Protocol):
    async def settle(
        self,
        authorization: TransferAuthorization,
        signature: str,
        *,
        challenge: PaymentChallenge,
    ) -> SettleResult: ...


class SimulatedSettlementNetwork:
    """Fake settlement that always succeeds after a delay.

    Idempotent on the authorization nonce: settling the same authorization twice
    returns the same transaction id, as a real token contract would refuse to
    move funds twice for one nonce. Settled nonces are kept for the life of the
    instance and never evicted.
    """

    def __init__(self, delay_seconds: float | None = None) -> None:
        self._delay = settings.settlement_simulated_delay_seconds if delay_seconds is None else delay_seconds
        self._settled: dict[tuple[str, str], str] = {}
        self.calls = 0

    async def settle(
        self,
        authorization: TransferAuthorization,
        signature: str,
        *,
        challenge: PaymentChallenge,
    ) -> SettleResult:
        self.calls += 1
        if self._delay > 0:
            await asyncio.sleep(self._delay)

        key = (authorization.from_address.lower(), authorization.nonce.lower())
        tx_id = self._settled.get(key)
        if tx_id is None:
            digest = hashlib.sha256(f"{key[0]}:{key[1]}:{signature}".encode("utf-8")).hexdigest()
            tx_id = "0x" + digest
            self._settled[key] = tx_id

        logger.info("simulated settlement from=%s value=%s tx=%s", authorization.from_address, authorization.value, tx_id)
        return SettleResult(ok=True, tx_id=tx_id)


class FacilitatorSettlementNetwork:
    def __init__(
        self,
        facilitator_url: str,
        *,
        timeout_seconds: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = facilitator_url.rstrip("/")
        self._timeout = timeout_seconds or settings.x402_facilitator_timeout_seconds
        self._http_client = http_client

    async def settle(
        self,
        authorization: TransferAuthorization,
        signature: str,
        *,
        challenge: PaymentChallenge,
    ) -> SettleResult:
        body = {
            "x402Version": X402_VERSION,
            "paymentPayload": {
                "x402Version": X402_VERSION,
                "scheme": challenge.scheme,
                "network": challenge.network,
                "payload": {"signature": signature, "authorization": authorization.to_dict()},
            },
            "paymentRequirements": challenge.to_dict(),
        }

        try:
            if self._http_client is not None:
                resp = await self._http_client.post(f"{self._url}/settle", json=body)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
                    resp = await client.post(f"{self._url}/settle", json=body)
        except httpx.RequestError as exc:
            logger.warning("facilitator unreachable at %s: %s", self._url, exc)
            return SettleResult(ok=False, reason="facilitator unreachable")

        if not resp.is_success:
            logger.warning("facilitator settle failed (%s): %s", resp.status_code, resp.text)
            return SettleResult(ok=False, reason=f"facilitator returned {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError:
            return SettleResult(ok=False, reason="facilitator returned invalid JSON")

        return _normalize_settle_response(payload)


def _normalize_settle_response(payload: Any) -> SettleResult:
    if not isinstance(payload, dict):
        return SettleResult(ok=False, reason="facilitator returned invalid response")

    tx = (
        payload.get("transaction")
        or payload.get("txHash")
        or payload.get("transactionHash")
        or payload.get("txId")
    )
    error_reason = payload.get("errorReason") or payload.get("error_reason") or payload.get("error")
    success = bool(payload.get("success", error_reason is None))

    if not success:
        return SettleResult(ok=False, reason=str(error_reason or "settlement rejected"))
    if not isinstance(tx, str) or not tx:
        return SettleResult(ok=False, reason="facilitator response missing transaction")
    return SettleResult(ok=True, tx_id=tx)


def settlement_network_from_settings() -> SettlementNetwork:
    if settings.x402_facilitator_url:
        return FacilitatorSettlementNetwork(settings.x402_facilitator_url)
    return SimulatedSettlementNetwork()
