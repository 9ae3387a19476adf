"""x402-aware HTTP transport.

Performs a request, and if the server answers 402 with payment requirements,
asks a callback for a signed payment envelope and retries exactly once.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from replay.platform.services.x402 import (
    PAYMENT_HEADER,
    PAYMENT_REQUIREMENTS_HEADER,
    PAYMENT_RESPONSE_HEADER,
    DecodeError,
    PaymentChallenge,
    SettlementReceipt,
    decode_payment_requirements,
    decode_payment_response,
)

logger = logging.getLogger(__name__)

ChallengeCallback = Callable[[PaymentChallenge], Awaitable[str | None]]


class X402ClientError(Exception):
    pass


class NoRequirementsError(X402ClientError):
    """The server answered 402 without usable payment requirements."""


class PaymentCancelledError(X402ClientError):
    def __init__(self, challenge: PaymentChallenge) -> None:
        super().__init__("Payment cancelled by user")
        self.challenge = challenge


def parse_payment_requirements(response: httpx.Response) -> PaymentChallenge:
    header = response.headers.get(PAYMENT_REQUIREMENTS_HEADER)
    if not header:
        raise NoRequirementsError("Received 402 but no payment requirements found")
    try:
        return decode_payment_requirements(header)
    except DecodeError as exc:
        raise NoRequirementsError(f"Malformed payment requirements: {exc}") from exc


def parse_payment_response(response: httpx.Response) -> SettlementReceipt | None:
    header = response.headers.get(PAYMENT_RESPONSE_HEADER)
    if not header:
        return None
    try:
        return decode_payment_response(header)
    except DecodeError:
        logger.warning("ignoring malformed %s header", PAYMENT_RESPONSE_HEADER)
        return None


class X402Transport:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        self.requests_sent = 0

    async def _send(self, method: str, url: str, headers: dict[str, str], options: dict[str, Any]) -> httpx.Response:
        self.requests_sent += 1
        return await self._client.request(method, url, headers=headers, **options)

    async def perform(
        self,
        url: str,
        *,
        on_challenge: ChallengeCallback,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        **options: Any,
    ) -> httpx.Response:
        """Send the request, paying once if challenged.

        Any non-402 response is returned untouched. The paid retry's response
        is returned whatever its status; there is no second retry.
        """
        base_headers = {"Accept": "application/json", **(headers or {})}
        base_headers.pop(PAYMENT_HEADER, None)

        response = await self._send(method, url, base_headers, options)
        if response.status_code != 402:
            return response

        challenge = parse_payment_requirements(response)
        payment = await on_challenge(challenge)
        if not payment:
            raise PaymentCancelledError(challenge)

        paid_headers = {**base_headers, PAYMENT_HEADER: payment}
        return await self._send(method, url, paid_headers, options)
