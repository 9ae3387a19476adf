import httpx
import pytest

from replay.client.transport import (
    NoRequirementsError,
    PaymentCancelledError,
    X402Transport,
    parse_payment_response,
)
from replay.platform.services.x402 import (
    PAYMENT_HEADER,
    PAYMENT_REQUIREMENTS_HEADER,
    PAYMENT_RESPONSE_HEADER,
    SettlementReceipt,
    build_exact_challenge,
    encode_payment_requirements,
    encode_payment_response,
)

CHALLENGE = build_exact_challenge(resource="/paid")


def _paywall(paid_status: int = 200, *, header: bool = True):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if PAYMENT_HEADER in request.headers:
            receipt = SettlementReceipt(success=True, tx_id="0xpaid", network_id=CHALLENGE.network)
            return httpx.Response(
                paid_status,
                json={"ok": paid_status == 200},
                headers={PAYMENT_RESPONSE_HEADER: encode_payment_response(receipt)},
            )
        headers = {PAYMENT_REQUIREMENTS_HEADER: encode_payment_requirements(CHALLENGE)} if header else {}
        return httpx.Response(402, json={"error": "Payment Required"}, headers=headers)

    return seen, httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_non_402_passes_through() -> None:
    calls: list = []

    async def on_challenge(challenge):
        calls.append(challenge)
        return "unused"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "Not Found"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test") as client:
        transport = X402Transport(client)
        resp = await transport.perform("/free", on_challenge=on_challenge)

    assert resp.status_code == 404
    assert transport.requests_sent == 1
    assert calls == []


@pytest.mark.asyncio
async def test_pays_once_and_retries_with_payment_header() -> None:
    seen, mock = _paywall()
    received = []

    async def on_challenge(challenge):
        received.append(challenge)
        return "signed-envelope"

    async with httpx.AsyncClient(transport=mock, base_url="http://test") as client:
        transport = X402Transport(client)
        resp = await transport.perform("/paid", on_challenge=on_challenge, method="POST", json={"a": 1})

    assert resp.status_code == 200
    assert transport.requests_sent == 2
    assert received == [CHALLENGE]
    assert PAYMENT_HEADER not in seen[0].headers
    assert seen[1].headers[PAYMENT_HEADER] == "signed-envelope"
    assert seen[1].content == seen[0].content
    assert parse_payment_response(resp).tx_id == "0xpaid"


@pytest.mark.asyncio
async def test_rejected_retry_is_returned_without_third_request() -> None:
    seen, mock = _paywall(paid_status=402)

    async def on_challenge(challenge):
        return "signed-envelope"

    async with httpx.AsyncClient(transport=mock, base_url="http://test") as client:
        transport = X402Transport(client)
        resp = await transport.perform("/paid", on_challenge=on_challenge)

    assert resp.status_code == 402
    assert transport.requests_sent == 2
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_402_without_requirements_is_an_error() -> None:
    _, mock = _paywall(header=False)

    async def on_challenge(challenge):
        return "signed-envelope"

    async with httpx.AsyncClient(transport=mock, base_url="http://test") as client:
        transport = X402Transport(client)
        with pytest.raises(NoRequirementsError):
            await transport.perform("/paid", on_challenge=on_challenge)

    assert transport.requests_sent == 1


@pytest.mark.asyncio
async def test_declined_challenge_is_cancellation() -> None:
    _, mock = _paywall()

    async def on_challenge(challenge):
        return None

    async with httpx.AsyncClient(transport=mock, base_url="http://test") as client:
        transport = X402Transport(client)
        with pytest.raises(PaymentCancelledError) as excinfo:
            await transport.perform("/paid", on_challenge=on_challenge)

    assert excinfo.value.challenge == CHALLENGE
    assert transport.requests_sent == 1


def test_payment_response_is_optional() -> None:
    assert parse_payment_response(httpx.Response(200)) is None
    assert parse_payment_response(httpx.Response(200, headers={PAYMENT_RESPONSE_HEADER: "%%"})) is None
