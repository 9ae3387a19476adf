import base64
import json

import pytest

from replay.platform.services.x402 import (
    PAYMENT_REQUIREMENTS_HEADER,
    DecodeError,
    PaymentEnvelope,
    SettlementReceipt,
    TransferAuthorization,
    build_402_response,
    build_exact_challenge,
    decode_payment_envelope,
    decode_payment_requirements,
    decode_payment_response,
    encode_payment_envelope,
    encode_payment_response,
)


def _b64(obj) -> str:
    return base64.b64encode(json.dumps(obj).encode("utf-8")).decode("utf-8")


def _envelope_dict() -> dict:
    return {
        "x402Version": 1,
        "scheme": "exact",
        "network": "eip155:30732",
        "payload": {
            "signature": "0x" + "ab" * 65,
            "authorization": {
                "from": "0x0000000000000000000000000000000000000011",
                "to": "0x0000000000000000000000000000000000000001",
                "value": "20000",
                "validAfter": "0",
                "validBefore": "1767225600",
                "nonce": "0x" + "22" * 32,
            },
        },
    }


def test_challenge_defaults_come_from_settings() -> None:
    challenge = build_exact_challenge(resource="/api/v1/replies")

    assert challenge.network == "eip155:30732"
    assert challenge.max_amount_required == "20000"
    assert challenge.scheme == "exact"
    assert challenge.max_timeout_seconds == 600
    assert challenge.extra == {"name": "USD Coin", "version": "2"}


def test_402_response_header_matches_body() -> None:
    challenge = build_exact_challenge(amount=5, resource="/paid", description="Five units")

    response = build_402_response(challenge)

    assert response.status_code == 402
    body = json.loads(response.body)
    assert body["error"] == "Payment Required"
    assert body["requirements"]["maxAmountRequired"] == "5"
    decoded = decode_payment_requirements(response.headers[PAYMENT_REQUIREMENTS_HEADER])
    assert decoded == challenge
    assert decoded.to_dict() == body["requirements"]


def test_requirements_header_is_compact_json() -> None:
    challenge = build_exact_challenge(resource="/paid")
    header = build_402_response(challenge).headers[PAYMENT_REQUIREMENTS_HEADER]

    raw = base64.b64decode(header).decode("utf-8")
    assert ": " not in raw and ", " not in raw
    assert json.loads(raw)["payTo"] == challenge.pay_to


def test_decode_envelope_reads_all_fields() -> None:
    envelope = decode_payment_envelope(_b64(_envelope_dict()))

    assert envelope.x402_version == 1
    assert envelope.scheme == "exact"
    assert envelope.network == "eip155:30732"
    assert envelope.authorization.value == "20000"
    assert envelope.authorization.valid_after == "0"
    assert envelope.authorization.nonce == "0x" + "22" * 32


def test_encoded_envelope_decodes_to_equal_value() -> None:
    envelope = PaymentEnvelope(
        network="eip155:1",
        signature="0x01",
        authorization=TransferAuthorization(
            from_address="0x0000000000000000000000000000000000000011",
            to_address="0x0000000000000000000000000000000000000022",
            value="1",
            valid_after="2",
            valid_before="3",
            nonce="0x" + "00" * 32,
        ),
    )

    assert decode_payment_envelope(encode_payment_envelope(envelope)) == envelope


@pytest.mark.parametrize("header", ["", "   ", "not base64!!", _b64([1, 2, 3]), base64.b64encode(b"{oops").decode()])
def test_decode_envelope_rejects_garbage(header: str) -> None:
    with pytest.raises(DecodeError):
        decode_payment_envelope(header)


@pytest.mark.parametrize("field", ["from", "to", "value", "validAfter", "validBefore", "nonce"])
def test_decode_envelope_rejects_missing_authorization_field(field: str) -> None:
    data = _envelope_dict()
    del data["payload"]["authorization"][field]

    with pytest.raises(DecodeError, match=field):
        decode_payment_envelope(_b64(data))


def test_decode_envelope_rejects_missing_signature() -> None:
    data = _envelope_dict()
    data["payload"]["signature"] = ""

    with pytest.raises(DecodeError, match="signature"):
        decode_payment_envelope(_b64(data))


def test_decode_envelope_rejects_missing_network() -> None:
    data = _envelope_dict()
    del data["network"]

    with pytest.raises(DecodeError, match="network"):
        decode_payment_envelope(_b64(data))


def test_requirements_missing_key_is_decode_error() -> None:
    with pytest.raises(DecodeError, match="payTo"):
        decode_payment_requirements(_b64({"network": "eip155:1"}))


def test_payment_response_header() -> None:
    header = encode_payment_response(SettlementReceipt(success=True, tx_id="0xabc", network_id="eip155:30732"))

    assert json.loads(base64.b64decode(header)) == {"success": True, "txId": "0xabc", "networkId": "eip155:30732"}
    assert decode_payment_response(header).tx_id == "0xabc"

    with pytest.raises(DecodeError):
        decode_payment_response(_b64({"success": True}))
