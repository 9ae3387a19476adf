from decimal import Decimal

import pytest

from replay.platform.services.chain import (
    ChainClient,
    ChainConfig,
    parse_chain_id,
    usdc_minor_units_to_decimal,
)
from replay.platform.services.x402 import TransferAuthorization, build_exact_challenge

PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


def _client() -> ChainClient:
    return ChainClient(
        ChainConfig(
            chain_id=123,
            asset_address="0x0000000000000000000000000000000000000001",
            asset_name="USD Coin",
            asset_version="2",
        )
    )


def _authorization(**overrides) -> TransferAuthorization:
    fields = {
        "from_address": ADDRESS,
        "to_address": "0x0000000000000000000000000000000000000022",
        "value": "20000",
        "valid_after": "0",
        "valid_before": "1767225600",
        "nonce": "0x" + "11" * 32,
    }
    fields.update(overrides)
    return TransferAuthorization(**fields)


def test_reply_price_is_two_cents() -> None:
    assert usdc_minor_units_to_decimal(20000) == Decimal("0.02")


def test_parse_chain_id() -> None:
    assert parse_chain_id("eip155:30732") == 30732

    for bad in ("30732", "solana:1", "eip155:", "eip155:abc"):
        with pytest.raises(ValueError):
            parse_chain_id(bad)


def test_transfer_with_authorization_typed_data_shape() -> None:
    typed = _client().transfer_with_authorization_typed_data(
        from_address="0x0000000000000000000000000000000000000011",
        to_address="0x0000000000000000000000000000000000000022",
        value=123,
        valid_after=1,
        valid_before=2,
        nonce="0x" + "11" * 32,
    )

    assert typed["primaryType"] == "TransferWithAuthorization"
    assert typed["domain"]["chainId"] == 123
    assert typed["domain"]["verifyingContract"] == "0x0000000000000000000000000000000000000001"
    assert typed["message"]["value"] == 123
    assert [f["name"] for f in typed["types"]["TransferWithAuthorization"]] == [
        "from",
        "to",
        "value",
        "validAfter",
        "validBefore",
        "nonce",
    ]


def test_client_from_challenge_uses_extra_domain() -> None:
    challenge = build_exact_challenge(resource="/paid", network="eip155:8453", asset="0x" + "ab" * 20)

    domain = ChainClient.from_challenge(challenge).authorization_typed_data(_authorization())["domain"]

    assert domain == {
        "name": "USD Coin",
        "version": "2",
        "chainId": 8453,
        "verifyingContract": "0x" + "ab" * 20,
    }


def test_signature_recovers_signer() -> None:
    client = _client()
    auth = _authorization()

    signature = client.sign_authorization(auth, PRIVATE_KEY)

    assert signature.startswith("0x")
    assert len(signature) == 2 + 65 * 2
    assert client.recover_authorizer(auth, signature) == ADDRESS


def test_signature_does_not_cover_altered_value() -> None:
    client = _client()
    signature = client.sign_authorization(_authorization(), PRIVATE_KEY)

    assert client.recover_authorizer(_authorization(value="1"), signature) != ADDRESS
