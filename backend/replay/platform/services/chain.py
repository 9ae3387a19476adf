from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from eth_account import Account
from eth_account.messages import encode_typed_data

from replay.platform.config import settings
from replay.platform.services.x402 import PaymentChallenge, TransferAuthorization

@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    asset_address: str
    asset_name: str
    asset_version: str

def parse_chain_id(network: str) -> int:
    namespace, _, reference = network.partition(":")
    if namespace != "eip155" or not reference.isdigit():
        raise ValueError(f"unsupported network {network}")
    return int(reference)

class ChainClient:
    def __init__(self, config: ChainConfig) -> None:
        self._config = config

    @classmethod
    def from_challenge(cls, challenge: PaymentChallenge) -> "ChainClient":
        extra = challenge.extra or {}
        return cls(
            ChainConfig(
                chain_id=parse_chain_id(challenge.network),
                asset_address=challenge.asset,
                asset_name=str(extra.get("name") or settings.usdc_name),
                asset_version=str(extra.get("version") or settings.usdc_version),
            )
        )

    def transfer_with_authorization_typed_data(
        self,
        *,
        from_address: str,
        to_address: str,
        value: int,
        valid_after: int,
        valid_before: int,
        nonce: str,
    ) -> dict:
        return {
            "types": {
                "EIP712Domain": [
                    {"name": "name", "type": "string"},
                    {"name": "version", "type": "string"},
                    {"name": "chainId", "type": "uint256"},
                    {"name": "verifyingContract", "type": "address"},
                ],
                "TransferWithAuthorization": [
                    {"name": "from", "type": "address"},
                    {"name": "to", "type": "address"},
                    {"name": "value", "type": "uint256"},
                    {"name": "validAfter", "type": "uint256"},
                    {"name": "validBefore", "type": "uint256"},
                    {"name": "nonce", "type": "bytes32"},
                ],
            },
            "primaryType": "TransferWithAuthorization",
            "domain": {
                "name": self._config.asset_name,
                "version": self._config.asset_version,
                "chainId": self._config.chain_id,
                "verifyingContract": self._config.asset_address,
            },
            "message": {
                "from": from_address,
                "to": to_address,
                "value": value,
                "validAfter": valid_after,
                "validBefore": valid_before,
                "nonce": nonce,
            },
        }

    def authorization_typed_data(self, authorization: TransferAuthorization) -> dict:
        return self.transfer_with_authorization_typed_data(
            from_address=authorization.from_address,
            to_address=authorization.to_address,
            value=int(authorization.value),
            valid_after=int(authorization.valid_after),
            valid_before=int(authorization.valid_before),
            nonce=authorization.nonce,
        )

    def sign_authorization(self, authorization: TransferAuthorization, private_key: str) -> str:
        signable = encode_typed_data(full_message=_signable(self.authorization_typed_data(authorization)))
        signed = Account.sign_message(signable, private_key=private_key)
        return "0x" + bytes(signed.signature).hex()

    def recover_authorizer(self, authorization: TransferAuthorization, signature: str) -> str:
        signable = encode_typed_data(full_message=_signable(self.authorization_typed_data(authorization)))
        return Account.recover_message(signable, signature=bytes.fromhex(signature.removeprefix("0x")))

def _signable(typed_data: dict) -> dict:
    message = dict(typed_data["message"])
    message["nonce"] = bytes.fromhex(str(message["nonce"]).removeprefix("0x"))
    return {**typed_data, "message": message}


def usdc_minor_units_to_decimal(amount: int) -> Decimal:
    if amount < 0:
        raise ValueError("amount must be non-negative")

    scale = Decimal(10) ** settings.usdc_decimals
    return Decimal(amount) / scale
