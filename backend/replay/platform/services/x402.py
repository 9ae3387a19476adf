"""x402 wire types and header codecs.

Every value that crosses the wire as an integer (amounts, timestamps) is kept as
a string here; numeric interpretation is left to the verifier.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from fastapi.responses import JSONResponse

from replay.platform.config import settings

X402_VERSION = 1
EXACT_SCHEME = "exact"

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_REQUIREMENTS_HEADER = "X-PAYMENT-REQUIREMENTS"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

_AUTHORIZATION_FIELDS = ("from", "to", "value", "validAfter", "validBefore", "nonce")


class DecodeError(ValueError):
    """Raised when a header value is not a well-formed x402 object."""


@dataclass(frozen=True)
class PaymentChallenge:
    network: str
    pay_to: str
    asset: str
    max_amount_required: str
    resource: str
    max_timeout_seconds: int
    scheme: str = EXACT_SCHEME
    description: str = ""
    mime_type: str = "application/json"
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scheme": self.scheme,
            "network": self.network,
            "payTo": self.pay_to,
            "asset": self.asset,
            "maxAmountRequired": self.max_amount_required,
            "resource": self.resource,
            "description": self.description,
            "mimeType": self.mime_type,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PaymentChallenge":
        if not isinstance(data, dict):
            raise DecodeError("payment requirements must be an object")
        try:
            return cls(
                network=str(data["network"]),
                pay_to=str(data["payTo"]),
                asset=str(data["asset"]),
                max_amount_required=str(data["maxAmountRequired"]),
                resource=str(data["resource"]),
                max_timeout_seconds=int(data["maxTimeoutSeconds"]),
                scheme=str(data.get("scheme") or EXACT_SCHEME),
                description=str(data.get("description") or ""),
                mime_type=str(data.get("mimeType") or "application/json"),
                extra=dict(data.get("extra") or {}),
            )
        except KeyError as exc:
            raise DecodeError(f"payment requirements missing {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"invalid payment requirements: {exc}") from exc


@dataclass(frozen=True)
class TransferAuthorization:
    from_address: str
    to_address: str
    value: str
    valid_after: str
    valid_before: str
    nonce: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "validAfter": self.valid_after,
            "validBefore": self.valid_before,
            "nonce": self.nonce,
        }


@dataclass(frozen=True)
class PaymentEnvelope:
    network: str
    signature: str
    authorization: TransferAuthorization
    scheme: str = EXACT_SCHEME
    x402_version: int = X402_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "x402Version": self.x402_version,
            "scheme": self.scheme,
            "network": self.network,
            "payload": {
                "signature": self.signature,
                "authorization": self.authorization.to_dict(),
            },
        }


@dataclass(frozen=True)
class SettlementReceipt:
    success: bool
    tx_id: str
    network_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "txId": self.tx_id, "networkId": self.network_id}


def _b64_json(payload: dict) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("utf-8")


def _json_from_b64(header_value: str) -> Any:
    if not isinstance(header_value, str) or not header_value.strip():
        raise DecodeError("empty header value")
    try:
        raw = base64.b64decode(header_value.strip().encode("utf-8"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError("header is not valid base64") from exc
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError("header is not valid JSON") from exc


def encode_payment_envelope(envelope: PaymentEnvelope) -> str:
    return _b64_json(envelope.to_dict())


def decode_payment_envelope(header_value: str) -> PaymentEnvelope:
    obj = _json_from_b64(header_value)
    if not isinstance(obj, dict):
        raise DecodeError("payment envelope must be an object")

    payload = obj.get("payload")
    if not isinstance(payload, dict):
        raise DecodeError("payment envelope missing payload")

    signature = payload.get("signature")
    if signature is None or signature == "":
        raise DecodeError("payment payload missing signature")

    authorization = payload.get("authorization")
    if not isinstance(authorization, dict):
        raise DecodeError("payment payload missing authorization")
    missing = [name for name in _AUTHORIZATION_FIELDS if authorization.get(name) in (None, "")]
    if missing:
        raise DecodeError(f"authorization missing {', '.join(missing)}")

    for key in ("x402Version", "scheme", "network"):
        if obj.get(key) in (None, ""):
            raise DecodeError(f"payment envelope missing {key}")

    return PaymentEnvelope(
        network=obj["network"],
        signature=signature,
        authorization=TransferAuthorization(
            from_address=authorization["from"],
            to_address=authorization["to"],
            value=authorization["value"],
            valid_after=authorization["validAfter"],
            valid_before=authorization["validBefore"],
            nonce=authorization["nonce"],
        ),
        scheme=obj["scheme"],
        x402_version=obj["x402Version"],
    )


def encode_payment_requirements(challenge: PaymentChallenge) -> str:
    return _b64_json(challenge.to_dict())


def decode_payment_requirements(header_value: str) -> PaymentChallenge:
    return PaymentChallenge.from_dict(_json_from_b64(header_value))


def encode_payment_response(receipt: SettlementReceipt) -> str:
    return _b64_json(receipt.to_dict())


def decode_payment_response(header_value: str) -> SettlementReceipt:
    obj = _json_from_b64(header_value)
    if not isinstance(obj, dict):
        raise DecodeError("payment response must be an object")
    tx_id = obj.get("txId")
    if not isinstance(tx_id, str):
        raise DecodeError("payment response missing txId")
    return SettlementReceipt(
        success=bool(obj.get("success")),
        tx_id=tx_id,
        network_id=str(obj.get("networkId") or ""),
    )


def build_exact_challenge(
    *,
    pay_to: str | None = None,
    amount: int | str | None = None,
    resource: str,
    asset: str | None = None,
    network: str | None = None,
    description: str = "",
    max_timeout_seconds: int | None = None,
) -> PaymentChallenge:
    return PaymentChallenge(
        network=network or settings.x402_network,
        pay_to=pay_to or settings.x402_seller_address,
        asset=asset or settings.usdc_address,
        max_amount_required=str(amount if amount is not None else settings.reply_price_minor_units),
        resource=resource,
        max_timeout_seconds=max_timeout_seconds or settings.x402_max_timeout_seconds,
        description=description,
        extra={"name": settings.usdc_name, "version": settings.usdc_version},
    )


def build_402_response(challenge: PaymentChallenge) -> JSONResponse:
    return JSONResponse(
        status_code=402,
        content={"error": "Payment Required", "requirements": challenge.to_dict()},
        headers={PAYMENT_REQUIREMENTS_HEADER: encode_payment_requirements(challenge)},
    )
