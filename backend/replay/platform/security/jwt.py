from datetime import datetime, timedelta, timezone

from jose import jwt

from replay.platform.config import settings


def create_access_token(subject: str, wallet_address: str | None = None) -> str:
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=settings.jwt_expiration_minutes)

    payload = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if wallet_address:
        payload["wallet"] = wallet_address

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
