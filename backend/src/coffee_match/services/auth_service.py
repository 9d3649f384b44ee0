"""Bearer token handling. Tokens are issued by the login flow; this service only signs and verifies them."""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from coffee_match.app.config import get_settings

settings = get_settings()


def create_access_token(user_id: str, account_type: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expiration_minutes)
    payload = {"sub": user_id, "account_type": account_type, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
