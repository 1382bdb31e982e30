from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from dental_clinic.core.config import settings


def create_access_token(subject: str | int, expires_minutes: int = 15) -> str:
    """Issue an access token. Production tokens come from the account service; this is for tooling and tests."""
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    to_encode = {"sub": str(subject), "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> str | None:
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
        if payload.get("type") != "access":
            return None
        sub = payload.get("sub")
        return str(sub) if sub else None
    except JWTError:
        return None
