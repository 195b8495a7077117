"""Issue and verify JWT access tokens. 'sub' carries the user id as a string."""
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from skillswap.config import settings


def issue_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": str(user_id), "exp": expire}, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def user_id_from_token(token: str) -> int | None:
    """Return the user id from a valid token; None if invalid, expired or malformed."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None
