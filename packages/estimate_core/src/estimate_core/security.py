from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from basecore.settings import get_settings


def verify_password(plain_password: str, hashed_password: str | bytes | None) -> bool:
    """Verify a password against a bcrypt hash. Malformed hashes never verify."""
    if not plain_password or not hashed_password:
        return False
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode("utf-8")

    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password,
        )
    except ValueError:
        return False


def get_password_hash(password: str, rounds: int | None = None) -> str:
    """Generate a bcrypt hash for a password."""
    salt = bcrypt.gensalt(rounds=rounds or get_settings().BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
    secret_key: str | None = None,
    algorithm: str | None = None,
) -> str:
    settings = get_settings()
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS)
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(
        to_encode,
        secret_key or settings.SECRET_KEY,
        algorithm=algorithm or settings.ALGORITHM,
    )


def decode_access_token(
    token: str,
    secret_key: str | None = None,
    algorithm: str | None = None,
) -> dict | None:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.SECRET_KEY,
            algorithms=[algorithm or settings.ALGORITHM],
        )
        return payload
    except JWTError:
        return None
