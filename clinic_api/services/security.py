"""Password hashing and access-token helpers."""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from clinic_api.core.config import settings
from clinic_api.errors import Unauthorized
from clinic_api.models import Identity

UNUSABLE_PASSWORD_PREFIX = "!"
_TOKEN_SHAPE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def unusable_password() -> str:
    """Placeholder credential for identities created without a password."""

    return UNUSABLE_PASSWORD_PREFIX + secrets.token_hex(16)


def has_usable_password(identity: Identity) -> bool:
    return bool(identity.password_hash) and not identity.password_hash.startswith(
        UNUSABLE_PASSWORD_PREFIX
    )


def verify_password(plain_password: str, identity: Identity) -> bool:
    if not has_usable_password(identity):
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"), identity.password_hash.encode("utf-8")
        )
    except ValueError:
        return False


def create_access_token(identity: Identity, expires_delta: timedelta | None = None) -> str:
    """Issue a signed bearer token for the identity."""

    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.access_token_expire_days))
    claims: dict[str, Any] = {
        "sub": str(identity.id),
        "email": identity.email,
        "role": identity.role.value,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def looks_like_token(token: str) -> bool:
    """Return whether the value has the three dot-separated JWT segments."""

    return bool(_TOKEN_SHAPE.match(token))


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry, returning the claims."""

    if not looks_like_token(token):
        raise Unauthorized("Invalid token format. Please log in again.")
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise Unauthorized("Token expired. Please log in again.") from exc
    except JWTError as exc:
        raise Unauthorized("Invalid token. Please log in again.") from exc

    if not claims.get("sub"):
        raise Unauthorized("Invalid token. Please log in again.")
    return claims
