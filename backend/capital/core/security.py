# capital/core/security.py
from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from capital.core.config import settings

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


# -------------------------
# Password hashing
# -------------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


# -------------------------
# Token errors
# -------------------------
class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """Signature is valid but the embedded expiration has passed."""


class TokenMalformedError(TokenError):
    """Bad signature, undecodable token, or a payload missing required claims."""


class TokenMissingSubjectError(TokenMalformedError):
    """Signature is valid but the payload carries no user_id."""


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    exp: int
    iat: int | None = None


# -------------------------
# Durations
# -------------------------
_DURATION_RE = re.compile(r"^\s*(-?\d+)\s*(s|sec|m|min|h|hr|d)?\s*$", re.IGNORECASE)
_UNIT_SECONDS = {
    None: 1,
    "s": 1,
    "sec": 1,
    "m": 60,
    "min": 60,
    "h": 3600,
    "hr": 3600,
    "d": 86400,
}


def parse_duration(value: str | int) -> int:
    """
    Convert "60min", "7d", "1h", "30s" (or a bare number of seconds) into seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        return value

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit.lower() if unit else None]


# -------------------------
# JWT helpers
# -------------------------
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require_jwt_secret() -> None:
    if not settings.JWT_SECRET or not settings.JWT_SECRET.strip():
        raise RuntimeError("JWT_SECRET must be set (auth is required).")


def sign_token(user_id: str, expires_in: str | int, *, issued_at: datetime | None = None) -> str:
    """
    Sign a compact token carrying {user_id, iat, exp, jti}.

    expires_in is either a relative duration ("60min", "7d") or a number of seconds,
    e.g. the remaining lifetime of a refresh token being rotated.
    """
    _require_jwt_secret()

    now = issued_at or _now_utc()
    exp = now + timedelta(seconds=parse_duration(expires_in))

    payload = {
        "user_id": user_id,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        # Distinguishes tokens minted within the same second
        "jti": secrets.token_hex(8),
    }

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> TokenPayload:
    """
    Verify signature + expiration and validate the payload shape.

    Raises:
        TokenExpiredError: the token is authentic but past its exp.
        TokenMalformedError: bad signature, garbage input, or missing exp.
        TokenMissingSubjectError: authentic token without a user_id.
    """
    _require_jwt_secret()

    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("Token has expired") from exc
    except JWTError as exc:
        raise TokenMalformedError("Invalid token") from exc

    user_id = claims.get("user_id")
    if not isinstance(user_id, str) or not user_id.strip():
        raise TokenMissingSubjectError("Token missing 'user_id'")

    exp = claims.get("exp")
    if not isinstance(exp, int):
        raise TokenMalformedError("Token missing 'exp'")

    iat = claims.get("iat")
    return TokenPayload(user_id=user_id, exp=exp, iat=iat if isinstance(iat, int) else None)
