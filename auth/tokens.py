"""
auth/tokens.py -- Identity tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the username (sub), the user id (uid), the sorted role list, iat and
       exp. Nothing is persisted -- a token is a pure function of the user
       record, the current time, and the key.

       Verification distinguishes three client-side failures so callers can
       log them precisely, even though all three end the same way (the
       request proceeds anonymously):
         TokenMalformed -- not a parseable JWT
         TokenInvalid   -- signature or claim check failed
         TokenExpired   -- signature fine, exp in the past

       is_token_valid() re-checks the claims against a freshly fetched user
       record. Embedding roles and comparing them at validation time means a
       role change in storage invalidates outstanding tokens on their next
       use instead of at their next issuance.

  Passwords: bcrypt used directly (no passlib wrapper). The work factor comes
       from Settings.bcrypt_rounds.

Layer rule: no imports from api/ or tasks/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings
from core.errors import TokenExpired, TokenInvalid, TokenMalformed

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("taskguard.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


_BCRYPT_MAX_BYTES = 72


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes. The API layer caps passwords at 72
    characters, which can still exceed 72 bytes for non-ASCII input, so the
    cut is made here explicitly (newer bcrypt releases refuse longer input).
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash at all (corrupted row).
        return False


# ---------------------------------------------------------------------------
# Token issue / verify
# ---------------------------------------------------------------------------


def create_access_token(user: User, expire_seconds: int = 0) -> str:
    """Issue a signed token for the given user record.

    Args:
        user:           A persisted User (id must be set).
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.token_expire_seconds (24h).
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.username,
        "uid": user.id,
        "roles": sorted(user.roles),
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify a token and return its claims.

    Raises:
        TokenMalformed: the string is not a structurally valid JWT, or the
                        claims lack a usable subject.
        TokenInvalid:   signature verification (or a non-expiry claim) failed.
        TokenExpired:   the signature verified but exp has passed.
    """
    # Parse without verifying first so "garbage in" is told apart from
    # "well-formed but forged".
    try:
        unverified = jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise TokenMalformed(str(exc)) from exc

    if not isinstance(unverified.get("sub"), str) or not unverified["sub"]:
        raise TokenMalformed("Token has no subject.")

    try:
        return jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired("Token has expired.") from exc
    except JWTError as exc:
        raise TokenInvalid(str(exc)) from exc


def extract_username(token: str) -> str:
    """Return the username a token asserts. Does not consult storage."""
    return decode_access_token(token)["sub"]


def is_token_valid(token: str, user: User) -> bool:
    """Return True if the token still describes the given (freshly fetched) user.

    This is a policy predicate: a mismatch in username, user id, or role set
    yields False rather than an exception. Tokens that cannot be verified at
    all raise the same typed TokenError subclasses as extract_username().
    """
    claims = decode_access_token(token)
    if claims["sub"] != user.username:
        return False
    if claims.get("uid") != user.id:
        # Same username, different account (deleted and re-registered).
        return False
    roles = claims.get("roles")
    if not isinstance(roles, list) or frozenset(roles) != frozenset(user.roles):
        logger.debug("Token roles for %s no longer match the stored record", user.username)
        return False
    return True
