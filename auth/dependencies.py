"""
auth/dependencies.py -- Identity resolution and FastAPI Depends() helpers.

resolve_identity() is the per-request identity filter. api/main.py calls it
from an HTTP middleware before any route runs and stores the result on
request.state.identity. It never raises for a bad credential and never ends
the request: a missing, malformed, expired, forged, or stale token simply
leaves the caller anonymous, and the policy guards in the service layer turn
that into a 403 where identity is required.

Sequence:
  1. Already authenticated upstream -> keep it, no second pass.
  2. No "Authorization: Bearer <token>" header -> anonymous.
  3. extract_username() fails (TokenError) -> anonymous.
  4. Username no longer resolves to a user -> anonymous.
  5. is_token_valid() against the fresh record is False -> anonymous.
  6. Otherwise -> Identity(username, roles, authenticated=True).

get_identity() is the soft dependency (anonymous allowed).
get_current_identity() wraps it and raises HTTP 403 if anonymous.

Layer rule: no imports from api/ or tasks/. May import fastapi because this
module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.store import UserStore
from auth.tokens import extract_username, is_token_valid
from core.errors import TokenError

logger = logging.getLogger("taskguard.auth")

_BEARER = "Bearer "


def resolve_identity(
    authorization: str | None,
    user_store: UserStore,
    current: Identity | None = None,
) -> Identity:
    """Turn an Authorization header value into the caller's Identity.

    Args:
        authorization: Raw Authorization header value, or None.
        user_store:    Store used to re-fetch the user the token names.
        current:       Identity an upstream stage already established, if any.
    """
    if current is not None and current.authenticated:
        return current

    if not authorization or not authorization.startswith(_BEARER):
        return Identity.anonymous()
    token = authorization[len(_BEARER):].strip()
    if not token:
        return Identity.anonymous()

    try:
        username = extract_username(token)
    except TokenError as exc:
        logger.debug("Ignoring bearer token: %s: %s", type(exc).__name__, exc)
        return Identity.anonymous()

    user = user_store.get_by_username(username)
    if user is None:
        logger.debug("Ignoring bearer token for unknown user %s", username)
        return Identity.anonymous()

    try:
        valid = is_token_valid(token, user)
    except TokenError as exc:
        logger.debug("Ignoring bearer token: %s: %s", type(exc).__name__, exc)
        return Identity.anonymous()
    if not valid:
        logger.debug("Ignoring stale bearer token for %s", username)
        return Identity.anonymous()

    return Identity.for_user(user)


def get_identity(request: Request) -> Identity:
    """Return the identity established for this request (anonymous if none).

    Use as a FastAPI dependency:
        @router.get("/tasks")
        def route(identity: Identity = Depends(get_identity)): ...
    """
    identity = getattr(request.state, "identity", None)
    return identity if isinstance(identity, Identity) else Identity.anonymous()


def get_current_identity(request: Request) -> Identity:
    """Require authentication. Raises HTTP 403 if the request is anonymous.

    403 rather than 401: identity resolution never hard-fails, so an
    anonymous caller is simply one that lacks permission.
    """
    identity = get_identity(request)
    if not identity.authenticated:
        raise HTTPException(status_code=403, detail="Access denied: authentication required")
    return identity
