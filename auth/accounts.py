"""
auth/accounts.py -- Registration and password login.

authenticate_user() runs bcrypt whether or not the username exists, so
response time does not reveal which usernames are registered.

register_user() enforces the two User invariants the store cannot express on
its own: the role set is never empty (defaults to {"USER"}) and every label is
one of USER / MANAGER / ADMIN.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User, normalize_role
from auth.store import UserStore
from auth.tokens import hash_password, verify_password
from core.errors import AuthenticationFailure, ValidationConflict

logger = logging.getLogger("taskguard.auth")

# Hash checked for unknown usernames. Computed once at module load so the
# first login attempt is not measurably slower than later ones.
_DUMMY_HASH: str = hash_password("taskguard_timing_dummy")


def normalize_roles(roles: Iterable[str] | None) -> frozenset[str]:
    """Canonicalize client-supplied role labels, defaulting to {"USER"}.

    Raises ValidationConflict for unknown labels so the route answers 400.
    """
    labels = [r for r in (roles or []) if r and r.strip()]
    if not labels:
        return frozenset({Role.USER.value})
    try:
        return frozenset(normalize_role(r) for r in labels)
    except ValueError as exc:
        raise ValidationConflict(str(exc)) from exc


def register_user(store: UserStore, username: str, raw_password: str, roles: Iterable[str] | None = None) -> User:
    """Create an account and return the persisted record.

    Raises:
        ValidationConflict: username taken, or a role label is unknown.
    """
    role_set = normalize_roles(roles)
    if store.exists_by_username(username):
        raise ValidationConflict("Username already exists")

    user = User(username=username, hashed_password=hash_password(raw_password), roles=role_set)
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        # A concurrent registration won the race past exists_by_username().
        raise ValidationConflict("Username already exists") from exc

    logger.info("Registered user %s with roles %s", username, ",".join(sorted(role_set)))
    created = store.get_by_id(user_id)
    if created is None:
        raise RuntimeError(f"User {username!r} not found after insert")
    return created


def authenticate_user(store: UserStore, username: str, password: str) -> User:
    """Return the User for a correct username/password pair.

    Raises AuthenticationFailure with the same message for an unknown username
    and a wrong password.
    """
    user = store.get_by_username(username)
    if user is None:
        # Run bcrypt anyway so an unknown name costs as much as a wrong password
        verify_password(password, _DUMMY_HASH)
        raise AuthenticationFailure()
    if not verify_password(password, user.hashed_password):
        raise AuthenticationFailure()
    return user
