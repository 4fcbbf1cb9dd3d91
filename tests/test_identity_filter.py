"""
tests/test_identity_filter.py -- Unit tests for auth.dependencies.resolve_identity.

The filter never raises for a bad credential; every failure path must leave
the caller anonymous.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.dependencies import resolve_identity
from auth.models import Identity, User
from auth.tokens import create_access_token
from core.config import get_settings


def _bearer(token: str) -> str:
    return f"Bearer {token}"


class TestAnonymousPaths:
    def test_no_header(self, user_store) -> None:
        assert resolve_identity(None, user_store) == Identity.anonymous()

    def test_wrong_scheme(self, user_store, make_user) -> None:
        token = create_access_token(make_user("alice"))
        identity = resolve_identity(f"Basic {token}", user_store)
        assert not identity.authenticated

    def test_empty_bearer(self, user_store) -> None:
        assert not resolve_identity("Bearer ", user_store).authenticated

    def test_malformed_token(self, user_store) -> None:
        assert not resolve_identity(_bearer("garbage"), user_store).authenticated

    def test_expired_token(self, user_store, make_user) -> None:
        user = make_user("alice")
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        token = jwt.encode(
            {"sub": "alice", "uid": user.id, "roles": ["USER"], "iat": past - timedelta(hours=1), "exp": past},
            get_settings().secret_key,
            algorithm="HS256",
        )
        assert not resolve_identity(_bearer(token), user_store).authenticated

    def test_unknown_user(self, user_store) -> None:
        """A correctly signed token naming a user that does not exist."""
        nobody = User(username="nobody", hashed_password="x", roles=frozenset({"USER"}), id=999)
        token = create_access_token(nobody)
        assert not resolve_identity(_bearer(token), user_store).authenticated

    def test_stale_roles(self, user_store, make_user) -> None:
        """Roles changed after issue: the token no longer describes the user."""
        user = make_user("alice", "MANAGER")
        token = create_access_token(user)
        user_store.update_roles(user.id, {"USER"})
        assert not resolve_identity(_bearer(token), user_store).authenticated


class TestAuthenticatedPaths:
    def test_valid_token_yields_identity(self, user_store, make_user) -> None:
        user = make_user("bob", "MANAGER", "USER")
        identity = resolve_identity(_bearer(create_access_token(user)), user_store)
        assert identity.authenticated
        assert identity.username == "bob"
        assert identity.roles == frozenset({"MANAGER", "USER"})

    def test_existing_identity_is_kept(self, user_store) -> None:
        """A request already authenticated upstream is not resolved again."""
        upstream = Identity(username="carol", roles=frozenset({"ADMIN"}), authenticated=True)
        assert resolve_identity(_bearer("garbage"), user_store, current=upstream) is upstream

    def test_anonymous_current_is_resolved(self, user_store, make_user) -> None:
        user = make_user("dave")
        identity = resolve_identity(_bearer(create_access_token(user)), user_store, current=Identity.anonymous())
        assert identity.username == "dave"
