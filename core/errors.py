"""
core/errors.py -- Typed outcome taxonomy shared by auth/ and tasks/.

The policy engine and token service never recover from these. They raise a
typed outcome and the calling layer (api/) decides the transport response:

  AuthenticationFailure   bad credentials at login            -> 401
  TokenError (+ subclasses) token could not be trusted        -> absorbed, caller stays anonymous
  AuthorizationDenied     static or dynamic policy failure    -> 403
  AssignmentNotPermitted  role-hierarchy assignment violation -> 403
  NotFound                referenced user/task absent         -> 403 or 400 by call site
  ValidationConflict      duplicate username, bad role label  -> 400

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from __future__ import annotations


class TaskGuardError(Exception):
    """Base class for every domain outcome raised by TaskGuard."""


class AuthenticationFailure(TaskGuardError):
    """Username/password pair did not match a user record."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Token outcomes
# ---------------------------------------------------------------------------


class TokenError(TaskGuardError):
    """A bearer token could not be trusted. Never surfaced to the client."""


class TokenMalformed(TokenError):
    """The token is not a structurally valid JWT (segments, header, or claims)."""


class TokenInvalid(TokenError):
    """The signature or a non-expiry claim failed verification."""


class TokenExpired(TokenError):
    """The signature verified but the exp claim is in the past."""


# ---------------------------------------------------------------------------
# Policy outcomes
# ---------------------------------------------------------------------------


class AuthorizationDenied(TaskGuardError):
    """A static role gate or a dynamic ownership check rejected the caller."""


class AssignmentNotPermitted(AuthorizationDenied):
    """The creator's roles do not allow assigning work to this assignee."""


class NotFound(TaskGuardError):
    """A referenced user or task does not exist."""


class ValidationConflict(TaskGuardError):
    """The request conflicts with existing state (e.g. duplicate username)."""
