"""
auth/policy.py -- Authorization policy engine.

Every permission decision in TaskGuard flows through this module. Callers
never compare role strings inline; they call a predicate (returns bool) or a
guard (returns on success, raises a typed denial on failure).

Three independent predicate families:

  Static role predicates -- depend only on the caller's Identity. Role sets
      are a flat union here: holding MANAGER and USER grants both privilege
      sets. Guards: require_authenticated(), require_role().

  Dynamic resource predicates -- depend on a fetched task's relationship to
      the caller (assignee edge, creator edge). The task must already be
      loaded, so operations gated this way fetch first and deny afterwards;
      that reveals whether a task id exists, which is accepted. Guard:
      require_ownership().

  Assignment eligibility -- the role hierarchy ADMIN > MANAGER > USER applied
      to "who may assign work to whom". Kept apart from the static
      predicates: a user's privileges are a union, but the set of people they
      may assign to is constrained by each elevated role they hold. Guard:
      require_assignable().

Denials raise AuthorizationDenied (or its subclass AssignmentNotPermitted).
Nothing here touches storage or mutates state.

Layer rule: no imports from api/ or tasks/. Tasks are accepted structurally
via the OwnedResource protocol.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import Enum
from typing import Protocol

from auth.models import Identity, Role, User
from core.errors import AssignmentNotPermitted, AuthorizationDenied


class _Named(Protocol):
    username: str


class OwnedResource(Protocol):
    """Anything with an assignee edge and a creator edge (tasks.models.Task)."""

    assigned_to: _Named
    created_by: _Named


# ---------------------------------------------------------------------------
# Static role predicates (authentication privilege -- flat union)
# ---------------------------------------------------------------------------


def is_authenticated(identity: Identity) -> bool:
    return identity.authenticated and bool(identity.username)


def has_role(identity: Identity, role: Role | str) -> bool:
    return is_authenticated(identity) and Role(role).value in identity.roles


def has_any_role(identity: Identity, *roles: Role | str) -> bool:
    return any(has_role(identity, r) for r in roles)


def require_authenticated(identity: Identity) -> Identity:
    """Guard: the caller must have an established identity."""
    if not is_authenticated(identity):
        raise AuthorizationDenied("Access denied: authentication required")
    return identity


def require_role(identity: Identity, *roles: Role | str) -> Identity:
    """Guard: the caller must hold at least one of the given roles."""
    require_authenticated(identity)
    if not has_any_role(identity, *roles):
        names = " or ".join(Role(r).value for r in roles)
        raise AuthorizationDenied(f"Access denied: requires role {names}")
    return identity


class TaskScope(str, Enum):
    """Which tasks a caller's listing and stats cover."""

    ALL = "all"  # every task
    INVOLVED = "involved"  # assigned to me or created by me
    ASSIGNED = "assigned"  # assigned to me


def task_scope(identity: Identity) -> TaskScope:
    """Visibility is filtered by role, never gated: everyone gets some scope.

    The highest privilege held wins because privileges are a union.
    """
    if has_role(identity, Role.ADMIN):
        return TaskScope.ALL
    if has_role(identity, Role.MANAGER):
        return TaskScope.INVOLVED
    return TaskScope.ASSIGNED


# ---------------------------------------------------------------------------
# Dynamic resource predicates
# ---------------------------------------------------------------------------


def can_complete_task(task: OwnedResource, username: str | None) -> bool:
    """Only the assignee may toggle completion. Creating a task does not count."""
    return username is not None and task.assigned_to.username == username


def is_task_creator(task: OwnedResource, username: str | None) -> bool:
    return username is not None and task.created_by.username == username


def can_view_task(task: OwnedResource, username: str | None) -> bool:
    """Assignee or creator. ADMIN bypass is applied by the guard, not here."""
    return can_complete_task(task, username) or is_task_creator(task, username)


def require_ownership(
    identity: Identity,
    task: OwnedResource,
    predicate: Callable[[OwnedResource, str | None], bool],
    reason: str,
    admin_bypass: bool = False,
) -> None:
    """Guard: predicate(task, identity.username) must hold.

    admin_bypass lets an ADMIN through regardless of the relationship -- ADMIN
    authority is a static fact about the caller, independent of the task.
    """
    if admin_bypass and has_role(identity, Role.ADMIN):
        return
    if not predicate(task, identity.username if is_authenticated(identity) else None):
        raise AuthorizationDenied(f"Access denied: {reason}")


# ---------------------------------------------------------------------------
# Assignment eligibility (role hierarchy)
# ---------------------------------------------------------------------------

_ELEVATED = frozenset({Role.MANAGER.value, Role.ADMIN.value})


def is_pure_user(roles: Iterable[str]) -> bool:
    """True iff the role set is exactly {USER} -- no elevated role at all."""
    return frozenset(roles) == {Role.USER.value}


def _manager_may_assign(assignee_roles: frozenset[str]) -> bool:
    return is_pure_user(assignee_roles)


def _admin_may_assign(assignee_roles: frozenset[str]) -> bool:
    return Role.ADMIN.value not in assignee_roles and (
        is_pure_user(assignee_roles) or Role.MANAGER.value in assignee_roles
    )


def can_assign(creator_roles: Iterable[str], assignee_roles: Iterable[str]) -> bool:
    """True if a creator holding creator_roles may assign work to assignee_roles.

    Each elevated role the creator holds contributes its own constraint and
    all of them must pass:
      MANAGER -> assignee must be a pure USER
      ADMIN   -> assignee must be a pure USER or a MANAGER, never an ADMIN
    A creator with no elevated role may not assign at all.
    """
    creator = frozenset(creator_roles)
    assignee = frozenset(assignee_roles)
    if not creator & _ELEVATED:
        return False
    if Role.MANAGER.value in creator and not _manager_may_assign(assignee):
        return False
    if Role.ADMIN.value in creator and not _admin_may_assign(assignee):
        return False
    return True


def require_assignable(creator: User, assignee: User) -> None:
    """Guard: raise AssignmentNotPermitted if creator may not assign to assignee."""
    if can_assign(creator.roles, assignee.roles):
        return
    if Role.MANAGER.value in creator.roles and not _manager_may_assign(assignee.roles):
        raise AssignmentNotPermitted("Managers can only create tasks for regular users")
    raise AssignmentNotPermitted("Admins can only create tasks for users and managers")


def is_visible_assignee(identity: Identity, user: User) -> bool:
    """Whether user belongs in the caller's assignable-users list.

    ADMIN callers see every non-ADMIN account; MANAGER callers see pure USER
    accounts only. The listing uses the caller's highest privilege, unlike
    can_assign(), so an ADMIN who is also a MANAGER sees the ADMIN list.
    """
    if has_role(identity, Role.ADMIN):
        return Role.ADMIN.value not in user.roles
    if has_role(identity, Role.MANAGER):
        return is_pure_user(user.roles)
    return False
