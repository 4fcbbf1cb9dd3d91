"""
tasks/models.py -- Domain dataclasses for the task tracker.

Pure data containers. Permission rules live in auth/policy.py and business
rules in tasks/service.py; persistence lives in tasks/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UserRef:
    """A lightweight reference to a user row -- enough for ownership checks."""

    id: int
    username: str


@dataclass
class Task:
    """A work item with two independent relationship edges.

    assigned_to may toggle completion; created_by may edit or delete. Neither
    edge implies the other's permissions.

    Invariant: completed_at is set iff completed is True. tasks/store.py
    writes both columns in one UPDATE so no reader sees one without the other.

    id is None before the record is written to the database.
    """

    title: str
    assigned_to: UserRef
    created_by: UserRef
    description: Optional[str] = None
    completed: bool = False
    completed_at: Optional[str] = None  # ISO 8601
    created_at: str = ""  # ISO 8601, set by store on insert
    id: Optional[int] = None


@dataclass(frozen=True)
class TaskStats:
    total: int
    completed: int
    pending: int
