"""
API request and response models for TaskGuard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are kept separate from the dataclasses in tasks/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON field names are camelCase on the wire (assignToUsername, assignedTo,
createdAt, ...). populate_by_name lets Python code construct models with the
snake_case attribute names.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User
from tasks.models import Task, TaskStats

# bcrypt only looks at the first 72 bytes of a password.
_PASSWORD_MAX = 72


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _CamelResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    """Request body for POST /api/auth/login."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class LoginResponse(_CamelResponse):
    token: str
    username: str
    roles: list[str]


class RegisterRequest(_CamelModel):
    """Request body for POST /api/auth/register.

    Accepts either a single `role` ("ROLE_MANAGER" or "MANAGER") or a `roles`
    list. Both may be sent; they are merged. Neither means {"USER"}.

    Credentials are taken exactly as sent, the same way LoginRequest takes
    them, so the password that is hashed is the one the user will log in with.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    role: Optional[str] = Field(default=None, max_length=32)
    roles: Optional[list[str]] = Field(default=None, max_length=3)

    def requested_roles(self) -> list[str]:
        requested = list(self.roles or [])
        if self.role:
            requested.append(self.role)
        return requested


class RegisterResponse(_CamelResponse):
    message: str = "User registered successfully"
    username: str


class UserSummary(_CamelResponse):
    """A user as shown to clients. Never carries the password hash."""

    id: int
    username: str
    roles: list[str]

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.id, username=user.username, roles=sorted(user.roles))


class MeResponse(_CamelResponse):
    username: str
    roles: list[str]


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(_CamelModel):
    """Request body for POST /api/tasks."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=4000)
    assign_to_username: str = Field(min_length=1, max_length=255)


class TaskUpdate(_CamelModel):
    """Request body for PUT /api/tasks/{id}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=4000)


class CompletionUpdate(_CamelModel):
    """Request body for PATCH /api/tasks/{id}/complete."""

    completed: bool


class UserRefResponse(_CamelResponse):
    id: int
    username: str


class TaskResponse(_CamelResponse):
    id: int
    title: str
    description: Optional[str]
    completed: bool
    assigned_to: UserRefResponse
    created_by: UserRefResponse
    created_at: str
    completed_at: Optional[str]

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        """Build a TaskResponse from a tasks.models.Task."""
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            completed=task.completed,
            assigned_to=UserRefResponse(id=task.assigned_to.id, username=task.assigned_to.username),
            created_by=UserRefResponse(id=task.created_by.id, username=task.created_by.username),
            created_at=task.created_at,
            completed_at=task.completed_at,
        )


class TaskStatsResponse(_CamelResponse):
    total: int
    completed: int
    pending: int

    @classmethod
    def from_stats(cls, stats: TaskStats) -> "TaskStatsResponse":
        return cls(total=stats.total, completed=stats.completed, pending=stats.pending)


class MessageResponse(_CamelResponse):
    message: str


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
