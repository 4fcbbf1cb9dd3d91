"""
api/routes/tasks.py -- Task REST endpoints.

Routes:
  GET    /api/tasks                   -- tasks visible to the caller
  POST   /api/tasks                   -- create a task (MANAGER / ADMIN)
  GET    /api/tasks/assignable-users  -- who the caller may assign to
  GET    /api/tasks/stats             -- total / completed / pending
  GET    /api/tasks/{task_id}         -- one task
  PUT    /api/tasks/{task_id}         -- edit title / description
  PATCH  /api/tasks/{task_id}/complete -- toggle completion (assignee)
  DELETE /api/tasks/{task_id}         -- delete

Every permission decision is made inside TaskService; handlers only map
between the HTTP contract and the domain. The fixed-path routes are declared
before /tasks/{task_id} so "stats" is never parsed as an id.

The router requires an authenticated caller. FastAPI resolves dependencies
before it validates the body, so an anonymous request is refused with 403
without its payload being examined.

Status mapping (handlers in api/main.py):
  AuthorizationDenied / AssignmentNotPermitted -> 403
  NotFound -> 403, except on create where a missing assignee is a bad request
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    CompletionUpdate,
    MessageResponse,
    TaskCreate,
    TaskResponse,
    TaskStatsResponse,
    TaskUpdate,
    UserSummary,
)
from auth.dependencies import get_current_identity, get_identity
from auth.models import Identity
from core.errors import NotFound
from tasks.service import TaskService

router = APIRouter(dependencies=[Depends(get_current_identity)])


def _task_service(request: Request) -> TaskService:
    """Build a TaskService over the stores opened in lifespan."""
    return TaskService(request.app.state.user_store, request.app.state.task_store)


@router.get("/tasks", response_model=list[TaskResponse])
def list_tasks(
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> list[TaskResponse]:
    return [TaskResponse.from_task(t) for t in svc.list_tasks(identity)]


@router.post("/tasks", response_model=TaskResponse)
def create_task(
    body: TaskCreate,
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> TaskResponse:
    """Create a task owned by the caller.

    A caller without MANAGER or ADMIN is denied before the assignee is looked
    up. An unknown assignee is a 400, a forbidden assignment a 403.
    """
    try:
        task = svc.create_task(identity, body.title, body.description, body.assign_to_username)
    except NotFound as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TaskResponse.from_task(task)


@router.get("/tasks/assignable-users", response_model=list[UserSummary])
def assignable_users(
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> list[UserSummary]:
    return [UserSummary.from_user(u) for u in svc.assignable_users(identity)]


@router.get("/tasks/stats", response_model=TaskStatsResponse)
def task_stats(
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> TaskStatsResponse:
    return TaskStatsResponse.from_stats(svc.stats(identity))


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> TaskResponse:
    return TaskResponse.from_task(svc.get_task(identity, task_id))


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    body: TaskUpdate,
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> TaskResponse:
    return TaskResponse.from_task(svc.update_task(identity, task_id, body.title, body.description))


@router.patch("/tasks/{task_id}/complete", response_model=TaskResponse)
def set_completion(
    task_id: int,
    body: CompletionUpdate,
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> TaskResponse:
    """Mark the task complete (or open again). Only the assignee may do this."""
    return TaskResponse.from_task(svc.set_completion(identity, task_id, body.completed))


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: int,
    identity: Identity = Depends(get_identity),
    svc: TaskService = Depends(_task_service),
) -> MessageResponse:
    svc.delete_task(identity, task_id)
    return MessageResponse(message="Task deleted successfully")
