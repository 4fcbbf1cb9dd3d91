"""
tasks/service.py -- Task domain service: task CRUD behind the policy engine.

Every public method takes the caller's Identity explicitly -- there is no
ambient "current user". Each operation calls the auth.policy guard(s) it
needs, in a fixed order:

  Static gates (require_authenticated / require_role) run first, before any
  storage access, so a caller without the role learns nothing about stored
  data.

  Dynamic gates (require_ownership) need the task, so the task is fetched
  first and the denial comes afterwards. A missing task raises NotFound; an
  existing task the caller may not touch raises AuthorizationDenied. The HTTP
  layer decides whether to conflate the two.

Operation            static gate          dynamic gate
-------------------  -------------------  --------------------------------
list_tasks           authenticated        --
get_task             authenticated        ADMIN or assignee/creator
create_task          MANAGER or ADMIN     -- (+ assignment rule)
set_completion       --                   assignee
update_task          --                   ADMIN or creator
delete_task          --                   ADMIN or creator
assignable_users     MANAGER or ADMIN     --
stats                authenticated        --
"""

import logging
from typing import Optional

from auth import policy
from auth.models import Identity, Role, User
from auth.policy import TaskScope
from auth.store import UserStore
from core.errors import NotFound
from tasks.models import Task, TaskStats, UserRef
from tasks.store import TaskStore

logger = logging.getLogger("taskguard.tasks")


class TaskService:
    """Business logic for tasks. Stateless apart from the two stores."""

    def __init__(self, user_store: UserStore, task_store: TaskStore) -> None:
        self.users = user_store
        self.tasks = task_store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_tasks(self, identity: Identity) -> list[Task]:
        """Tasks visible to the caller.

        ADMIN -> all tasks; MANAGER -> assigned to or created by the caller;
        anyone else -> assigned to the caller.
        """
        policy.require_authenticated(identity)
        scope = policy.task_scope(identity)
        if scope is TaskScope.ALL:
            return self.tasks.list_tasks()
        me = self._current_user(identity)
        if scope is TaskScope.INVOLVED:
            return self.tasks.list_assigned_to_or_created_by(me.id)
        return self.tasks.list_assigned_to(me.id)

    def get_task(self, identity: Identity, task_id: int) -> Task:
        """Fetch one task, then check the caller may see it."""
        policy.require_authenticated(identity)
        task = self._load(task_id)
        policy.require_ownership(
            identity,
            task,
            policy.can_view_task,
            "only the assignee, the creator, or an admin may view this task",
            admin_bypass=True,
        )
        return task

    def stats(self, identity: Identity) -> TaskStats:
        """Total/completed/pending counts over the same scope as list_tasks()."""
        policy.require_authenticated(identity)
        scope = policy.task_scope(identity)
        if scope is TaskScope.ALL:
            total = self.tasks.count_tasks()
            completed = self.tasks.count_tasks(completed=True)
        elif scope is TaskScope.INVOLVED:
            me = self._current_user(identity)
            total = self.tasks.count_tasks(involving_user_id=me.id)
            completed = self.tasks.count_tasks(involving_user_id=me.id, completed=True)
        else:
            me = self._current_user(identity)
            total = self.tasks.count_tasks(assigned_to_id=me.id)
            completed = self.tasks.count_tasks(assigned_to_id=me.id, completed=True)
        return TaskStats(total=total, completed=completed, pending=total - completed)

    def assignable_users(self, identity: Identity) -> list[User]:
        """Users the caller may pick as an assignee, ordered by username."""
        policy.require_role(identity, Role.MANAGER, Role.ADMIN)
        return [u for u in self.users.list_users() if policy.is_visible_assignee(identity, u)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_task(
        self,
        identity: Identity,
        title: str,
        description: Optional[str],
        assign_to_username: str,
    ) -> Task:
        """Create a task owned by the caller and assigned to assign_to_username.

        Raises:
            AuthorizationDenied:    caller is neither MANAGER nor ADMIN.
            NotFound:               creator or assignee does not exist.
            AssignmentNotPermitted: role hierarchy forbids this assignment.
        """
        policy.require_role(identity, Role.MANAGER, Role.ADMIN)

        creator = self.users.get_by_username(identity.username)
        if creator is None:
            raise NotFound("Creator not found")
        assignee = self.users.get_by_username(assign_to_username)
        if assignee is None:
            raise NotFound(f"User not found: {assign_to_username}")

        # Check against the stored roles, not the token's, so both sides of
        # the assignment are judged on the same fresh data.
        policy.require_assignable(creator, assignee)

        task_id = self.tasks.create_task(
            Task(
                title=title,
                description=description,
                assigned_to=UserRef(id=assignee.id, username=assignee.username),
                created_by=UserRef(id=creator.id, username=creator.username),
            )
        )
        logger.info("Task %d created by %s for %s", task_id, creator.username, assignee.username)
        return self._load(task_id)

    def set_completion(self, identity: Identity, task_id: int, completed: bool) -> Task:
        """Mark a task complete or open again. Assignee only.

        Setting the state the task is already in changes nothing, so the
        original completion timestamp survives a repeated "complete".
        """
        task = self._load(task_id)
        policy.require_ownership(
            identity,
            task,
            policy.can_complete_task,
            "only the assignee may change completion",
        )
        if task.completed == completed:
            return task
        if not self.tasks.set_completion(task_id, completed):
            raise NotFound("Task not found")
        return self._load(task_id)

    def update_task(self, identity: Identity, task_id: int, title: str, description: Optional[str]) -> Task:
        """Replace title and description. Creator or ADMIN only."""
        task = self._load(task_id)
        policy.require_ownership(
            identity,
            task,
            policy.is_task_creator,
            "only the creator or an admin may edit this task",
            admin_bypass=True,
        )
        if not self.tasks.update_details(task_id, title, description):
            raise NotFound("Task not found")
        return self._load(task_id)

    def delete_task(self, identity: Identity, task_id: int) -> None:
        """Delete a task. Creator or ADMIN only."""
        task = self._load(task_id)
        policy.require_ownership(
            identity,
            task,
            policy.is_task_creator,
            "only the creator or an admin may delete this task",
            admin_bypass=True,
        )
        self.tasks.delete_task(task_id)
        logger.info("Task %d deleted by %s", task_id, identity.username)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, task_id: int) -> Task:
        task = self.tasks.get_task(task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    def _current_user(self, identity: Identity) -> User:
        user = self.users.get_by_username(identity.username)
        if user is None:
            raise NotFound("User not found")
        return user
