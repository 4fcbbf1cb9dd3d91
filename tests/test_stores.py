"""
tests/test_stores.py -- Unit tests for auth/store.py and tasks/store.py.

Covers:
  - UserStore: unique usernames, role round trip, update_roles
  - TaskStore: joined reads, scoped listings, counts, completion timestamps
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from tasks.models import Task, UserRef


def _ref(user: User) -> UserRef:
    return UserRef(id=user.id, username=user.username)


def _add_task(task_store, assignee: User, creator: User, title: str = "Task") -> int:
    return task_store.create_task(Task(title=title, assigned_to=_ref(assignee), created_by=_ref(creator)))


class TestUserStore:
    def test_roles_round_trip(self, user_store, make_user) -> None:
        user = make_user("mia", "MANAGER", "USER")
        assert user_store.get_by_username("mia").roles == frozenset({"MANAGER", "USER"})
        assert user.created_at, "created_at must be stamped on insert"

    def test_username_is_unique(self, user_store, make_user) -> None:
        make_user("alice")
        with pytest.raises(IntegrityError):
            user_store.create_user(User(username="alice", hashed_password="x"))

    def test_lookup_is_case_sensitive(self, user_store, make_user) -> None:
        make_user("alice")
        assert user_store.get_by_username("Alice") is None
        assert user_store.exists_by_username("alice")
        assert not user_store.exists_by_username("Alice")

    def test_list_users_is_ordered_by_username(self, user_store, make_user) -> None:
        for name in ("carol", "alice", "bob"):
            make_user(name)
        assert [u.username for u in user_store.list_users()] == ["alice", "bob", "carol"]

    def test_update_roles(self, user_store, make_user) -> None:
        user = make_user("alice", "MANAGER")
        assert user_store.update_roles(user.id, {"USER"})
        assert user_store.get_by_id(user.id).roles == frozenset({"USER"})
        assert not user_store.update_roles(9999, {"USER"})

    def test_update_roles_rejects_empty_set(self, user_store, make_user) -> None:
        user = make_user("alice")
        with pytest.raises(ValueError):
            user_store.update_roles(user.id, set())


class TestTaskStore:
    def test_create_and_get_resolves_both_users(self, task_store, make_user) -> None:
        bob, mia = make_user("bob"), make_user("mia", "MANAGER")
        task_id = _add_task(task_store, bob, mia, "Write report")
        task = task_store.get_task(task_id)
        assert task.title == "Write report"
        assert task.assigned_to == _ref(bob)
        assert task.created_by == _ref(mia)
        assert task.completed is False
        assert task.completed_at is None
        assert task.created_at

    def test_get_missing_returns_none(self, task_store) -> None:
        assert task_store.get_task(12345) is None

    def test_assigned_to_listing(self, task_store, make_user) -> None:
        bob, amy, mia = make_user("bob"), make_user("amy"), make_user("mia", "MANAGER")
        mine = _add_task(task_store, bob, mia)
        _add_task(task_store, amy, mia)
        assert [t.id for t in task_store.list_assigned_to(bob.id)] == [mine]

    def test_involved_listing_has_no_duplicates(self, task_store, make_user) -> None:
        """A task both assigned to and created by the same user appears once."""
        bob, mia, ada = make_user("bob"), make_user("mia", "MANAGER"), make_user("ada", "ADMIN")
        created = _add_task(task_store, bob, mia)
        assigned = _add_task(task_store, mia, ada)
        both = _add_task(task_store, mia, mia)
        _add_task(task_store, bob, ada)
        ids = [t.id for t in task_store.list_assigned_to_or_created_by(mia.id)]
        assert ids == [created, assigned, both]

    def test_counts(self, task_store, make_user) -> None:
        bob, amy, mia = make_user("bob"), make_user("amy"), make_user("mia", "MANAGER")
        t1 = _add_task(task_store, bob, mia)
        _add_task(task_store, bob, mia)
        _add_task(task_store, amy, mia)
        task_store.set_completion(t1, True)
        assert task_store.count_tasks() == 3
        assert task_store.count_tasks(completed=True) == 1
        assert task_store.count_tasks(assigned_to_id=bob.id) == 2
        assert task_store.count_tasks(assigned_to_id=bob.id, completed=True) == 1
        assert task_store.count_tasks(involving_user_id=mia.id) == 3
        assert task_store.count_tasks(assigned_to_id=amy.id, completed=True) == 0

    def test_completion_sets_and_clears_timestamp(self, task_store, make_user) -> None:
        bob, mia = make_user("bob"), make_user("mia", "MANAGER")
        task_id = _add_task(task_store, bob, mia)

        assert task_store.set_completion(task_id, True)
        done = task_store.get_task(task_id)
        assert done.completed and done.completed_at is not None

        assert task_store.set_completion(task_id, False)
        reopened = task_store.get_task(task_id)
        assert not reopened.completed and reopened.completed_at is None

    def test_update_and_delete(self, task_store, make_user) -> None:
        bob, mia = make_user("bob"), make_user("mia", "MANAGER")
        task_id = _add_task(task_store, bob, mia, "Old")
        assert task_store.update_details(task_id, "New", "details")
        task = task_store.get_task(task_id)
        assert (task.title, task.description) == ("New", "details")
        assert task_store.delete_task(task_id)
        assert task_store.get_task(task_id) is None
        assert not task_store.delete_task(task_id)
        assert not task_store.set_completion(task_id, True)
