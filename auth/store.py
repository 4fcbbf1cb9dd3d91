"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as tasks/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route, service, and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  username is UNIQUE at the SQL level. exists_by_username() is the fast path
  for registration; the UNIQUE constraint is the backstop when two concurrent
  registrations race past that check.

Roles are stored as a JSON array in a TEXT column, sorted so two equal role
sets always serialize identically.

`metadata` is shared with tasks/store.py so the tasks table can declare a
foreign key to users.id and both tables live in one database.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("roles", Text, nullable=False, server_default='["USER"]'),  # JSON array
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine with the SQLite tweaks both stores need."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_roles(roles) -> str:
    return json.dumps(sorted(roles))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        store.create_user(User(username="admin", hashed_password=hash_password("secret"),
                               roles=frozenset({"ADMIN"})))
        user = store.get_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        Callers (auth.accounts.register_user) translate that into
        ValidationConflict.
        """
        roles = user.roles or frozenset({"USER"})
        with self.engine.connect() as conn:
            result = conn.execute(
                users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    roles=_dump_roles(roles),
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.username == username)).first()
        return _row_to_user(row) if row is not None else None

    def exists_by_username(self, username: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(users.c.id).where(users.c.username == username)).first()
        return row is not None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).first()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(users.select().order_by(users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_roles(self, user_id: int, roles) -> bool:
        """Replace a user's role set. Not exposed over HTTP.

        Tokens issued before the change stop validating on their next use
        because is_token_valid() compares the token's roles to this record.

        Returns True if a row was updated, False if user_id was not found.
        Raises ValueError on an empty role set.
        """
        if not roles:
            raise ValueError("A user must hold at least one role.")
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(roles=_dump_roles(roles)))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        roles=frozenset(json.loads(row.roles)),
        created_at=row.created_at,
    )
