"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database, not by a read-then-write check.
  Two concurrent registrations for the same email can both pass the
  service's find_by_email() pre-check; the UNIQUE index makes exactly one
  insert win and the other raise DuplicateKeyError [M1].

Identifiers are opaque 32-char hex strings (uuid4) generated here, never by
callers, so the public id reveals nothing about account count or order.

Layer rule: no imports from api/, accounts/, or mail/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Gender, User
from core.config import get_settings
from core.errors import DuplicateKeyError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_secret", Text, nullable=False),
    Column("first_name", String(64), nullable=False),
    Column("last_name", String(64), nullable=False),
    Column("verified", Integer, nullable=False, server_default="0"),
    Column("avatar_url", Text),
    Column("gender", String(16)),  # NULL = not provided
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.create(User(email="a@x.com", password_secret=..., first_name="A", last_name="B"))
        store.update(user.id, verified=True)
        store.close()
    """

    # Mutable columns. Validated before any SQL write so a typo in a caller
    # fails loudly instead of being silently dropped.
    _UPDATABLE_FIELDS: frozenset = frozenset(
        {"password_secret", "first_name", "last_name", "verified", "avatar_url", "gender"}
    )

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def count(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user: User) -> User:
        """Insert a new user and return it with id and timestamps assigned.

        Any id or timestamps already set on the argument are ignored.

        Raises DuplicateKeyError if the email is already taken, including when
        a concurrent request inserted it after the caller's pre-check [M1].
        """
        now = _now_iso()
        record = User(
            id=uuid.uuid4().hex,
            email=user.email,
            password_secret=user.password_secret,
            first_name=user.first_name,
            last_name=user.last_name,
            verified=user.verified,
            avatar_url=user.avatar_url,
            gender=user.gender,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=record.id,
                        email=record.email,
                        password_secret=record.password_secret,
                        first_name=record.first_name,
                        last_name=record.last_name,
                        verified=1 if record.verified else 0,
                        avatar_url=record.avatar_url,
                        gender=record.gender.value if record.gender else None,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKeyError("email") from exc
        return record

    def update(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user and stamp updated_at.

        Accepted fields: see _UPDATABLE_FIELDS. Unknown keys raise ValueError.
        verified must be passed as bool; gender as Gender or None.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "verified" in fields:
            fields["verified"] = 1 if fields["verified"] else 0
        if isinstance(fields.get("gender"), Gender):
            fields["gender"] = fields["gender"].value
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
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
        email=row.email,
        password_secret=row.password_secret,
        first_name=row.first_name,
        last_name=row.last_name,
        verified=bool(row.verified),
        avatar_url=row.avatar_url,
        gender=Gender(row.gender) if row.gender else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
