"""
account/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Search terms are LIKE-escaped (autoescape) so "%" and "_" match literally.

Deleted accounts are soft-deleted (is_deleted=1). Every read filters them out,
and the username uniqueness check only considers live accounts, so a deleted
username can be registered again.

Layer rule: no imports from api/, auth/, or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from account.models import User

_DEFAULT_DB_URL = "sqlite:///account.db"

# Columns callers may change through update_user().
_MUTABLE_FIELDS = {"password_digest", "description", "is_deleted"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(64), nullable=False, index=True),
    Column("password_digest", String(128), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("is_deleted", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
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


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


_live = _users.c.is_deleted == 0


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User accounts.

    Usage:
        store = UserStore("sqlite:///account.db")
        uid = store.create_user(User(username="alice", password_digest=hasher.hash("pw")))
        user = store.find_by_credentials("alice", hasher.hash("pw"))
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_credentials(self, username: str, password_digest: str) -> User | None:
        """Return the live account matching both username and digest, else None.

        "Unknown user" and "wrong password" both come back as None -- the
        caller cannot tell them apart.
        """
        if not username or not password_digest:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(
                    _live & (_users.c.username == username) & (_users.c.password_digest == password_digest)
                )
            ).first()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a live account by primary key. Returns None if not found."""
        if user_id <= 0:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_live & (_users.c.id == user_id))).first()
        return _row_to_user(row) if row is not None else None

    def is_name_duplicate(self, username: str) -> bool:
        """Return True if a live account already uses username."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(_live & (_users.c.username == username))).first()
        return row is not None

    def list_users(self, search: str = "", limit: int = 10, offset: int = 0) -> tuple[list[User], int]:
        """Return one page of live accounts plus the total match count.

        search matches a substring of username OR description. An empty
        search matches every live account. Results are ordered by id.
        """
        condition = _live
        if search:
            condition = condition & or_(
                _users.c.username.contains(search, autoescape=True),
                _users.c.description.contains(search, autoescape=True),
            )
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_users).where(condition)).scalar()
            rows = conn.execute(
                _users.select().where(condition).order_by(_users.c.id).limit(limit).offset(offset)
            ).fetchall()
        return [_row_to_user(r) for r in rows], total or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new account and return its assigned database ID.

        Username uniqueness among live accounts is the caller's check
        (is_name_duplicate), since deleted rows may share the name.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    password_digest=user.password_digest,
                    description=user.description,
                    is_deleted=1 if user.is_deleted else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on a live account.

        Accepted fields: password_digest, description, is_deleted.
        Unknown keys raise ValueError rather than being silently ignored.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        if "is_deleted" in fields:
            fields["is_deleted"] = 1 if fields["is_deleted"] else 0
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_live & (_users.c.id == user_id)).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def soft_delete(self, user_id: int) -> bool:
        """Mark an account deleted. Returns False if it was not found."""
        return self.update_user(user_id, is_deleted=True)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_digest=row.password_digest,
        description=row.description or "",
        is_deleted=bool(row.is_deleted),
        created_at=row.created_at,
    )
