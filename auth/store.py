"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

DB URL: Settings.database_url (sqlite:///sitegate_auth.db by default).

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(150), nullable=False, unique=True),
    Column("email", String(254), nullable=False, server_default=""),
    Column("hashed_password", Text),  # NULL = unusable password
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
    Column("is_active", Integer, nullable=False, server_default="1"),
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


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        store.create_user(User(username="admin", role="admin", hashed_password=hash_password("secret")))
        user = store.get_by_username("admin")
        store.close()
    """

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

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_active_by_email(self, email: str) -> list[User]:
        """Return every active user whose email matches, case-insensitively.

        More than one account may share an address; password reset mails
        each of them, and the email login backend picks the first by id.
        """
        if not email:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select()
                .where((func.lower(_users.c.email) == email.lower()) & (_users.c.is_active == 1))
                .order_by(_users.c.id)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def list_users(self, limit: int | None = None, offset: int = 0) -> list[User]:
        """Return users ordered by username, optionally one page at a time."""
        query = _users.select().order_by(_users.c.username).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        Callers (sign-up page, admin API) turn that into a form error or 409.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email or "",
                    hashed_password=user.hashed_password,
                    role=user.role,
                    created_at=_now_iso(),
                    is_active=1 if user.is_active else 0,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def set_password(self, user_id: int, hashed_password: str | None) -> bool:
        """Replace the stored password hash. None makes the password unusable."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(hashed_password=hashed_password)
            )
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> None:
        """Stamp the current UTC timestamp as last_login for the given user."""
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email or "",
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
        last_login=row.last_login,
        is_active=bool(row.is_active),
    )
