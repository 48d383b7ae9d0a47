"""Credential stores for user accounts."""
from __future__ import annotations

import itertools
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import DuplicateEmail, StorageUnavailable
from .models import User

logger = logging.getLogger("modemode.database")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "modemode.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


class CredentialStore(ABC):
    """Persistence contract for user records.

    ``create_user`` must be atomic with respect to the email uniqueness
    check: of two concurrent calls with the same email exactly one returns
    a :class:`User` and the other raises :class:`DuplicateEmail`.
    """

    def initialize(self) -> None:
        """Prepare the backing storage. Safe to call more than once."""

    @abstractmethod
    def create_user(self, email: str, name: str, password_hash: str) -> User:
        raise NotImplementedError

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    @abstractmethod
    def list_users(self) -> List[User]:
        raise NotImplementedError

    def count_users(self) -> int:
        return len(self.list_users())


class InMemoryCredentialStore(CredentialStore):
    """Process-local store used for tests and throwaway runs.

    Each email has its own lock, so signups for different addresses never
    wait on each other. ``_registry_lock`` only guards handing out those
    per-email locks and the id counter.
    """

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._users_by_id: Dict[int, User] = {}
        self._ids = itertools.count(1)
        self._registry_lock = threading.Lock()
        self._email_locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, email: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._email_locks.get(email)
            if lock is None:
                lock = self._email_locks[email] = threading.Lock()
            return lock

    def _next_id(self) -> int:
        with self._registry_lock:
            return next(self._ids)

    def create_user(self, email: str, name: str, password_hash: str) -> User:
        with self._lock_for(email):
            if email in self._users:
                raise DuplicateEmail()
            user = User(
                id=self._next_id(),
                email=email,
                name=name,
                password_hash=password_hash,
                created_at=_current_timestamp(),
            )
            self._users_by_id[user.id] = user
            self._users[email] = user
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self._users.get(email)

    def get_user(self, user_id: int) -> Optional[User]:
        return self._users_by_id.get(user_id)

    def list_users(self) -> List[User]:
        users = list(self._users_by_id.copy().values())
        return sorted(users, key=lambda user: user.id)

    def count_users(self) -> int:
        return len(self._users_by_id)


class SQLiteCredentialStore(CredentialStore):
    """SQLite-backed store; uniqueness is enforced by the ``users.email`` constraint."""

    def __init__(self, path: Path, *, timeout: float = 30.0) -> None:
        self._path = path
        self._timeout = timeout

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=self._timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.error("Unable to open credential database at %s: %s", self._path, exc)
            raise StorageUnavailable() from exc
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            logger.error("Credential database operation failed: %s", exc)
            raise StorageUnavailable() from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the ``users`` table if it does not already exist."""

        try:
            _ensure_directory(self._path)
        except OSError as exc:
            raise StorageUnavailable() from exc

        with self._transaction() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, email: str, name: str, password_hash: str) -> User:
        """Insert a new user, failing with :class:`DuplicateEmail` on a taken email."""

        created_at = _current_timestamp()
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO users (email, name, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (email, name, password_hash, _serialize_datetime(created_at)),
                )
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise DuplicateEmail() from exc

        return User(
            id=int(user_id),
            email=email,
            name=name,
            password_hash=password_hash,
            created_at=created_at,
        )

    def find_by_email(self, email: str) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) FROM users").fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            email=str(row["email"]),
            name=str(row["name"]),
            password_hash=str(row["password_hash"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "SQLiteCredentialStore",
    "resolve_database_path",
]
