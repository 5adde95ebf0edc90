"""
HoneyBadger Client - Token Store

Holds the single bearer token the API client attaches to authenticated
requests, and mirrors every transition to a pluggable persistence backend.

States:
    Empty -> Present(token)     on successful login/signup
    Present -> Present(token')  on re-login
    Present -> Empty            on logout, 401/403, or explicit clear
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


# =============================================================================
# Persistence Backends
# =============================================================================

class TokenStorageError(Exception):
    """The persistence backend could not read or write the token."""
    pass


class TokenStorage(Protocol):
    """
    Persisted key/value slot for the auth token.

    Implementations report their own failures as TokenStorageError.
    """

    def load(self) -> Optional[str]: ...

    def save(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStorage:
    """Process-local storage, for tests and throwaway sessions."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class SqliteTokenStorage:
    """SQLite-backed single-row token storage."""

    BUSY_TIMEOUT = 30.0

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS auth_token (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        token TEXT NOT NULL,
        saved_at TEXT NOT NULL
    );
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(self.SCHEMA)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """
        Get a database connection with proper cleanup.

        A locked database is waited on for up to BUSY_TIMEOUT seconds by
        SQLite itself; any sqlite3 error surfaces as TokenStorageError.
        """
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.BUSY_TIMEOUT)
        except sqlite3.Error as e:
            raise TokenStorageError(f"Cannot open token database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise TokenStorageError(f"Token database error: {e}") from e
        finally:
            conn.close()

    def load(self) -> Optional[str]:
        """Get the stored token, if any."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT token FROM auth_token WHERE id = 1").fetchone()
            return row["token"] if row else None

    def save(self, token: str) -> None:
        """Store the token, replacing any previous one."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO auth_token (id, token, saved_at)
                VALUES (1, ?, ?)
                """,
                (token, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()

    def clear(self) -> None:
        """Remove the stored token."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM auth_token WHERE id = 1")
            conn.commit()


# =============================================================================
# Token Store
# =============================================================================

class TokenStore:
    """Owns the current auth token; every transition is atomic."""

    def __init__(self, storage: Optional[TokenStorage] = None):
        self.storage: TokenStorage = storage if storage is not None else MemoryTokenStorage()
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        try:
            self._token = self.storage.load() or None
        except TokenStorageError as e:
            logger.warning(f"Could not restore persisted auth token: {e}")
        if self._token:
            logger.debug("Restored persisted auth token")

    @property
    def token(self) -> Optional[str]:
        """The held token, or None when empty."""
        with self._lock:
            return self._token

    @property
    def is_present(self) -> bool:
        return self.token is not None

    def set(self, token: str) -> None:
        """
        Replace the held token.

        The in-memory token is always updated; a persistence failure only
        means the session will not survive a restart, and is logged.
        """
        if not token:
            raise ValueError("Refusing to store an empty token")
        with self._lock:
            self._token = token
            try:
                self.storage.save(token)
            except TokenStorageError as e:
                logger.warning(f"Auth token kept in memory only: {e}")
        logger.info("Auth token stored")

    def clear(self) -> None:
        """Drop the held token (logout, 401/403 or external clear)."""
        with self._lock:
            had_token = self._token is not None
            self._token = None
            try:
                self.storage.clear()
            except TokenStorageError as e:
                logger.error(f"Persisted auth token could not be removed: {e}")
        if had_token:
            logger.info("Auth token cleared")

    def authorization_header(self) -> dict[str, str]:
        """Authorization header for the held token, empty when there is none."""
        token = self.token
        if token is None:
            return {}
        return {"Authorization": f"Bearer {token}"}
