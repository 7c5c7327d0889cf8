"""SQLite storage for issues and accounts."""

import contextlib
import sqlite3
import threading
from pathlib import Path
from typing import Any, Generator, Optional

from issuetrack.config import DEFAULT_DB_PATH

SCHEMA = """
CREATE TABLE IF NOT EXISTS issues (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    priority TEXT NOT NULL DEFAULT 'Medium',
    status TEXT NOT NULL DEFAULT 'Open',
    assigned_to TEXT NOT NULL DEFAULT '',
    created_by TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
    display_name TEXT,
    password_hash TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_issues_status ON issues(status);
CREATE INDEX IF NOT EXISTS idx_issues_priority ON issues(priority);
CREATE INDEX IF NOT EXISTS idx_issues_created_at ON issues(created_at);
"""


class Database:
    """One SQLite file, shared by the issue store and the auth service.

    Each thread gets its own long-lived connection; the file runs in WAL
    mode so waitress worker threads can read while another writes.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        """Open (and if needed create) the database.

        Args:
            db_path: Path to the SQLite file. Defaults to ./.issuetrack.db.
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        if self.db_path.parent != Path("."):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        # journal_mode is stored in the file itself
        self._wal_enabled = False

        with self.get_connection() as conn:
            conn.executescript(SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            return conn

        # Connections never cross threads; each lives in self._local
        conn = sqlite3.connect(str(self.db_path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 30000")
        conn.execute("PRAGMA temp_store = MEMORY")
        if not self._wal_enabled:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            self._wal_enabled = True

        self._local.connection = conn
        return conn

    @contextlib.contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Run a unit of work on this thread's connection.

        Yields:
            sqlite3.Connection: Committed when the block exits normally,
            rolled back when it raises.
        """
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def close_connection(self) -> None:
        """Close this thread's connection; the next call reopens it."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            return
        with contextlib.suppress(sqlite3.Error):
            conn.close()
        self._local.connection = None

    def clear_database(self, confirm: bool = False) -> int:
        """Delete every issue. Accounts are kept.

        Returns:
            Number of issues deleted.

        Raises:
            ValueError: Unless confirm is True.
        """
        if not confirm:
            raise ValueError("Must set confirm=True to clear database")

        with self.get_connection() as conn:
            return conn.execute("DELETE FROM issues").rowcount

    def get_database_info(self) -> dict[str, Any]:
        """Row counts and file size, for the CLI "info" command."""
        with self.get_connection() as conn:
            issue_count = conn.execute("SELECT COUNT(*) FROM issues").fetchone()[0]
            user_count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]

        return {
            "database_path": str(self.db_path),
            "issue_count": issue_count,
            "user_count": user_count,
            "database_size_bytes": self.db_path.stat().st_size if self.db_path.exists() else 0,
        }
