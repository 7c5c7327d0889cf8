"""Repository layer for issue persistence.

Every operation requires an authenticated caller and re-checks the status
transition rule against the stored record, whatever the caller checked.
"""

import contextlib
import sqlite3
import uuid
from typing import Any, Generator, List, Optional, Union

from issuetrack.database import Database
from issuetrack.errors import IssueNotFound, PersistenceFailure, TransitionRejected, Unauthorized
from issuetrack.logging import get_logger
from issuetrack.models import Issue, Priority, Status, User, utcnow
from issuetrack.transitions import check_transition

logger = get_logger("repository")

FILTER_ALL = "All"


class IssueRepository:
    """Handles all issue-related database operations."""

    def __init__(self, db: Database) -> None:
        """Initialize repository.

        Args:
            db: Database connection manager.
        """
        self.db = db

    @contextlib.contextmanager
    def _transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Open a connection, translating sqlite errors to PersistenceFailure."""
        try:
            with self.db.get_connection() as conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("Persistence failure: %s", e)
            raise PersistenceFailure(str(e)) from e

    @staticmethod
    def _require_user(user: Optional[User]) -> User:
        if user is None:
            raise Unauthorized("Authentication required")
        return user

    def fetch_all(self, user: Optional[User]) -> List[Issue]:
        """Get the full issue corpus.

        Args:
            user: Authenticated caller.

        Returns:
            Every stored issue. Callers must not rely on the order.

        Raises:
            Unauthorized: If no user is given.
            PersistenceFailure: If the database cannot be read.
        """
        self._require_user(user)
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM issues").fetchall()
            return [self._row_to_issue(row) for row in rows]

    def create(self, fields: dict[str, Any], user: Optional[User]) -> Issue:
        """Create a new issue.

        Args:
            fields: title, description, priority, assigned_to, created_by.
            user: Authenticated caller.

        Returns:
            Issue: Stored issue with id, status Open and creation time set.

        Raises:
            Unauthorized: If no user is given.
            ValueError: If the title is blank or the priority is invalid.
            PersistenceFailure: If the insert fails.
        """
        caller = self._require_user(user)

        title = (fields.get("title") or "").strip()
        if not title:
            raise ValueError("Title is required")

        priority = fields.get("priority") or Priority.MEDIUM
        if not isinstance(priority, Priority):
            priority = Priority.from_string(priority)

        issue = Issue(
            id=uuid.uuid4().hex,
            title=title,
            description=fields.get("description") or "",
            priority=priority,
            status=Status.OPEN,
            assigned_to=fields.get("assigned_to") or "",
            created_by=fields.get("created_by") or caller.email,
            created_at=utcnow(),
        )

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO issues (id, title, description, priority, status,
                                    assigned_to, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    issue.id,
                    issue.title,
                    issue.description,
                    issue.priority.value,
                    issue.status.value,
                    issue.assigned_to,
                    issue.created_by,
                    issue.created_at.isoformat(),
                ),
            )

        logger.info("Issue %s created by %s: %r", issue.id, issue.created_by, issue.title)
        return issue

    def get_issue(self, issue_id: str, user: Optional[User]) -> Optional[Issue]:
        """Get an issue by ID.

        Args:
            issue_id: ID of the issue to retrieve.
            user: Authenticated caller.

        Returns:
            Issue if found, None otherwise.
        """
        self._require_user(user)
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM issues WHERE id = ?", (issue_id,)).fetchone()
            return self._row_to_issue(row) if row else None

    def update_status(
        self, issue_id: str, new_status: Union[Status, str], user: Optional[User]
    ) -> None:
        """Change an issue's status.

        Args:
            issue_id: ID of the issue to update.
            new_status: Requested status.
            user: Authenticated caller.

        Raises:
            Unauthorized: If no user is given.
            IssueNotFound: If the issue does not exist.
            TransitionRejected: If the change is Open to Done.
            PersistenceFailure: If the update fails.
        """
        self._require_user(user)
        if not isinstance(new_status, Status):
            new_status = Status.from_string(new_status)

        with self._transaction() as conn:
            row = conn.execute("SELECT status FROM issues WHERE id = ?", (issue_id,)).fetchone()
            if row is None:
                raise IssueNotFound(f"Issue {issue_id} not found")

            current = Status.from_string(row["status"])
            try:
                check_transition(current, new_status)
            except TransitionRejected:
                logger.warning(
                    "Rejected status change for %s: %s -> %s",
                    issue_id,
                    current.value,
                    new_status.value,
                )
                raise

            conn.execute(
                "UPDATE issues SET status = ? WHERE id = ?",
                (new_status.value, issue_id),
            )

        logger.info("Issue %s status %s -> %s", issue_id, current.value, new_status.value)

    def list_issues(
        self,
        user: Optional[User],
        status: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> List[Issue]:
        """List issues newest first with optional filters.

        Args:
            user: Authenticated caller.
            status: Exact status to keep; None or "All" keeps everything.
            priority: Exact priority to keep; None or "All" keeps everything.

        Returns:
            Matching issues ordered by creation time, newest first.

        Raises:
            ValueError: If a filter value is not a valid status or priority.
        """
        self._require_user(user)

        query = "SELECT * FROM issues WHERE 1=1"
        params: List[Any] = []

        if status and status != FILTER_ALL:
            query += " AND status = ?"
            params.append(Status.from_string(status).value)

        if priority and priority != FILTER_ALL:
            query += " AND priority = ?"
            params.append(Priority.from_string(priority).value)

        query += " ORDER BY created_at DESC, rowid DESC"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_issue(row) for row in rows]

    def _row_to_issue(self, row: Any) -> Issue:
        """Convert a database row (snake_case columns) to an Issue."""
        return Issue.from_dict(dict(row))
