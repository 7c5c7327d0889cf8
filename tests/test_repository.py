"""Tests for repository module."""

import tempfile

import pytest

from issuetrack.database import Database
from issuetrack.errors import IssueNotFound, PersistenceFailure, TransitionRejected, Unauthorized
from issuetrack.models import Priority, Status, User
from issuetrack.repository import IssueRepository


class TestIssueRepository:
    """Test IssueRepository class."""

    @pytest.fixture
    def repo(self):
        """Create a repository with temporary database."""
        with tempfile.NamedTemporaryFile(suffix=".db") as f:
            yield IssueRepository(Database(f.name))

    @pytest.fixture
    def user(self):
        """A signed-in user."""
        return User(id=1, email="dev@example.com")

    @pytest.fixture
    def fields(self):
        """Fields for a new issue."""
        return {
            "title": "Test Issue",
            "description": "Test description",
            "priority": "High",
            "assigned_to": "qa@example.com",
            "created_by": "dev@example.com",
        }

    def test_create_issue(self, repo, user, fields):
        """Test creating an issue assigns id, status and timestamp."""
        created = repo.create(fields, user)

        assert created.id
        assert created.title == "Test Issue"
        assert created.description == "Test description"
        assert created.priority == Priority.HIGH
        assert created.status == Status.OPEN
        assert created.assigned_to == "qa@example.com"
        assert created.created_by == "dev@example.com"
        assert created.created_at is not None

    def test_create_ignores_requested_status(self, repo, user, fields):
        """Test new issues always start Open."""
        fields["status"] = "Done"
        assert repo.create(fields, user).status == Status.OPEN

    def test_create_defaults_created_by_to_caller(self, repo, user, fields):
        """Test the caller's email is used when created_by is missing."""
        del fields["created_by"]
        assert repo.create(fields, user).created_by == "dev@example.com"

    def test_create_unique_ids(self, repo, user, fields):
        """Test every issue gets its own id."""
        first = repo.create(fields, user)
        second = repo.create(fields, user)
        assert first.id != second.id

    def test_create_issue_missing_title(self, repo, user, fields):
        """Test that creating issue without title raises error."""
        fields["title"] = "   "
        with pytest.raises(ValueError, match="Title is required"):
            repo.create(fields, user)

    def test_create_invalid_priority(self, repo, user, fields):
        """Test that an unknown priority is rejected."""
        fields["priority"] = "urgent"
        with pytest.raises(ValueError, match="Invalid priority"):
            repo.create(fields, user)

    def test_get_issue(self, repo, user, fields):
        """Test getting an issue by ID."""
        created = repo.create(fields, user)
        retrieved = repo.get_issue(created.id, user)

        assert retrieved == created

    def test_get_nonexistent_issue(self, repo, user):
        """Test getting non-existent issue returns None."""
        assert repo.get_issue("missing", user) is None

    def test_fetch_all(self, repo, user, fields):
        """Test the full corpus is returned."""
        repo.create(fields, user)
        fields["title"] = "Second"
        repo.create(fields, user)

        titles = {issue.title for issue in repo.fetch_all(user)}
        assert titles == {"Test Issue", "Second"}

    @pytest.mark.parametrize(
        "call",
        [
            lambda repo: repo.fetch_all(None),
            lambda repo: repo.create({"title": "x"}, None),
            lambda repo: repo.update_status("1", Status.DONE, None),
            lambda repo: repo.get_issue("1", None),
            lambda repo: repo.list_issues(None),
        ],
    )
    def test_requires_authenticated_caller(self, repo, call):
        """Test every operation rejects anonymous callers."""
        with pytest.raises(Unauthorized):
            call(repo)

    def test_update_status(self, repo, user, fields):
        """Test a permitted status change is stored."""
        created = repo.create(fields, user)

        repo.update_status(created.id, Status.IN_PROGRESS, user)

        assert repo.get_issue(created.id, user).status == Status.IN_PROGRESS

    def test_update_status_accepts_strings(self, repo, user, fields):
        """Test status strings are parsed."""
        created = repo.create(fields, user)
        repo.update_status(created.id, "in-progress", user)
        assert repo.get_issue(created.id, user).status == Status.IN_PROGRESS

    def test_store_rejects_open_to_done(self, repo, user, fields):
        """Test the store enforces the rule without any local check."""
        created = repo.create(fields, user)

        with pytest.raises(TransitionRejected):
            repo.update_status(created.id, Status.DONE, user)

        assert repo.get_issue(created.id, user).status == Status.OPEN

    def test_open_in_progress_done(self, repo, user, fields):
        """Test the full workflow succeeds step by step."""
        created = repo.create(fields, user)

        repo.update_status(created.id, Status.IN_PROGRESS, user)
        repo.update_status(created.id, Status.DONE, user)

        assert repo.get_issue(created.id, user).status == Status.DONE

    def test_done_can_reopen(self, repo, user, fields):
        """Test Done can move anywhere, including straight back to Open."""
        created = repo.create(fields, user)
        repo.update_status(created.id, Status.IN_PROGRESS, user)
        repo.update_status(created.id, Status.DONE, user)

        repo.update_status(created.id, Status.OPEN, user)

        assert repo.get_issue(created.id, user).status == Status.OPEN

    def test_update_missing_issue(self, repo, user):
        """Test updating an unknown issue raises IssueNotFound."""
        with pytest.raises(IssueNotFound):
            repo.update_status("missing", Status.IN_PROGRESS, user)

    def test_list_issues_newest_first(self, repo, user, fields):
        """Test listing orders by creation time, newest first."""
        for title in ["First", "Second", "Third"]:
            fields["title"] = title
            repo.create(fields, user)

        titles = [issue.title for issue in repo.list_issues(user)]
        assert titles == ["Third", "Second", "First"]

    def test_list_issues_filters(self, repo, user, fields):
        """Test status and priority filters."""
        fields["title"] = "High open"
        repo.create(fields, user)
        fields["title"] = "Low moving"
        fields["priority"] = "Low"
        moving = repo.create(fields, user)
        repo.update_status(moving.id, Status.IN_PROGRESS, user)

        assert [i.title for i in repo.list_issues(user, status="Open")] == ["High open"]
        assert [i.title for i in repo.list_issues(user, status="In Progress")] == ["Low moving"]
        assert [i.title for i in repo.list_issues(user, priority="low")] == ["Low moving"]
        assert repo.list_issues(user, status="Done") == []
        assert len(repo.list_issues(user, status="All", priority="All")) == 2

    def test_list_issues_invalid_filter(self, repo, user):
        """Test an unknown filter value raises ValueError."""
        with pytest.raises(ValueError, match="Invalid status"):
            repo.list_issues(user, status="closed")

    def test_persistence_failure_wraps_sqlite_errors(self, repo, user):
        """Test storage errors surface as PersistenceFailure with the message."""
        with repo.db.get_connection() as conn:
            conn.execute("DROP TABLE issues")

        with pytest.raises(PersistenceFailure, match="no such table"):
            repo.fetch_all(user)
