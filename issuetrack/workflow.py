"""Issue creation and status-change workflows.

Both workflows receive the issue store and the signed-in user from their
caller. The creation workflow runs the duplicate check before persisting;
the status workflow checks the transition rule locally before the store
checks it again.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from issuetrack.errors import SubmissionInProgress, Unauthorized
from issuetrack.logging import get_logger
from issuetrack.models import Issue, Priority, SimilarityCandidate, Status, User
from issuetrack.repository import IssueRepository
from issuetrack.similarity import find_similar_issues, should_check_duplicates
from issuetrack.transitions import check_transition

logger = get_logger("workflow")

CREATED = "created"
SIMILAR = "similar"


@dataclass
class IssueDraft:
    """User input for a new issue, before it is persisted."""

    title: str = field(default="")
    description: str = field(default="")
    priority: str = field(default=Priority.MEDIUM.value)
    assigned_to: str = field(default="")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IssueDraft":
        """Build a draft from form or JSON fields (camelCase or snake_case).

        Raises:
            ValueError: If a field is present but not text.
        """
        values = {
            "title": data.get("title"),
            "description": data.get("description"),
            "priority": data.get("priority"),
            "assigned_to": data.get("assignedTo", data.get("assigned_to")),
        }
        for name, value in values.items():
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be text")

        return cls(
            title=values["title"] or "",
            description=values["description"] or "",
            priority=values["priority"] or Priority.MEDIUM.value,
            assigned_to=values["assigned_to"] or "",
        )

    def validate(self) -> None:
        """Check required fields.

        Raises:
            ValueError: If a required field is blank or the priority is invalid.
        """
        if not self.title.strip():
            raise ValueError("Title is required")
        if not self.description.strip():
            raise ValueError("Description is required")
        if not self.assigned_to.strip():
            raise ValueError("Assigned To is required")
        Priority.from_string(self.priority)


@dataclass
class CreationOutcome:
    """Result of one submission: either a new issue or a duplicate shortlist."""

    kind: str
    issue: Optional[Issue] = field(default=None)
    candidates: List[SimilarityCandidate] = field(default_factory=list)

    @property
    def created(self) -> bool:
        return self.kind == CREATED


class CreationWorkflow:
    """Runs the duplicate check and creates issues for one user."""

    def __init__(self, store: IssueRepository, user: Optional[User]) -> None:
        self.store = store
        self.user = user
        self.submitting = False

    def submit(self, draft: IssueDraft, force: bool = False) -> CreationOutcome:
        """Submit a new issue.

        Args:
            draft: Fields entered by the user.
            force: Skip the duplicate check ("Create Anyway").

        Returns:
            CreationOutcome with kind "similar" and the shortlist when likely
            duplicates exist, otherwise kind "created" and the stored issue.

        Raises:
            ValueError: If the draft is incomplete.
            SubmissionInProgress: If a submission is already running.
            Unauthorized: If the user is not signed in.
            PersistenceFailure: If the store cannot be read or written.
        """
        if self.user is None:
            raise Unauthorized("Authentication required")
        draft.validate()
        if self.submitting:
            raise SubmissionInProgress("A submission is already in progress")

        self.submitting = True
        try:
            if not force and should_check_duplicates(draft.title):
                corpus = self.store.fetch_all(self.user)
                candidates = find_similar_issues(draft.title, corpus)
                if candidates:
                    logger.info(
                        "Found %d similar issue(s) for %r", len(candidates), draft.title
                    )
                    return CreationOutcome(kind=SIMILAR, candidates=candidates)

            return CreationOutcome(kind=CREATED, issue=self._persist(draft))
        finally:
            self.submitting = False

    def proceed(self, draft: IssueDraft) -> Issue:
        """Create the issue despite a duplicate shortlist."""
        outcome = self.submit(draft, force=True)
        assert outcome.issue is not None  # forced submissions always persist
        return outcome.issue

    def _persist(self, draft: IssueDraft) -> Issue:
        fields = {
            "title": draft.title,
            "description": draft.description,
            "priority": draft.priority,
            "assigned_to": draft.assigned_to,
            "created_by": self.user.email if self.user else "",
        }
        return self.store.create(fields, self.user)


class StatusWorkflow:
    """Applies status changes with an immediate local rule check."""

    def __init__(self, store: IssueRepository, user: Optional[User]) -> None:
        self.store = store
        self.user = user

    def change_status(self, issue: Issue, new_status: Union[Status, str]) -> Status:
        """Move an issue to a new status.

        The local check compares the issue's recorded status with the
        requested one and rejects Open to Done before the store is called.

        Args:
            issue: Issue as last read from the store.
            new_status: Requested status.

        Returns:
            The status that was applied.

        Raises:
            TransitionRejected: If the change skips "In Progress".
            IssueNotFound: If the issue no longer exists.
            Unauthorized: If the user is not signed in.
            PersistenceFailure: If the update fails.
        """
        if not isinstance(new_status, Status):
            new_status = Status.from_string(new_status)

        check_transition(issue.status, new_status)

        assert issue.id is not None  # only stored issues can change status
        self.store.update_status(issue.id, new_status, self.user)
        issue.status = new_status
        return new_status
