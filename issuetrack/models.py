"""Data models and enums for issuetrack."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Priority(Enum):
    """Priority levels for issues."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def from_string(cls, value: str) -> "Priority":
        """Create Priority from string value (case-insensitive)."""
        for priority in cls:
            if priority.value.lower() == str(value).strip().lower():
                return priority
        raise ValueError(
            f"Invalid priority: {value}. Must be one of: {', '.join([p.value for p in cls])}"
        )


class Status(Enum):
    """Workflow states for issues."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def from_string(cls, value: str) -> "Status":
        """Create Status from string value.

        Accepts any case and the common spellings of "In Progress"
        ("in-progress", "inprogress", "InProgress").
        """
        normalized = str(value).strip().lower().replace("-", "").replace("_", "").replace(" ", "")
        for status in cls:
            if status.value.lower().replace(" ", "") == normalized:
                return status
        raise ValueError(
            f"Invalid status: {value}. Must be one of: {', '.join([s.value for s in cls])}"
        )


@dataclass
class User:
    """An authenticated user of the tracker."""

    id: Optional[int] = field(default=None)
    email: str = field(default="")
    display_name: Optional[str] = field(default=None)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def label(self) -> str:
        return self.display_name or self.email

    def to_dict(self) -> dict[str, Any]:
        """Convert user to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "email": self.email,
            "displayName": self.display_name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class Issue:
    """Represents an issue in the tracking system."""

    id: Optional[str] = field(default=None)
    title: str = field(default="")
    description: str = field(default="")
    priority: Priority = field(default=Priority.MEDIUM)
    status: Status = field(default=Status.OPEN)
    assigned_to: str = field(default="")
    created_by: str = field(default="")
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Convert issue to the persisted record shape."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "status": self.status.value,
            "assignedTo": self.assigned_to,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Issue":
        """Create Issue from a record dictionary (camelCase or snake_case keys)."""
        issue = cls()
        issue.id = data.get("id")
        issue.title = data.get("title", "")
        issue.description = data.get("description") or ""

        if data.get("priority"):
            issue.priority = Priority.from_string(data["priority"])

        if data.get("status"):
            issue.status = Status.from_string(data["status"])

        issue.assigned_to = data.get("assignedTo", data.get("assigned_to")) or ""
        issue.created_by = data.get("createdBy", data.get("created_by")) or ""

        created_at = data.get("createdAt", data.get("created_at"))
        if created_at:
            if isinstance(created_at, str):
                # fromisoformat() only learned the "Z" suffix in 3.11
                issue.created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
            else:
                issue.created_at = created_at

        return issue


@dataclass
class SimilarityCandidate:
    """An existing issue judged a likely duplicate of a new title.

    Lives only for the duration of one creation attempt; never persisted.
    """

    issue: Issue
    score: float

    def to_dict(self) -> dict[str, Any]:
        """Convert candidate to dictionary for JSON serialization."""
        result = self.issue.to_dict()
        result["similarity"] = round(self.score, 3)
        return result
