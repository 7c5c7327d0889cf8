"""Custom exceptions for issuetrack."""


class IssueTrackError(Exception):
    """Base exception for issuetrack errors."""


class InvalidRecord(IssueTrackError):
    """A corpus record handed to the duplicate detector has no usable title."""


class TransitionRejected(IssueTrackError):
    """A status change violates the workflow rule."""

    def __init__(self, message: str, description: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.description = description


class Unauthorized(IssueTrackError):
    """The caller has no valid session or supplied bad credentials."""


class PersistenceFailure(IssueTrackError):
    """The issue store could not complete a read or write."""


class IssueNotFound(IssueTrackError):
    """Issue with given ID does not exist."""


class RegistrationError(IssueTrackError):
    """A new account could not be registered."""


class SubmissionInProgress(IssueTrackError):
    """A creation workflow was asked to submit while already submitting."""
