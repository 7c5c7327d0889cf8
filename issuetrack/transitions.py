"""Status transition rule shared by local pre-checks and the issue store."""

from issuetrack.errors import TransitionRejected
from issuetrack.models import Status

REJECTED_MESSAGE = "Cannot move directly from Open to Done"
REJECTED_DESCRIPTION = 'Please move the issue to "In Progress" first before marking it as Done.'


def is_transition_allowed(current: Status, requested: Status) -> bool:
    """Return False only for a direct Open to Done change."""
    return not (current == Status.OPEN and requested == Status.DONE)


def check_transition(current: Status, requested: Status) -> None:
    """Validate a status change.

    Args:
        current: Status recorded for the issue.
        requested: Status the caller wants to set.

    Raises:
        TransitionRejected: If the change skips "In Progress".
    """
    if not is_transition_allowed(current, requested):
        raise TransitionRejected(REJECTED_MESSAGE, REJECTED_DESCRIPTION)
