"""
Pipeline State Machine

Defines the states an inspection passes through on its way from a report URL
to an uploaded PDF, and the transitions allowed between them.

The destination is resolved and checked before rendering, so a report that is
already archived never reaches the renderer.
"""

from enum import Enum
from typing import Final

import structlog

from inspections.shared.exceptions import InvalidStateTransitionError

log = structlog.get_logger()


class PipelineStatus(str, Enum):
    """
    Pipeline status enum.

    Exactly one status is current for an inspection at any time.
    """

    PENDING = "PENDING"
    """Inspection extracted, nothing attempted yet."""

    PATH_RESOLVED = "PATH_RESOLVED"
    """Site name parsed into a destination folder and filename."""

    EXISTS_CHECKED = "EXISTS_CHECKED"
    """Destination folder listed, file not present."""

    RENDERING = "RENDERING"
    """Report URL being rendered to PDF (may retry)."""

    RENDERED = "RENDERED"
    """PDF bytes available."""

    UPLOADING = "UPLOADING"
    """PDF being written to the document store."""

    UPLOADED = "UPLOADED"
    """PDF stored at the destination."""

    SKIPPED = "SKIPPED"
    """File already present at the destination; nothing uploaded."""

    FAILED = "FAILED"
    """Pipeline stopped on an unroutable site or an external failure."""

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no outgoing transitions)."""
        return self in TERMINAL_STATES

    @classmethod
    def from_string(cls, value: str) -> "PipelineStatus":
        """Convert string to PipelineStatus enum."""
        try:
            return cls(value.upper())
        except ValueError as e:
            raise ValueError(
                f"Invalid pipeline status: '{value}'. "
                f"Valid values are: {[s.value for s in cls]}"
            ) from e


TERMINAL_STATES: Final[frozenset[PipelineStatus]] = frozenset({
    PipelineStatus.UPLOADED,
    PipelineStatus.SKIPPED,
    PipelineStatus.FAILED,
})

# Key: current status, Value: set of allowed next statuses
VALID_TRANSITIONS: Final[dict[PipelineStatus, frozenset[PipelineStatus]]] = {
    PipelineStatus.PENDING: frozenset({
        PipelineStatus.PATH_RESOLVED,
        PipelineStatus.FAILED,
    }),
    PipelineStatus.PATH_RESOLVED: frozenset({
        PipelineStatus.EXISTS_CHECKED,
    }),
    PipelineStatus.EXISTS_CHECKED: frozenset({
        PipelineStatus.RENDERING,
        PipelineStatus.SKIPPED,
    }),
    PipelineStatus.RENDERING: frozenset({
        PipelineStatus.RENDERED,
        PipelineStatus.FAILED,
    }),
    PipelineStatus.RENDERED: frozenset({
        PipelineStatus.UPLOADING,
    }),
    PipelineStatus.UPLOADING: frozenset({
        PipelineStatus.UPLOADED,
        PipelineStatus.FAILED,
    }),
    PipelineStatus.UPLOADED: frozenset(),  # Terminal
    PipelineStatus.SKIPPED: frozenset(),   # Terminal
    PipelineStatus.FAILED: frozenset(),    # Terminal
}


def validate_transition(
    current_status: PipelineStatus | str,
    new_status: PipelineStatus | str,
    *,
    raise_on_invalid: bool = True,
) -> bool:
    """
    Validate that a state transition is allowed.

    Args:
        current_status: Current pipeline status
        new_status: Desired next status
        raise_on_invalid: If True, raise exception on invalid transition

    Returns:
        True if transition is valid

    Raises:
        InvalidStateTransitionError: If transition is invalid and raise_on_invalid=True
    """
    if isinstance(current_status, str):
        current_status = PipelineStatus.from_string(current_status)
    if isinstance(new_status, str):
        new_status = PipelineStatus.from_string(new_status)

    allowed = VALID_TRANSITIONS.get(current_status, frozenset())
    is_valid = new_status in allowed

    if not is_valid and raise_on_invalid:
        log.warning(
            "invalid_state_transition",
            current_status=current_status.value,
            new_status=new_status.value,
            allowed_transitions=[s.value for s in allowed],
        )
        raise InvalidStateTransitionError(
            current_status=current_status.value,
            new_status=new_status.value,
            allowed_transitions=sorted(s.value for s in allowed),
        )

    return is_valid
