"""Domain errors raised by the termination lifecycle services."""

from __future__ import annotations

from typing import Optional, Sequence


class TerminationError(ValueError):
    """Base class for termination lifecycle errors."""


class TerminationValidationError(TerminationError):
    """Raised when a required field is missing or malformed."""


class TerminationNotFoundError(TerminationError):
    """Raised when no termination exists for the requested id."""

    def __init__(self, termination_id: int):
        super().__init__("Termination not found")
        self.termination_id = termination_id


class ChecklistItemNotFoundError(TerminationError):
    """Raised when a checklist item id is absent from a termination's checklist."""

    def __init__(self, item_id: str):
        super().__init__(f"Checklist item '{item_id}' not found")
        self.item_id = item_id


class TerminationPreconditionError(TerminationError):
    """Raised when a transition is attempted without its gating fields satisfied."""

    def __init__(self, message: str, reasons: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.message = message
        self.reasons = list(reasons or [])


class ArchiveNotEligibleError(TerminationPreconditionError):
    """Raised when archival is requested for a termination that fails the archive gate."""

    def __init__(self, reasons: Sequence[str], checklist_completion: int):
        super().__init__("Cannot archive termination", reasons)
        self.checklist_completion = checklist_completion


class TerminationConflictError(TerminationError):
    """Raised when a write is based on a stale record version."""

    def __init__(self, termination_id: int, expected_version: int, current_version: Optional[int]):
        super().__init__(
            f"Termination {termination_id} was modified by another user "
            f"(expected version {expected_version}, found {current_version})"
        )
        self.termination_id = termination_id
        self.expected_version = expected_version
        self.current_version = current_version


class NotificationFailure(TerminationError):
    """A best-effort notification could not be delivered. Logged, never propagated to callers."""
