"""Domain-specific exceptions for the household checkup core.

This module defines a hierarchical exception system for domain errors:

    DomainError (base)
    ├── ValidationError
    │   └── InvalidAnswerError
    ├── NotFoundError
    │   ├── ProfileNotFoundError
    │   └── AssessmentNotFoundError
    ├── PersistenceError
    ├── RecalculationError
    └── ProgressionError
        └── InvalidTransitionError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


class DomainError(Exception):
    """Base class for domain errors.

    All domain-specific exceptions should inherit from this class
    to allow for catching all domain errors with a single except clause.
    """


class ValidationError(DomainError):
    """Raised when input validation fails.

    Covers missing subject/profile identifiers and malformed requests that
    do not fit a more specific category.
    """


class InvalidAnswerError(ValidationError):
    """Raised when an answer value is not on the question's scale."""

    def __init__(self, question_code: str, value: int, allowed: tuple[int, ...]) -> None:
        """Initialize with the offending question and value.

        Args:
            question_code: Code of the question being answered.
            value: The rejected value.
            allowed: Values the question's scale accepts.
        """
        self.question_code = question_code
        self.value = value
        self.allowed = allowed
        super().__init__(f"{question_code}: value {value} not in {list(allowed)}")


class NotFoundError(DomainError):
    """Raised when a referenced profile or assessment is absent."""


class ProfileNotFoundError(NotFoundError):
    """Raised when a profile id does not resolve in the Profile Store."""

    def __init__(self, profile_id: UUID | str) -> None:
        """Initialize with the missing profile id.

        Args:
            profile_id: The id that was looked up.
        """
        self.profile_id = profile_id
        super().__init__(f"Profile not found: {profile_id}")


class AssessmentNotFoundError(NotFoundError):
    """Raised when an assessment id does not resolve in the Data Store."""

    def __init__(self, assessment_id: UUID | str) -> None:
        """Initialize with the missing assessment id.

        Args:
            assessment_id: The id that was looked up.
        """
        self.assessment_id = assessment_id
        super().__init__(f"Assessment not found: {assessment_id}")


class PersistenceError(DomainError):
    """Raised when a store read or write fails.

    Store adapters wrap their driver errors in this class so callers can
    apply one policy regardless of backend.
    """


class RecalculationError(DomainError):
    """Raised when scoring fails on a malformed answer set.

    Report builders fall back to the previously cached results summary
    when one exists; completion surfaces the error to the caller.
    """


class ProgressionError(DomainError):
    """Errors raised by the questionnaire state machine."""


class InvalidTransitionError(ProgressionError):
    """Raised when an event is not allowed in the current phase."""

    def __init__(self, phase: str, event: str) -> None:
        """Initialize with the phase and rejected event.

        Args:
            phase: Current progression phase value.
            event: Event that was submitted.
        """
        self.phase = phase
        self.event = event
        super().__init__(f"Event '{event}' is not allowed in phase '{phase}'")
