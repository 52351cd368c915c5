"""Domain models and entities for household checkups.

This module provides the core domain layer, containing pure Python objects
with no external dependencies.

Modules:
    enums: Domain enumerations (AssessmentType, ScoringDomain, DomainStatus, etc.)
    value_objects: Immutable value types (WorryTagsSnapshot, DomainScore)
    entities: Core business entities (Profile, Assessment, Answer)
    exceptions: Domain-specific exceptions

Example:
    >>> from household_checkup.domain import AssessmentType
    >>> AssessmentType.CHECKUP.next_in_flow
    <AssessmentType.PARENT: 'parent'>
"""

from household_checkup.domain.entities import Answer, Assessment, Profile
from household_checkup.domain.enums import (
    AssessmentStatus,
    AssessmentType,
    DomainStatus,
    LegacyImpactStatus,
    ProfileType,
    ScoringDomain,
    SkipPolicy,
)
from household_checkup.domain.exceptions import (
    AssessmentNotFoundError,
    DomainError,
    InvalidAnswerError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ProfileNotFoundError,
    ProgressionError,
    RecalculationError,
    ValidationError,
)
from household_checkup.domain.value_objects import SKIPPED_VALUE, DomainScore, WorryTagsSnapshot

__all__ = [
    "SKIPPED_VALUE",
    "Answer",
    "Assessment",
    "AssessmentNotFoundError",
    "AssessmentStatus",
    "AssessmentType",
    "DomainError",
    "DomainScore",
    "DomainStatus",
    "InvalidAnswerError",
    "InvalidTransitionError",
    "LegacyImpactStatus",
    "NotFoundError",
    "PersistenceError",
    "Profile",
    "ProfileNotFoundError",
    "ProfileType",
    "ProgressionError",
    "RecalculationError",
    "ScoringDomain",
    "SkipPolicy",
    "ValidationError",
    "WorryTagsSnapshot",
]
