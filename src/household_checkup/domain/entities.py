"""Domain entities for the household checkup core.

Entities have identity (UUID) and mutable state. They mirror the rows the
surrounding application keeps in its Profile Store and Data Store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

from household_checkup.domain.enums import AssessmentStatus, AssessmentType, ProfileType
from household_checkup.domain.value_objects import SKIPPED_VALUE, WorryTagsSnapshot


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class Profile:
    """A household member.

    Profiles are owned by the Profile Store; the core only reads them.
    """

    user_id: UUID
    type: ProfileType
    first_name: str = ""
    date_of_birth: date | None = None
    worry_tags: frozenset[str] = field(default_factory=frozenset)
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        """Normalize worry tags into an immutable set."""
        self.worry_tags = frozenset(self.worry_tags)

    def age_on(self, today: date) -> int | None:
        """Return the member's age in whole years on a given day.

        Args:
            today: Reference date.

        Returns:
            Age in years, or None if no date of birth is known.
        """
        if self.date_of_birth is None:
            return None
        dob = self.date_of_birth
        had_birthday = (today.month, today.day) >= (dob.month, dob.day)
        return today.year - dob.year - (0 if had_birthday else 1)


@dataclass
class Assessment:
    """One questionnaire run for one subject."""

    profile_id: UUID | None
    assessment_type: AssessmentType
    total_steps: int
    status: AssessmentStatus = AssessmentStatus.IN_PROGRESS
    current_step: int = 0
    worry_tags: WorryTagsSnapshot = field(default_factory=WorryTagsSnapshot)
    results_summary: dict[str, Any] | None = None
    id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        """Validate step counters.

        Raises:
            ValueError: If total_steps or current_step is out of range.
        """
        if self.total_steps < 1:
            raise ValueError(f"total_steps must be >= 1, got {self.total_steps}")
        if not 0 <= self.current_step <= self.total_steps:
            raise ValueError(
                f"current_step {self.current_step} outside [0, {self.total_steps}]"
            )

    @property
    def is_in_progress(self) -> bool:
        """True while the questionnaire is still being answered."""
        return self.status is AssessmentStatus.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        """True once results have been computed and stored."""
        return self.status is AssessmentStatus.COMPLETED

    @property
    def resume_step(self) -> int:
        """Zero-based step index a resumed session should show.

        `current_step` counts the furthest step recorded (1-based), which is
        also the index of the first step not yet reached. A fully answered but
        uncompleted run resumes on its last step.
        """
        return min(self.current_step, self.total_steps - 1)


@dataclass
class Answer:
    """A stored answer to one question of one assessment.

    Unique per (assessment_id, question_code); re-answering overwrites.
    """

    assessment_id: UUID
    question_id: int
    question_code: str
    category: str
    value: int
    answer_type: str
    step_number: int
    id: UUID = field(default_factory=uuid4)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def is_skipped(self) -> bool:
        """True when the stored value is the skip sentinel."""
        return self.value == SKIPPED_VALUE
