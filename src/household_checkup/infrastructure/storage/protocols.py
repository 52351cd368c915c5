"""Abstract protocols for the Profile Store and the Data Store.

The surrounding application owns persistence. The core reaches it only
through these protocols (structural subtyping), so a database-backed adapter
and the in-memory stores used by tests are interchangeable.

Adapters wrap driver failures in PersistenceError.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from household_checkup.domain.entities import Answer, Assessment, Profile
    from household_checkup.domain.enums import AssessmentStatus, AssessmentType
    from household_checkup.domain.value_objects import WorryTagsSnapshot


@runtime_checkable
class ProfileStore(Protocol):
    """Read access to household members."""

    @abstractmethod
    async def list_profiles(self, user_id: UUID) -> list[Profile]:
        """Return every profile of a household, oldest first.

        Args:
            user_id: Owning household account.

        Returns:
            Profiles ordered by ascending created_at.

        Raises:
            PersistenceError: If the store cannot be read.
        """
        ...

    @abstractmethod
    async def get_profile(self, profile_id: UUID) -> Profile | None:
        """Return one profile, or None if it does not exist (or was deleted)."""
        ...


@runtime_checkable
class DataStore(Protocol):
    """Assessments and answers."""

    @abstractmethod
    async def get_or_create_active_assessment(
        self,
        profile_id: UUID,
        assessment_type: AssessmentType,
        *,
        total_steps: int,
        worry_tags: WorryTagsSnapshot,
    ) -> tuple[Assessment, bool]:
        """Atomically return the in-progress assessment, creating it if absent.

        At most one in-progress assessment exists per (profile, type). The
        worry-tag snapshot is written only when a new row is created.

        Returns:
            (assessment, created) where created is True for a new row.
        """
        ...

    @abstractmethod
    async def get_assessment(self, assessment_id: UUID) -> Assessment | None:
        """Return an assessment by id, or None."""
        ...

    @abstractmethod
    async def find_in_progress_assessment(
        self, profile_id: UUID, assessment_type: AssessmentType
    ) -> Assessment | None:
        """Return the in-progress assessment for (profile, type), or None."""
        ...

    @abstractmethod
    async def find_completed_assessment(
        self, profile_id: UUID, assessment_type: AssessmentType
    ) -> Assessment | None:
        """Return the most recently completed assessment for (profile, type)."""
        ...

    @abstractmethod
    async def find_latest_completed_assessments(
        self,
        profile_ids: Sequence[UUID],
        assessment_types: Sequence[AssessmentType],
    ) -> dict[tuple[UUID, AssessmentType], Assessment]:
        """Return the latest completed assessment per (profile, type) in one query.

        Pairs without a completed assessment are absent from the result.
        """
        ...

    @abstractmethod
    async def list_assessments(
        self,
        *,
        status: AssessmentStatus | None = None,
        updated_before: datetime | None = None,
    ) -> list[Assessment]:
        """Return assessments filtered by status and last update time."""
        ...

    @abstractmethod
    async def save_answer(self, answer: Answer) -> Answer:
        """Upsert an answer keyed by (assessment_id, question_code).

        Raises:
            AssessmentNotFoundError: If the assessment does not exist.
            PersistenceError: If the write fails.
        """
        ...

    @abstractmethod
    async def list_answers(self, assessment_id: UUID) -> list[Answer]:
        """Return every answer of an assessment ordered by step number."""
        ...

    @abstractmethod
    async def advance_step(self, assessment_id: UUID, step_number: int) -> int:
        """Raise current_step to at least step_number.

        Returns:
            The resulting current_step (never lower than before).
        """
        ...

    @abstractmethod
    async def complete_assessment(
        self, assessment_id: UUID, results_summary: dict[str, Any]
    ) -> Assessment:
        """Store results and mark the assessment completed."""
        ...

    @abstractmethod
    async def update_results(
        self, assessment_id: UUID, results_summary: dict[str, Any]
    ) -> Assessment:
        """Replace the results summary of a completed assessment."""
        ...

    @abstractmethod
    async def mark_abandoned(self, assessment_id: UUID) -> Assessment:
        """Mark an in-progress assessment abandoned.

        Assessments in any other status are returned unchanged.
        """
        ...
