"""In-memory Profile Store and Data Store.

Reference implementations of the storage protocols. They back the CLI and
the test suite, and document the semantics a database adapter must match:
copies in, copies out, one lock around get-or-create.
"""

from __future__ import annotations

import asyncio
import copy
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from household_checkup.domain.entities import Answer, Assessment, Profile
from household_checkup.domain.enums import AssessmentStatus, AssessmentType
from household_checkup.domain.exceptions import AssessmentNotFoundError, PersistenceError
from household_checkup.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from uuid import UUID

    from household_checkup.domain.value_objects import WorryTagsSnapshot

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryProfileStore:
    """Profile Store held in a dict.

    Example:
        >>> store = InMemoryProfileStore([parent, child])
        >>> await store.list_profiles(parent.user_id)
    """

    def __init__(self, profiles: Iterable[Profile] | None = None) -> None:
        self._profiles: dict[UUID, Profile] = {}
        for profile in profiles or ():
            self.add(profile)

    def add(self, profile: Profile) -> None:
        """Insert or replace a profile."""
        self._profiles[profile.id] = replace(profile)

    def remove(self, profile_id: UUID) -> None:
        """Delete a profile. Its assessments are left untouched."""
        self._profiles.pop(profile_id, None)

    async def list_profiles(self, user_id: UUID) -> list[Profile]:
        members = [p for p in self._profiles.values() if p.user_id == user_id]
        members.sort(key=lambda p: p.created_at)
        return [replace(p) for p in members]

    async def get_profile(self, profile_id: UUID) -> Profile | None:
        profile = self._profiles.get(profile_id)
        return replace(profile) if profile is not None else None


class InMemoryDataStore:
    """Data Store held in dicts.

    Attributes:
        clock: Source of `updated_at`/`completed_at` timestamps.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self.clock = clock
        self._assessments: dict[UUID, Assessment] = {}
        self._answers: dict[UUID, dict[str, Answer]] = {}
        self._lock = asyncio.Lock()
        self._write_count = 0

    @property
    def write_count(self) -> int:
        """Number of results-summary writes (completion and updates)."""
        return self._write_count

    def add_assessment(self, assessment: Assessment, answers: Iterable[Answer] = ()) -> None:
        """Seed a stored assessment with its answers, bypassing the flow."""
        self._assessments[assessment.id] = copy.deepcopy(assessment)
        bucket = self._answers.setdefault(assessment.id, {})
        for answer in answers:
            bucket[answer.question_code] = replace(answer)

    def _require(self, assessment_id: UUID) -> Assessment:
        assessment = self._assessments.get(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        return assessment

    async def get_or_create_active_assessment(
        self,
        profile_id: UUID,
        assessment_type: AssessmentType,
        *,
        total_steps: int,
        worry_tags: WorryTagsSnapshot,
    ) -> tuple[Assessment, bool]:
        async with self._lock:
            existing = self._find(profile_id, assessment_type, AssessmentStatus.IN_PROGRESS)
            if existing:
                return copy.deepcopy(existing[-1]), False
            now = self.clock()
            assessment = Assessment(
                profile_id=profile_id,
                assessment_type=assessment_type,
                total_steps=total_steps,
                worry_tags=worry_tags,
                started_at=now,
                updated_at=now,
            )
            self._assessments[assessment.id] = assessment
            self._answers[assessment.id] = {}
            logger.debug(
                "assessment_created",
                assessment_id=str(assessment.id),
                assessment_type=assessment_type.value,
            )
            return copy.deepcopy(assessment), True

    def _find(
        self,
        profile_id: UUID,
        assessment_type: AssessmentType,
        status: AssessmentStatus,
    ) -> list[Assessment]:
        matches = [
            a
            for a in self._assessments.values()
            if a.profile_id == profile_id
            and a.assessment_type is assessment_type
            and a.status is status
        ]
        matches.sort(key=lambda a: a.completed_at or a.started_at)
        return matches

    async def get_assessment(self, assessment_id: UUID) -> Assessment | None:
        assessment = self._assessments.get(assessment_id)
        return copy.deepcopy(assessment) if assessment is not None else None

    async def find_in_progress_assessment(
        self, profile_id: UUID, assessment_type: AssessmentType
    ) -> Assessment | None:
        matches = self._find(profile_id, assessment_type, AssessmentStatus.IN_PROGRESS)
        return copy.deepcopy(matches[-1]) if matches else None

    async def find_completed_assessment(
        self, profile_id: UUID, assessment_type: AssessmentType
    ) -> Assessment | None:
        matches = self._find(profile_id, assessment_type, AssessmentStatus.COMPLETED)
        return copy.deepcopy(matches[-1]) if matches else None

    async def find_latest_completed_assessments(
        self,
        profile_ids: Sequence[UUID],
        assessment_types: Sequence[AssessmentType],
    ) -> dict[tuple[UUID, AssessmentType], Assessment]:
        wanted_profiles = set(profile_ids)
        wanted_types = set(assessment_types)
        latest: dict[tuple[UUID, AssessmentType], Assessment] = {}
        for assessment in self._assessments.values():
            if (
                assessment.status is not AssessmentStatus.COMPLETED
                or assessment.profile_id not in wanted_profiles
                or assessment.assessment_type not in wanted_types
            ):
                continue
            key = (assessment.profile_id, assessment.assessment_type)
            current = latest.get(key)
            stamp = assessment.completed_at or assessment.started_at
            if current is None or stamp >= (current.completed_at or current.started_at):
                latest[key] = assessment
        return {key: copy.deepcopy(value) for key, value in latest.items()}

    async def list_assessments(
        self,
        *,
        status: AssessmentStatus | None = None,
        updated_before: datetime | None = None,
    ) -> list[Assessment]:
        results = [
            a
            for a in self._assessments.values()
            if (status is None or a.status is status)
            and (updated_before is None or a.updated_at < updated_before)
        ]
        results.sort(key=lambda a: a.updated_at)
        return [copy.deepcopy(a) for a in results]

    async def save_answer(self, answer: Answer) -> Answer:
        assessment = self._require(answer.assessment_id)
        bucket = self._answers.setdefault(answer.assessment_id, {})
        existing = bucket.get(answer.question_code)
        stored = replace(
            answer,
            id=existing.id if existing is not None else answer.id,
            updated_at=self.clock(),
        )
        bucket[answer.question_code] = stored
        assessment.updated_at = stored.updated_at
        return replace(stored)

    async def list_answers(self, assessment_id: UUID) -> list[Answer]:
        answers = sorted(
            self._answers.get(assessment_id, {}).values(), key=lambda a: a.step_number
        )
        return [replace(a) for a in answers]

    async def advance_step(self, assessment_id: UUID, step_number: int) -> int:
        assessment = self._require(assessment_id)
        if not 0 <= step_number <= assessment.total_steps:
            raise PersistenceError(
                f"step_number {step_number} outside [0, {assessment.total_steps}]"
            )
        if step_number > assessment.current_step:
            assessment.current_step = step_number
            assessment.updated_at = self.clock()
        return assessment.current_step

    async def complete_assessment(
        self, assessment_id: UUID, results_summary: dict[str, Any]
    ) -> Assessment:
        assessment = self._require(assessment_id)
        now = self.clock()
        assessment.status = AssessmentStatus.COMPLETED
        assessment.results_summary = copy.deepcopy(results_summary)
        assessment.completed_at = assessment.completed_at or now
        assessment.updated_at = now
        self._write_count += 1
        return copy.deepcopy(assessment)

    async def update_results(
        self, assessment_id: UUID, results_summary: dict[str, Any]
    ) -> Assessment:
        assessment = self._require(assessment_id)
        if assessment.status is not AssessmentStatus.COMPLETED:
            raise PersistenceError(f"Assessment {assessment_id} is not completed")
        assessment.results_summary = copy.deepcopy(results_summary)
        assessment.updated_at = self.clock()
        self._write_count += 1
        return copy.deepcopy(assessment)

    async def mark_abandoned(self, assessment_id: UUID) -> Assessment:
        assessment = self._require(assessment_id)
        if assessment.status is AssessmentStatus.IN_PROGRESS:
            assessment.status = AssessmentStatus.ABANDONED
            assessment.updated_at = self.clock()
        return copy.deepcopy(assessment)
