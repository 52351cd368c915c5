"""Progression controller: drives a subject through a questionnaire.

The controller owns all I/O around the pure state machine: resolving the
subject, get-or-creating the assessment, scheduling answer saves, scoring on
completion and picking the next subject from the live household.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from household_checkup.domain.enums import AssessmentStatus, AssessmentType
from household_checkup.domain.exceptions import (
    AssessmentNotFoundError,
    InvalidAnswerError,
    PersistenceError,
    ProfileNotFoundError,
    ProgressionError,
    ValidationError,
)
from household_checkup.domain.value_objects import SKIPPED_VALUE
from household_checkup.infrastructure.logging import assessment_context, get_logger
from household_checkup.questionnaires.catalog import get_questionnaire
from household_checkup.questionnaires.worry_tags import capture_snapshot
from household_checkup.services.answer_recorder import AnswerRecorder
from household_checkup.services.answer_transform import displayed_value, transform
from household_checkup.services.scoring import ScoringEngine
from household_checkup.services.state_machine import (
    INITIAL_STATE,
    ProgressionEvent,
    ProgressionPhase,
    ProgressionState,
    transition,
)

if TYPE_CHECKING:
    from contextlib import AbstractContextManager
    from uuid import UUID

    from household_checkup.config import Settings
    from household_checkup.domain.entities import Assessment, Profile
    from household_checkup.infrastructure.storage.protocols import DataStore, ProfileStore
    from household_checkup.questionnaires.catalog import Question, Questionnaire

logger = get_logger(__name__)


@dataclass
class AssessmentSession:
    """One subject's pass through a questionnaire.

    Attributes:
        user_id: Household account the subject belongs to.
        questionnaire: Questionnaire being answered.
        assessment: The assessment row as loaded at start.
        state: Current progression state.
        answers: Stored (post-transform) values keyed by question code.
    """

    user_id: UUID
    questionnaire: Questionnaire
    assessment: Assessment
    state: ProgressionState
    answers: dict[str, int] = field(default_factory=dict)
    _pending: set[asyncio.Task[bool]] = field(default_factory=set, repr=False)

    @property
    def assessment_type(self) -> AssessmentType:
        return self.questionnaire.assessment_type

    @property
    def phase(self) -> ProgressionPhase:
        return self.state.phase

    @property
    def current_question(self) -> Question | None:
        """Question to show, or None outside IN_PROGRESS."""
        if self.state.phase is not ProgressionPhase.IN_PROGRESS or self.state.step_index is None:
            return None
        return self.questionnaire.question_at(self.state.step_index)

    @property
    def pending_saves(self) -> int:
        """Answer saves scheduled but not finished."""
        return sum(1 for task in self._pending if not task.done())

    def log_context(self) -> AbstractContextManager[None]:
        """Tag log events (including scheduled saves) with this assessment."""
        return assessment_context(self.assessment.id, self.assessment_type.value)

    def displayed_value(self, question_code: str) -> int | None:
        """Value the UI should show as selected for a question.

        Returns:
            None if unanswered or skipped, else the subject's own selection.
        """
        stored = self.answers.get(question_code)
        question = self.questionnaire.question_by_code(question_code)
        if stored is None or question is None:
            return None
        return displayed_value(stored, question.is_reverse)


class ProgressionController:
    """Runs the questionnaire state machine against the stores.

    Example:
        >>> controller = ProgressionController(profiles, data)
        >>> session = await controller.start(user_id, AssessmentType.CHECKUP, child.id)
        >>> await controller.answer(session, 0, 3)
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        data_store: DataStore,
        *,
        settings: Settings | None = None,
        scoring_engine: ScoringEngine | None = None,
        recorder: AnswerRecorder | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            profile_store: Live household members.
            data_store: Assessments and answers.
            settings: Application settings. If None, uses get_settings().
            scoring_engine: Engine used on completion.
            recorder: Answer recorder. Defaults to one over data_store.
        """
        if settings is None:
            from household_checkup.config import get_settings  # noqa: PLC0415

            settings = get_settings()
        self._profiles = profile_store
        self._data = data_store
        self._drain_timeout = settings.progression.drain_timeout_seconds
        self._scoring = scoring_engine or ScoringEngine(settings.scoring)
        self._recorder = recorder or AnswerRecorder(data_store)

    async def start(
        self,
        user_id: UUID,
        assessment_type: AssessmentType,
        subject_id: UUID | None = None,
    ) -> AssessmentSession:
        """Start or resume a flow.

        Args:
            user_id: Household account.
            assessment_type: Flow to run.
            subject_id: Child profile for the checkup. Ignored for parent and
                family flows, which run for the household's first parent.

        Returns:
            A session in IN_PROGRESS at step 0 or the resume step.

        Raises:
            ValidationError: If the subject id is missing or has the wrong role.
            ProfileNotFoundError: If the subject is unknown to the household.
        """
        questionnaire = get_questionnaire(assessment_type)
        household = await self._profiles.list_profiles(user_id)
        subject = await self._resolve_subject(user_id, questionnaire, household, subject_id)
        return await self._open(user_id, questionnaire, household, subject, INITIAL_STATE)

    async def answer(
        self, session: AssessmentSession, step_index: int, raw_value: int
    ) -> ProgressionState:
        """Record an answer for the current or an earlier step.

        Answering the final step runs the completion sequence.

        Raises:
            InvalidAnswerError: If the value is not on the question's scale.
            InvalidTransitionError: If the session is not answering questions.
            ProgressionError: If the step is ahead of the current step.
        """
        question = self._question(session, step_index)
        if raw_value not in question.scale.values:
            raise InvalidAnswerError(question.code, raw_value, question.scale.values)
        with session.log_context():
            return await self._record(session, ProgressionEvent.ANSWER, step_index, raw_value)

    async def skip(self, session: AssessmentSession, step_index: int) -> ProgressionState:
        """Skip a step. Follows the same checkpoints as an answer."""
        self._question(session, step_index)
        with session.log_context():
            return await self._record(session, ProgressionEvent.SKIP, step_index, SKIPPED_VALUE)

    async def continue_flow(self, session: AssessmentSession) -> ProgressionState:
        """Leave the interlude for the step after it."""
        with session.log_context():
            session.state = transition(
                session.state, ProgressionEvent.CONTINUE, session.questionnaire
            )
            logger.debug("Interlude left", step_index=session.state.step_index)
        return session.state

    async def complete(self, session: AssessmentSession) -> ProgressionState:
        """Run the completion sequence for a session whose last step is answered.

        Used to retry after a failed completion.

        Raises:
            ProgressionError: If the last step has not been answered.
            RecalculationError: If scoring fails.
            PersistenceError: If saves cannot be drained or results not stored.
        """
        if not session.state.ready_to_complete:
            raise ProgressionError("Last step has not been answered")
        with session.log_context():
            return await self._complete(session)

    async def next_subject(self, session: AssessmentSession) -> AssessmentSession:
        """Start (or resume) the next subject after a completed checkup.

        The next subject is re-queried against the live household, so a
        subject that was deleted or completed elsewhere while this session
        waited is passed over. If none remain, the given session moves to
        COMPLETED and is returned.

        Raises:
            InvalidTransitionError: If the session is not awaiting a subject.
        """
        if session.state.phase is not ProgressionPhase.AWAITING_NEXT_SUBJECT:
            # Surface the table's error for the current phase.
            transition(session.state, ProgressionEvent.NEXT_SUBJECT, session.questionnaire)
        questionnaire = session.questionnaire
        waiting = await self._find_next_subject(
            session.user_id, questionnaire, exclude=session.state.subject_id
        )
        if waiting is None:
            session.state = transition(
                session.state,
                ProgressionEvent.COMPLETE,
                questionnaire,
                next_assessment_type=questionnaire.assessment_type.next_in_flow,
            )
            logger.info(
                "No subject left to start; flow completed",
                assessment_type=questionnaire.assessment_type.value,
            )
            return session
        if waiting.id != session.state.next_subject_id:
            logger.info(
                "Waiting subject no longer eligible",
                assessment_type=questionnaire.assessment_type.value,
            )
        household = await self._profiles.list_profiles(session.user_id)
        return await self._open(session.user_id, questionnaire, household, waiting, session.state)

    async def abandon(self, assessment_id: UUID) -> Assessment:
        """Mark an in-progress assessment abandoned.

        Raises:
            AssessmentNotFoundError: If the assessment does not exist.
            ProgressionError: If it is not in progress.
        """
        assessment = await self._data.get_assessment(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        if assessment.status is not AssessmentStatus.IN_PROGRESS:
            raise ProgressionError(
                f"Assessment {assessment_id} is {assessment.status.value}, not in progress"
            )
        abandoned = await self._data.mark_abandoned(assessment_id)
        logger.info("Assessment abandoned", assessment_id=str(assessment_id))
        return abandoned

    async def _resolve_subject(
        self,
        user_id: UUID,
        questionnaire: Questionnaire,
        household: list[Profile],
        subject_id: UUID | None,
    ) -> Profile:
        if not questionnaire.sequences_subjects:
            # Parent and family flows run for the household's first parent.
            for profile in household:
                if profile.type is questionnaire.subject_role:
                    return profile
            raise ValidationError(
                f"Household {user_id} has no {questionnaire.subject_role.value} profile"
            )
        if subject_id is None:
            raise ValidationError("A subject id is required to start a checkup")
        subject = await self._profiles.get_profile(subject_id)
        if subject is None or subject.user_id != user_id:
            raise ProfileNotFoundError(subject_id)
        if subject.type is not questionnaire.subject_role:
            raise ValidationError(
                f"Profile {subject_id} is a {subject.type.value}, "
                f"expected {questionnaire.subject_role.value}"
            )
        return subject

    async def _open(
        self,
        user_id: UUID,
        questionnaire: Questionnaire,
        household: list[Profile],
        subject: Profile,
        state: ProgressionState,
    ) -> AssessmentSession:
        assessment, created = await self._data.get_or_create_active_assessment(
            subject.id,
            questionnaire.assessment_type,
            total_steps=questionnaire.total_steps,
            worry_tags=capture_snapshot(questionnaire.assessment_type, subject, household),
        )
        answers: dict[str, int] = {}
        resume_step = 0
        if not created:
            restored = await self._data.list_answers(assessment.id)
            answers = {a.question_code: a.value for a in restored}
            resume_step = min(assessment.resume_step, questionnaire.last_index)

        event = (
            ProgressionEvent.START
            if state.phase is ProgressionPhase.NOT_STARTED
            else ProgressionEvent.NEXT_SUBJECT
        )
        next_state = transition(
            state,
            event,
            questionnaire,
            subject_id=subject.id,
            assessment_id=assessment.id,
            resume_step=resume_step,
        )
        logger.info(
            "Assessment started" if created else "Assessment resumed",
            assessment_id=str(assessment.id),
            assessment_type=questionnaire.assessment_type.value,
            step_index=resume_step,
            restored_answers=len(answers),
        )
        return AssessmentSession(
            user_id=user_id,
            questionnaire=questionnaire,
            assessment=assessment,
            state=next_state,
            answers=answers,
        )

    def _question(self, session: AssessmentSession, step_index: int) -> Question:
        try:
            return session.questionnaire.question_at(step_index)
        except IndexError as e:
            raise ProgressionError(str(e)) from e

    async def _record(
        self,
        session: AssessmentSession,
        event: ProgressionEvent,
        step_index: int,
        raw_value: int,
    ) -> ProgressionState:
        question = session.questionnaire.question_at(step_index)
        next_state = transition(session.state, event, session.questionnaire, step_index=step_index)

        stored = transform(raw_value, question.is_reverse)
        session.answers[question.code] = stored
        self._schedule_save(session, question, step_index, stored)
        session.state = next_state

        logger.debug(
            "Step recorded",
            step_index=step_index,
            skipped=stored == SKIPPED_VALUE,
            phase=next_state.phase.value,
        )
        if next_state.ready_to_complete and step_index == session.questionnaire.last_index:
            return await self._complete(session)
        return session.state

    def _schedule_save(
        self,
        session: AssessmentSession,
        question: Question,
        step_index: int,
        stored: int,
    ) -> None:
        task = asyncio.create_task(
            self._recorder.save(
                session.assessment.id,
                question.id,
                question.code,
                question.category,
                stored,
                question.answer_type,
                step_index + 1,
            )
        )
        session._pending.add(task)
        task.add_done_callback(session._pending.discard)

    async def _drain(self, session: AssessmentSession) -> None:
        pending = list(session._pending)
        if pending:
            try:
                await asyncio.wait_for(asyncio.gather(*pending), timeout=self._drain_timeout)
            except TimeoutError as e:
                raise PersistenceError(
                    f"Answer saves for {session.assessment.id} did not finish "
                    f"within {self._drain_timeout}s"
                ) from e

        # Saves that failed earlier are retried once, in order, before scoring.
        persisted = await self._data.list_answers(session.assessment.id)
        stored = {a.question_code: a.value for a in persisted}
        for index, question in enumerate(session.questionnaire.questions):
            value = session.answers.get(question.code)
            if value is None or stored.get(question.code) == value:
                continue
            saved = await self._recorder.save(
                session.assessment.id,
                question.id,
                question.code,
                question.category,
                value,
                question.answer_type,
                index + 1,
            )
            if not saved:
                raise PersistenceError(
                    f"Answer {question.code} for {session.assessment.id} could not be saved"
                )

    async def _complete(self, session: AssessmentSession) -> ProgressionState:
        questionnaire = session.questionnaire
        assessment_id = session.assessment.id

        await self._drain(session)
        answers = await self._data.list_answers(assessment_id)
        summary = self._scoring.score_summary(questionnaire.assessment_type, answers)
        completed = await self._data.complete_assessment(assessment_id, summary)
        session.assessment = completed

        next_subject = None
        if questionnaire.sequences_subjects:
            next_subject = await self._find_next_subject(
                session.user_id, questionnaire, exclude=session.state.subject_id
            )
        session.state = transition(
            session.state,
            ProgressionEvent.COMPLETE,
            questionnaire,
            next_subject_id=next_subject.id if next_subject else None,
            next_assessment_type=questionnaire.assessment_type.next_in_flow,
        )
        logger.info(
            "Assessment completed",
            phase=session.state.phase.value,
            domains=len(summary),
        )
        return session.state

    async def _find_next_subject(
        self,
        user_id: UUID,
        questionnaire: Questionnaire,
        *,
        exclude: UUID | None,
    ) -> Profile | None:
        """First same-role member (oldest first) without a completed assessment."""
        household = await self._profiles.list_profiles(user_id)
        candidates = [
            p for p in household if p.type is questionnaire.subject_role and p.id != exclude
        ]
        if not candidates:
            return None
        completed = await self._data.find_latest_completed_assessments(
            [p.id for p in candidates], [questionnaire.assessment_type]
        )
        for profile in candidates:
            if (profile.id, questionnaire.assessment_type) not in completed:
                return profile
        return None
