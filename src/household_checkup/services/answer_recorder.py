"""Answer persistence for an in-progress assessment."""

from __future__ import annotations

from typing import TYPE_CHECKING

from household_checkup.domain.entities import Answer
from household_checkup.domain.exceptions import AssessmentNotFoundError, PersistenceError
from household_checkup.infrastructure.logging import get_logger
from household_checkup.infrastructure.telemetry import TelemetryCategory, record_telemetry

if TYPE_CHECKING:
    from uuid import UUID

    from household_checkup.infrastructure.storage.protocols import DataStore

logger = get_logger(__name__)


class AnswerRecorder:
    """Upserts answers and moves the assessment's step pointer forward.

    A failed save is logged, counted and swallowed: progression never waits
    on, or fails because of, a single answer write.
    """

    def __init__(self, data_store: DataStore) -> None:
        """Initialize recorder.

        Args:
            data_store: Store holding assessments and answers.
        """
        self._store = data_store

    async def save(
        self,
        assessment_id: UUID,
        question_id: int,
        question_code: str,
        category: str,
        stored_value: int,
        answer_type: str,
        step_number: int,
    ) -> bool:
        """Persist one answer.

        Idempotent per (assessment_id, question_code); the last write wins.
        `current_step` becomes max(current_step, step_number).

        Returns:
            True if the answer and step pointer were written.
        """
        answer = Answer(
            assessment_id=assessment_id,
            question_id=question_id,
            question_code=question_code,
            category=category,
            value=stored_value,
            answer_type=answer_type,
            step_number=step_number,
        )
        try:
            await self._store.save_answer(answer)
            await self._store.advance_step(assessment_id, step_number)
        except (PersistenceError, AssessmentNotFoundError) as e:
            logger.warning(
                "Answer save failed",
                assessment_id=str(assessment_id),
                question_code=question_code,
                step_number=step_number,
                error=str(e),
                error_type=type(e).__name__,
            )
            record_telemetry(
                TelemetryCategory.ANSWER_SAVE_FAILED,
                component="answer_recorder",
                assessment_id=str(assessment_id),
                step_number=step_number,
            )
            return False
        logger.debug(
            "Answer saved",
            assessment_id=str(assessment_id),
            question_code=question_code,
            step_number=step_number,
        )
        return True
