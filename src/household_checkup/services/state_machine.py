"""Questionnaire progression as an explicit state machine.

The state is a tagged, immutable `ProgressionState`; transitions are pure
functions looked up in a `(phase, event)` table. Nothing here performs I/O,
so every branch (interlude, final step, next subject) is testable directly.

    NOT_STARTED --start--> IN_PROGRESS(resume_step)
    IN_PROGRESS --answer/skip at interlude--> INTERLUDE
    IN_PROGRESS --answer/skip before last--> IN_PROGRESS(i + 1)
    IN_PROGRESS --answer/skip at last--> IN_PROGRESS(last, ready_to_complete)
    INTERLUDE --continue--> IN_PROGRESS(interlude + 1)
    IN_PROGRESS(ready) --complete--> AWAITING_NEXT_SUBJECT | COMPLETED
    AWAITING_NEXT_SUBJECT --next_subject--> IN_PROGRESS(resume_step)
    AWAITING_NEXT_SUBJECT --complete--> COMPLETED (no eligible subject left)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

from household_checkup.domain.exceptions import InvalidTransitionError, ProgressionError

if TYPE_CHECKING:
    from uuid import UUID

    from household_checkup.domain.enums import AssessmentType
    from household_checkup.questionnaires.catalog import Questionnaire


class ProgressionPhase(StrEnum):
    """Phase of a questionnaire session."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    INTERLUDE = "interlude"
    AWAITING_NEXT_SUBJECT = "awaiting_next_subject"
    COMPLETED = "completed"


class ProgressionEvent(StrEnum):
    """Events a session can receive."""

    START = "start"
    ANSWER = "answer"
    SKIP = "skip"
    CONTINUE = "continue"
    COMPLETE = "complete"
    NEXT_SUBJECT = "next_subject"


@dataclass(frozen=True, slots=True)
class ProgressionState:
    """Snapshot of where a session is.

    Attributes:
        phase: Current phase.
        step_index: Zero-based step shown (IN_PROGRESS) or just left (INTERLUDE).
        subject_id: Profile the current run is about.
        assessment_id: Assessment being answered.
        ready_to_complete: The last step has been answered in this pass.
        next_subject_id: Subject waiting in AWAITING_NEXT_SUBJECT.
        next_assessment_type: Flow that follows, once COMPLETED (None at the end).
    """

    phase: ProgressionPhase = ProgressionPhase.NOT_STARTED
    step_index: int | None = None
    subject_id: UUID | None = None
    assessment_id: UUID | None = None
    ready_to_complete: bool = False
    next_subject_id: UUID | None = None
    next_assessment_type: AssessmentType | None = None

    @property
    def is_terminal(self) -> bool:
        """True when no further event is accepted."""
        return self.phase is ProgressionPhase.COMPLETED


INITIAL_STATE: Final[ProgressionState] = ProgressionState()


def _start(
    state: ProgressionState,
    questionnaire: Questionnaire,
    *,
    subject_id: UUID,
    assessment_id: UUID,
    resume_step: int = 0,
) -> ProgressionState:
    del state
    if not 0 <= resume_step <= questionnaire.last_index:
        raise ProgressionError(f"Resume step {resume_step} outside 0..{questionnaire.last_index}")
    return ProgressionState(
        phase=ProgressionPhase.IN_PROGRESS,
        step_index=resume_step,
        subject_id=subject_id,
        assessment_id=assessment_id,
    )


def _answer(
    state: ProgressionState,
    questionnaire: Questionnaire,
    *,
    step_index: int,
) -> ProgressionState:
    cursor = state.step_index if state.step_index is not None else 0
    if step_index > cursor or step_index < 0:
        raise ProgressionError(f"Cannot answer step {step_index}; current step is {cursor}")
    if step_index < cursor:
        # Re-answering an earlier step leaves the cursor where it is.
        return state
    if step_index == questionnaire.interlude_index:
        return replace(state, phase=ProgressionPhase.INTERLUDE)
    if step_index < questionnaire.last_index:
        return replace(state, step_index=step_index + 1)
    return replace(state, ready_to_complete=True)


def _continue(state: ProgressionState, questionnaire: Questionnaire) -> ProgressionState:
    del questionnaire
    if state.step_index is None:
        raise ProgressionError("Interlude has no step to continue from")
    return replace(state, phase=ProgressionPhase.IN_PROGRESS, step_index=state.step_index + 1)


def _complete(
    state: ProgressionState,
    questionnaire: Questionnaire,
    *,
    next_subject_id: UUID | None = None,
    next_assessment_type: AssessmentType | None = None,
) -> ProgressionState:
    if not state.ready_to_complete:
        raise InvalidTransitionError(state.phase.value, ProgressionEvent.COMPLETE.value)
    if next_subject_id is not None:
        return ProgressionState(
            phase=ProgressionPhase.AWAITING_NEXT_SUBJECT,
            subject_id=state.subject_id,
            assessment_id=state.assessment_id,
            next_subject_id=next_subject_id,
        )
    return _finish(state, questionnaire, next_assessment_type=next_assessment_type)


def _finish(
    state: ProgressionState,
    questionnaire: Questionnaire,
    *,
    next_assessment_type: AssessmentType | None = None,
) -> ProgressionState:
    del questionnaire
    return ProgressionState(
        phase=ProgressionPhase.COMPLETED,
        subject_id=state.subject_id,
        assessment_id=state.assessment_id,
        next_assessment_type=next_assessment_type,
    )


_Handler = Callable[..., ProgressionState]

TRANSITIONS: Final[dict[tuple[ProgressionPhase, ProgressionEvent], _Handler]] = {
    (ProgressionPhase.NOT_STARTED, ProgressionEvent.START): _start,
    (ProgressionPhase.IN_PROGRESS, ProgressionEvent.ANSWER): _answer,
    (ProgressionPhase.IN_PROGRESS, ProgressionEvent.SKIP): _answer,
    (ProgressionPhase.IN_PROGRESS, ProgressionEvent.COMPLETE): _complete,
    (ProgressionPhase.INTERLUDE, ProgressionEvent.CONTINUE): _continue,
    (ProgressionPhase.AWAITING_NEXT_SUBJECT, ProgressionEvent.NEXT_SUBJECT): _start,
    (ProgressionPhase.AWAITING_NEXT_SUBJECT, ProgressionEvent.COMPLETE): _finish,
}


def allowed_events(phase: ProgressionPhase) -> list[ProgressionEvent]:
    """Events accepted in a phase, in declaration order."""
    return [event for event in ProgressionEvent if (phase, event) in TRANSITIONS]


def transition(
    state: ProgressionState,
    event: ProgressionEvent,
    questionnaire: Questionnaire,
    **payload: Any,
) -> ProgressionState:
    """Apply an event to a state.

    Args:
        state: Current state.
        event: Event to apply.
        questionnaire: Questionnaire whose shape drives branching.
        **payload: Event arguments (subject/assessment ids, step index, ...).

    Returns:
        The next state.

    Raises:
        InvalidTransitionError: If the event is not allowed in the phase.
        ProgressionError: If the payload is inconsistent with the state.
    """
    handler = TRANSITIONS.get((state.phase, event))
    if handler is None:
        raise InvalidTransitionError(state.phase.value, event.value)
    return handler(state, questionnaire, **payload)
