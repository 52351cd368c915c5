"""Tests for ProgressionController.

Sessions run against the in-memory stores; a flaky store double covers the
failure paths (swallowed saves, failed completion).
"""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from household_checkup.config import LoggingSettings, Settings
from household_checkup.domain.entities import Profile
from household_checkup.domain.enums import AssessmentStatus, AssessmentType, ProfileType
from household_checkup.domain.exceptions import (
    AssessmentNotFoundError,
    InvalidAnswerError,
    InvalidTransitionError,
    PersistenceError,
    ProfileNotFoundError,
    ProgressionError,
    ValidationError,
)
from household_checkup.infrastructure.logging import setup_logging
from household_checkup.infrastructure.storage import InMemoryDataStore, InMemoryProfileStore
from household_checkup.infrastructure.telemetry import TelemetryCategory, TelemetryRegistry
from household_checkup.services.progression import AssessmentSession, ProgressionController
from household_checkup.services.scoring import ScoringEngine
from household_checkup.services.state_machine import ProgressionPhase, ProgressionState
from tests.fixtures import FlakyDataStore, Household, raw_checkup_selections

pytestmark = pytest.mark.unit


async def _settle(session: AssessmentSession) -> None:
    """Let scheduled answer saves run."""
    while session.pending_saves:
        await asyncio.sleep(0)


async def _run(
    controller: ProgressionController,
    session: AssessmentSession,
    values: list[int],
    start: int = 0,
) -> ProgressionState:
    """Answer steps from `start` on, passing through the interlude."""
    state = session.state
    for step in range(start, len(values)):
        state = await controller.answer(session, step, values[step])
        if state.phase is ProgressionPhase.INTERLUDE:
            state = await controller.continue_flow(session)
    return state


@pytest.fixture
def flaky_store() -> FlakyDataStore:
    return FlakyDataStore()


@pytest.fixture
def flaky_controller(
    profile_store: InMemoryProfileStore,
    flaky_store: FlakyDataStore,
    settings: Settings,
    engine: ScoringEngine,
) -> ProgressionController:
    return ProgressionController(
        profile_store, flaky_store, settings=settings, scoring_engine=engine
    )


class TestStart:
    """Tests for starting and resuming sessions."""

    @pytest.mark.asyncio
    async def test_start_checkup(
        self, controller: ProgressionController, household: Household
    ) -> None:
        child = household.children[0]
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, child.id)

        assert session.phase is ProgressionPhase.IN_PROGRESS
        assert session.state.step_index == 0
        assert session.state.subject_id == child.id
        assert session.current_question is not None
        assert session.current_question.code == "checkup_q01"
        assert session.assessment.total_steps == 31

    @pytest.mark.asyncio
    async def test_worry_tags_snapshot(
        self, controller: ProgressionController, household: Household
    ) -> None:
        child = household.children[0]
        checkup = await controller.start(household.user_id, AssessmentType.CHECKUP, child.id)
        parent = await controller.start(household.user_id, AssessmentType.PARENT)
        family = await controller.start(household.user_id, AssessmentType.FAMILY)

        assert checkup.assessment.worry_tags.to_dict() == {
            "child": ["Bullying", "Sleep & routine"]
        }
        assert parent.assessment.worry_tags.to_dict() == {"personal": ["Burnout"]}
        assert family.assessment.worry_tags.to_dict() == {
            "family": ["Family stress", "Partner relationship"]
        }

    @pytest.mark.asyncio
    async def test_parent_flow_uses_first_parent(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(household.user_id, AssessmentType.PARENT, uuid4())
        assert session.state.subject_id == household.parent.id

    @pytest.mark.asyncio
    async def test_double_start_reuses_assessment(
        self, controller: ProgressionController, household: Household
    ) -> None:
        child = household.children[0]
        first, second = await asyncio.gather(
            controller.start(household.user_id, AssessmentType.CHECKUP, child.id),
            controller.start(household.user_id, AssessmentType.CHECKUP, child.id),
        )
        assert first.assessment.id == second.assessment.id

    @pytest.mark.asyncio
    async def test_checkup_requires_subject(
        self, controller: ProgressionController, household: Household
    ) -> None:
        with pytest.raises(ValidationError, match="subject id is required"):
            await controller.start(household.user_id, AssessmentType.CHECKUP)

    @pytest.mark.asyncio
    async def test_checkup_rejects_parent_subject(
        self, controller: ProgressionController, household: Household
    ) -> None:
        with pytest.raises(ValidationError, match="expected child"):
            await controller.start(
                household.user_id, AssessmentType.CHECKUP, household.parent.id
            )

    @pytest.mark.asyncio
    async def test_unknown_subject(
        self, controller: ProgressionController, household: Household
    ) -> None:
        with pytest.raises(ProfileNotFoundError):
            await controller.start(household.user_id, AssessmentType.CHECKUP, uuid4())

    @pytest.mark.asyncio
    async def test_subject_from_other_household(
        self, controller: ProgressionController, household: Household
    ) -> None:
        stranger = Profile(user_id=uuid4(), type=ProfileType.CHILD)
        household.profile_store.add(stranger)
        with pytest.raises(ProfileNotFoundError):
            await controller.start(household.user_id, AssessmentType.CHECKUP, stranger.id)

    @pytest.mark.asyncio
    async def test_parent_flow_without_parent(
        self, settings: Settings, engine: ScoringEngine
    ) -> None:
        user_id = uuid4()
        store = InMemoryProfileStore([Profile(user_id=user_id, type=ProfileType.CHILD)])
        controller = ProgressionController(
            store, InMemoryDataStore(), settings=settings, scoring_engine=engine
        )
        with pytest.raises(ValidationError, match="no parent profile"):
            await controller.start(user_id, AssessmentType.PARENT)


class TestAnswering:
    """Tests for answers, skips and the interlude."""

    @pytest.mark.asyncio
    async def test_answer_persists_stored_value(
        self,
        controller: ProgressionController,
        data_store: InMemoryDataStore,
        household: Household,
    ) -> None:
        """Reverse items store 4 - selection with a 1-based step number."""
        child = household.children[0]
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, child.id)
        await _run(controller, session, [0, 1, 2, 3, 4, 0, 1])
        await _settle(session)

        answers = await data_store.list_answers(session.assessment.id)
        assert [a.value for a in answers] == [0, 1, 2, 3, 4, 0, 3]
        assert [a.step_number for a in answers] == [1, 2, 3, 4, 5, 6, 7]
        stored = await data_store.get_assessment(session.assessment.id)
        assert stored is not None
        assert stored.current_step == 7

    @pytest.mark.asyncio
    async def test_off_scale_value_rejected(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(
            household.user_id, AssessmentType.CHECKUP, household.children[0].id
        )
        with pytest.raises(InvalidAnswerError, match="checkup_q01: value 5"):
            await controller.answer(session, 0, 5)
        assert session.answers == {}

    @pytest.mark.asyncio
    async def test_not_applicable_accepted(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(household.user_id, AssessmentType.FAMILY)
        await controller.answer(session, 0, 1)
        with pytest.raises(InvalidAnswerError):
            await controller.answer(session, 1, 7)
        state = await controller.answer(session, 1, 6)
        assert state.phase is ProgressionPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_step_out_of_range(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(
            household.user_id, AssessmentType.CHECKUP, household.children[0].id
        )
        with pytest.raises(ProgressionError):
            await controller.answer(session, 31, 0)
        with pytest.raises(ProgressionError, match="Cannot answer step 3"):
            await controller.answer(session, 3, 0)

    @pytest.mark.asyncio
    async def test_interlude_once_after_step_twenty(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(
            household.user_id, AssessmentType.CHECKUP, household.children[0].id
        )
        values = raw_checkup_selections(1)
        phases = []
        for step in range(25):
            state = await controller.answer(session, step, values[step])
            phases.append(state.phase)
            if state.phase is ProgressionPhase.INTERLUDE:
                assert session.current_question is None
                with pytest.raises(InvalidTransitionError):
                    await controller.answer(session, step + 1, 0)
                await controller.continue_flow(session)

        assert phases.count(ProgressionPhase.INTERLUDE) == 1
        assert phases.index(ProgressionPhase.INTERLUDE) == 20
        assert session.state.step_index == 25

    @pytest.mark.asyncio
    async def test_skip_at_step_twenty_still_shows_interlude_once(
        self,
        controller: ProgressionController,
        data_store: InMemoryDataStore,
        household: Household,
    ) -> None:
        session = await controller.start(
            household.user_id, AssessmentType.CHECKUP, household.children[0].id
        )
        values = raw_checkup_selections(1)
        phases = []
        for step in range(31):
            if step == 20:
                state = await controller.skip(session, step)
            else:
                state = await controller.answer(session, step, values[step])
            phases.append(state.phase)
            if state.phase is ProgressionPhase.INTERLUDE:
                await controller.continue_flow(session)

        assert phases.count(ProgressionPhase.INTERLUDE) == 1
        assert phases[20] is ProgressionPhase.INTERLUDE
        assert phases[-1] is ProgressionPhase.AWAITING_NEXT_SUBJECT
        answers = await data_store.list_answers(session.assessment.id)
        assert answers[20].question_code == "checkup_q21"
        assert answers[20].value == -1

    @pytest.mark.asyncio
    async def test_continue_outside_interlude(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(household.user_id, AssessmentType.PARENT)
        with pytest.raises(InvalidTransitionError):
            await controller.continue_flow(session)

    @pytest.mark.asyncio
    async def test_reanswer_earlier_step(
        self,
        controller: ProgressionController,
        data_store: InMemoryDataStore,
        household: Household,
    ) -> None:
        session = await controller.start(
            household.user_id, AssessmentType.CHECKUP, household.children[0].id
        )
        await _run(controller, session, [1, 1, 1, 1])
        state = await controller.answer(session, 1, 4)
        await _settle(session)

        assert state.step_index == 4
        stored = await data_store.list_answers(session.assessment.id)
        answers = {a.question_code: a.value for a in stored}
        assert answers["checkup_q02"] == 4
        assert len(answers) == 4


class TestResume:
    """Tests for resuming an in-progress assessment."""

    @pytest.mark.asyncio
    async def test_skip_is_stored_and_shown_empty_on_resume(
        self,
        controller: ProgressionController,
        data_store: InMemoryDataStore,
        household: Household,
    ) -> None:
        child = household.children[0]
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, child.id)
        await _run(controller, session, [2, 2, 2, 2, 2])
        await controller.skip(session, 5)
        await controller.answer(session, 6, 1)
        await _settle(session)

        answers = await data_store.list_answers(session.assessment.id)
        assert answers[5].value == -1

        resumed = await controller.start(household.user_id, AssessmentType.CHECKUP, child.id)
        assert resumed.assessment.id == session.assessment.id
        assert resumed.state.step_index == 7
        assert resumed.answers["checkup_q06"] == -1
        assert resumed.displayed_value("checkup_q06") is None
        assert resumed.displayed_value("checkup_q07") == 1
        assert resumed.displayed_value("checkup_q01") == 2
        assert resumed.displayed_value("checkup_q20") is None

    @pytest.mark.asyncio
    async def test_fully_answered_run_resumes_on_last_step(
        self,
        flaky_controller: ProgressionController,
        flaky_store: FlakyDataStore,
        household: Household,
    ) -> None:
        flaky_store.fail_complete = True
        session = await flaky_controller.start(household.user_id, AssessmentType.PARENT)
        with pytest.raises(PersistenceError):
            await _run(flaky_controller, session, [0, 1, 1, 1, 1])

        resumed = await flaky_controller.start(household.user_id, AssessmentType.PARENT)
        assert resumed.state.step_index == 4
        assert resumed.phase is ProgressionPhase.IN_PROGRESS


class TestCompletion:
    """Tests for completion, scoring and the household sequence."""

    @pytest.mark.asyncio
    async def test_children_run_in_creation_order(
        self,
        controller: ProgressionController,
        data_store: InMemoryDataStore,
        household: Household,
    ) -> None:
        first, second = household.children
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, first.id)
        state = await _run(controller, session, raw_checkup_selections(2))

        assert state.phase is ProgressionPhase.AWAITING_NEXT_SUBJECT
        assert state.next_subject_id == second.id
        assert session.assessment.status is AssessmentStatus.COMPLETED
        assert session.assessment.results_summary == {
            "emotional": {"score": 10, "status": "concerning"},
            "conduct": {"score": 10, "status": "concerning"},
            "hyperactivity": {"score": 10, "status": "typical"},
            "peer_problems": {"score": 12, "status": "concerning"},
            "impact_child": {"score": 2, "status": "concerning"},
            "impact_parent": {"score": 6, "status": "concerning"},
            "impact_family": {"score": 12, "status": "concerning"},
        }

        nxt = await controller.next_subject(session)
        assert nxt.state.subject_id == second.id
        assert nxt.state.step_index == 0

        final = await _run(controller, nxt, raw_checkup_selections(0))
        assert final.phase is ProgressionPhase.COMPLETED
        assert final.next_assessment_type is AssessmentType.PARENT

        done = await data_store.find_completed_assessment(second.id, AssessmentType.CHECKUP)
        assert done is not None
        assert done.results_summary is not None
        assert done.results_summary["emotional"] == {"score": 0, "status": "typical"}

    @pytest.mark.asyncio
    async def test_completed_sibling_is_not_offered(
        self, controller: ProgressionController, household: Household
    ) -> None:
        """Starting with the younger child ends the loop once both are done."""
        first, second = household.children
        older = await controller.start(household.user_id, AssessmentType.CHECKUP, first.id)
        state = await _run(controller, older, raw_checkup_selections(1))
        assert state.next_subject_id == second.id

        younger = await controller.start(household.user_id, AssessmentType.CHECKUP, second.id)
        final = await _run(controller, younger, raw_checkup_selections(1))
        assert final.phase is ProgressionPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_parent_and_family_flow(
        self,
        controller: ProgressionController,
        data_store: InMemoryDataStore,
        household: Household,
    ) -> None:
        parent = await controller.start(household.user_id, AssessmentType.PARENT)
        state = await _run(controller, parent, [1, 3, 2, 0, 1])
        assert state.phase is ProgressionPhase.COMPLETED
        assert state.next_assessment_type is AssessmentType.FAMILY
        assert parent.assessment.results_summary == {
            "anxiety": {"score": 5, "status": "concerning"},
            "depression": {"score": 1, "status": "typical"},
            "total": {"score": 6, "status": "borderline"},
        }

        family = await controller.start(household.user_id, AssessmentType.FAMILY)
        state = await _run(controller, family, [3, 6])
        assert state.is_terminal
        assert state.next_assessment_type is None
        stored = await data_store.find_completed_assessment(
            household.parent.id, AssessmentType.FAMILY
        )
        assert stored is not None
        assert stored.results_summary == {
            "family_stress": {"score": 3, "status": "concerning"},
            "partner_relationship": {"score": 0, "status": "typical"},
        }

    @pytest.mark.asyncio
    async def test_child_deleted_before_completion(
        self, controller: ProgressionController, household: Household
    ) -> None:
        first, second = household.children
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, first.id)
        values = raw_checkup_selections(1)
        await _run(controller, session, values[:30])
        household.profile_store.remove(second.id)

        state = await controller.answer(session, 30, values[30])
        assert state.phase is ProgressionPhase.COMPLETED
        assert state.next_assessment_type is AssessmentType.PARENT

    @pytest.mark.asyncio
    async def test_waiting_child_deleted_moves_to_next(
        self, controller: ProgressionController, household: Household
    ) -> None:
        third = household.add_child("Child3")
        first, second = household.children[:2]
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, first.id)
        state = await _run(controller, session, raw_checkup_selections(1))
        assert state.next_subject_id == second.id

        household.profile_store.remove(second.id)
        nxt = await controller.next_subject(session)
        assert nxt.state.subject_id == third.id

    @pytest.mark.asyncio
    async def test_waiting_child_completed_elsewhere_is_skipped(
        self,
        controller: ProgressionController,
        data_store: InMemoryDataStore,
        household: Household,
    ) -> None:
        """A waiting child finished in another session is not reopened."""
        first, second = household.children
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, first.id)
        state = await _run(controller, session, raw_checkup_selections(1))
        assert state.next_subject_id == second.id

        other = await controller.start(household.user_id, AssessmentType.CHECKUP, second.id)
        await _run(controller, other, raw_checkup_selections(1))

        result = await controller.next_subject(session)
        assert result is session
        assert result.phase is ProgressionPhase.COMPLETED
        assert result.state.next_assessment_type is AssessmentType.PARENT
        reopened = await data_store.find_in_progress_assessment(second.id, AssessmentType.CHECKUP)
        assert reopened is None

    @pytest.mark.asyncio
    async def test_waiting_child_completed_elsewhere_moves_to_next(
        self, controller: ProgressionController, household: Household
    ) -> None:
        third = household.add_child("Child3")
        first, second = household.children[:2]
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, first.id)
        await _run(controller, session, raw_checkup_selections(1))

        other = await controller.start(household.user_id, AssessmentType.CHECKUP, second.id)
        state = await _run(controller, other, raw_checkup_selections(1))
        assert state.next_subject_id == third.id

        nxt = await controller.next_subject(session)
        assert nxt.state.subject_id == third.id
        assert nxt.state.step_index == 0

    @pytest.mark.asyncio
    async def test_last_waiting_child_deleted_completes(
        self, controller: ProgressionController, household: Household
    ) -> None:
        first, second = household.children
        session = await controller.start(household.user_id, AssessmentType.CHECKUP, first.id)
        await _run(controller, session, raw_checkup_selections(1))

        household.profile_store.remove(second.id)
        result = await controller.next_subject(session)
        assert result is session
        assert result.phase is ProgressionPhase.COMPLETED
        assert result.state.next_assessment_type is AssessmentType.PARENT

    @pytest.mark.asyncio
    async def test_completion_events_tagged_with_assessment(
        self,
        controller: ProgressionController,
        household: Household,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        setup_logging(LoggingSettings(level="INFO", format="json", include_caller=False))
        session = await controller.start(household.user_id, AssessmentType.PARENT)
        await _run(controller, session, [1, 3, 2, 0, 1])

        lines = [
            line for line in capsys.readouterr().out.splitlines() if "Assessment completed" in line
        ]
        assert len(lines) == 1
        assert str(session.assessment.id) in lines[0]
        assert '"assessment_type": "parent"' in lines[0]

    @pytest.mark.asyncio
    async def test_next_subject_requires_waiting_phase(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(household.user_id, AssessmentType.PARENT)
        with pytest.raises(InvalidTransitionError):
            await controller.next_subject(session)

    @pytest.mark.asyncio
    async def test_complete_requires_last_step(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(household.user_id, AssessmentType.PARENT)
        with pytest.raises(ProgressionError, match="Last step"):
            await controller.complete(session)


class TestFailures:
    """Tests for persistence failures around completion."""

    @pytest.mark.asyncio
    async def test_completion_failure_blocks_and_can_retry(
        self,
        flaky_controller: ProgressionController,
        flaky_store: FlakyDataStore,
        household: Household,
    ) -> None:
        flaky_store.fail_complete = True
        session = await flaky_controller.start(household.user_id, AssessmentType.PARENT)

        with pytest.raises(PersistenceError):
            await _run(flaky_controller, session, [0, 1, 1, 1, 1])

        assert session.phase is ProgressionPhase.IN_PROGRESS
        stored = await flaky_store.get_assessment(session.assessment.id)
        assert stored is not None
        assert stored.status is AssessmentStatus.IN_PROGRESS

        flaky_store.fail_complete = False
        state = await flaky_controller.complete(session)
        assert state.phase is ProgressionPhase.COMPLETED
        with pytest.raises(ProgressionError):
            await flaky_controller.complete(session)

    @pytest.mark.asyncio
    async def test_failed_save_retried_before_scoring(
        self,
        flaky_controller: ProgressionController,
        flaky_store: FlakyDataStore,
        household: Household,
        telemetry: TelemetryRegistry,
    ) -> None:
        flaky_store.failing_codes["parent_q03"] = 1
        session = await flaky_controller.start(household.user_id, AssessmentType.PARENT)

        state = await _run(flaky_controller, session, [0, 1, 2, 0, 0])

        assert state.phase is ProgressionPhase.COMPLETED
        assert telemetry.count(TelemetryCategory.ANSWER_SAVE_FAILED) == 1
        answers = await flaky_store.list_answers(session.assessment.id)
        assert [a.value for a in answers] == [0, 1, 2, 0, 0]
        assert session.assessment.results_summary is not None
        assert session.assessment.results_summary["anxiety"]["score"] == 3

    @pytest.mark.asyncio
    async def test_save_that_keeps_failing_blocks_completion(
        self,
        flaky_controller: ProgressionController,
        flaky_store: FlakyDataStore,
        household: Household,
    ) -> None:
        flaky_store.failing_codes["parent_q02"] = 2
        session = await flaky_controller.start(household.user_id, AssessmentType.PARENT)

        with pytest.raises(PersistenceError, match="parent_q02"):
            await _run(flaky_controller, session, [0, 1, 1, 1, 1])
        assert flaky_store.write_count == 0


class TestAbandon:
    """Tests for abandoning assessments."""

    @pytest.mark.asyncio
    async def test_abandon_in_progress(
        self, controller: ProgressionController, household: Household
    ) -> None:
        session = await controller.start(household.user_id, AssessmentType.PARENT)
        abandoned = await controller.abandon(session.assessment.id)
        assert abandoned.status is AssessmentStatus.ABANDONED

        fresh = await controller.start(household.user_id, AssessmentType.PARENT)
        assert fresh.assessment.id != session.assessment.id

        with pytest.raises(ProgressionError, match="not in progress"):
            await controller.abandon(session.assessment.id)

    @pytest.mark.asyncio
    async def test_abandon_unknown(self, controller: ProgressionController) -> None:
        with pytest.raises(AssessmentNotFoundError):
            await controller.abandon(uuid4())
