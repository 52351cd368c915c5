"""Business logic services.

Public API:
- transform / unreverse: Reverse scoring between selection and storage
- AnswerRecorder: Idempotent answer persistence
- ProgressionController: Questionnaire state machine driver
- ScoringEngine: Answers to domain scores and statuses
- ResultsAggregator: Household report assembly and recomputation
- abandon_stale_assessments: Retention sweep
"""

from household_checkup.services.answer_recorder import AnswerRecorder
from household_checkup.services.answer_transform import transform, unreverse
from household_checkup.services.cutoffs import CutoffTable, DomainCutoff, load_cutoff_table
from household_checkup.services.progression import AssessmentSession, ProgressionController
from household_checkup.services.results import (
    CompositeReport,
    DomainResult,
    ResultsAggregator,
    SubjectReport,
)
from household_checkup.services.retention import abandon_stale_assessments
from household_checkup.services.scoring import ScoringEngine, to_results_summary
from household_checkup.services.state_machine import (
    ProgressionEvent,
    ProgressionPhase,
    ProgressionState,
    transition,
)

__all__ = [
    "AnswerRecorder",
    "AssessmentSession",
    "CompositeReport",
    "CutoffTable",
    "DomainCutoff",
    "DomainResult",
    "ProgressionController",
    "ProgressionEvent",
    "ProgressionPhase",
    "ProgressionState",
    "ResultsAggregator",
    "ScoringEngine",
    "SubjectReport",
    "abandon_stale_assessments",
    "load_cutoff_table",
    "to_results_summary",
    "transform",
    "transition",
    "unreverse",
]
