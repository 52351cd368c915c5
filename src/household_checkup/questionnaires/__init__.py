"""Questionnaire catalog and worry-tag catalogs."""

from household_checkup.questionnaires.catalog import (
    ANSWER_SCALES,
    DEMOGRAPHICS_CATEGORY,
    QUESTIONNAIRES,
    AnswerOption,
    AnswerScale,
    Question,
    Questionnaire,
    get_questionnaire,
)
from household_checkup.questionnaires.worry_tags import (
    CHILD_WORRY_TAGS,
    FAMILY_WORRY_TAGS,
    PERSONAL_WORRY_TAGS,
    capture_snapshot,
)

__all__ = [
    "ANSWER_SCALES",
    "CHILD_WORRY_TAGS",
    "DEMOGRAPHICS_CATEGORY",
    "FAMILY_WORRY_TAGS",
    "PERSONAL_WORRY_TAGS",
    "QUESTIONNAIRES",
    "AnswerOption",
    "AnswerScale",
    "Question",
    "Questionnaire",
    "capture_snapshot",
    "get_questionnaire",
]
