"""Questionnaire definitions for the checkup, parent and family flows.

Each questionnaire is an ordered tuple of questions. A question's position is
its zero-based step index; `step_number` as stored on answers is index + 1.
Categories are ScoringDomain values, except parent demographics which are
recorded but never scored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from household_checkup.domain.enums import AssessmentType, ProfileType, ScoringDomain

DEMOGRAPHICS_CATEGORY: Final[str] = "demographics"

REVERSE_SCALE_MAX: Final[int] = 4
"""Reverse scoring is defined on the 0-4 scale only (stored = 4 - raw)."""


@dataclass(frozen=True, slots=True)
class AnswerOption:
    """One selectable option on an answer scale."""

    value: int
    label: str


@dataclass(frozen=True, slots=True)
class AnswerScale:
    """The set of options shown for an answer type.

    Attributes:
        answer_type: Identifier stored on answers (e.g. "default", "impact").
        options: Selectable options in display order.
        not_applicable: Option value meaning "does not apply"; scored as a skip.
    """

    answer_type: str
    options: tuple[AnswerOption, ...]
    not_applicable: int | None = None

    def __post_init__(self) -> None:
        """Validate the option list."""
        values = [option.value for option in self.options]
        if not values:
            raise ValueError(f"Scale '{self.answer_type}' has no options")
        if len(set(values)) != len(values):
            raise ValueError(f"Scale '{self.answer_type}' has duplicate values")
        if self.not_applicable is not None and self.not_applicable not in values:
            raise ValueError(f"Scale '{self.answer_type}': not_applicable must be an option")

    @property
    def values(self) -> tuple[int, ...]:
        """All selectable values."""
        return tuple(option.value for option in self.options)

    @property
    def max_value(self) -> int:
        """Highest value that carries a score (not-applicable excluded)."""
        return max(v for v in self.values if v != self.not_applicable)

    def label_for(self, value: int) -> str | None:
        """Return the label shown for a value, or None if not an option."""
        for option in self.options:
            if option.value == value:
                return option.label
        return None


def _scale(answer_type: str, *labels: str, not_applicable: int | None = None) -> AnswerScale:
    return AnswerScale(
        answer_type=answer_type,
        options=tuple(AnswerOption(value=i, label=label) for i, label in enumerate(labels)),
        not_applicable=not_applicable,
    )


ANSWER_SCALES: Final[dict[str, AnswerScale]] = {
    scale.answer_type: scale
    for scale in (
        _scale("default", "Not at all", "A little", "Sometimes", "Often", "Most of the time"),
        _scale("impact", "Not at all", "Only a little", "A medium amount", "A great deal"),
        _scale("sex", "Female", "Male", "Other", "Prefer not to say"),
        _scale(
            "frequency",
            "Not at all",
            "Several days",
            "More than half the days",
            "Nearly every day",
        ),
        _scale(
            "wellbeing",
            "Everything is fine",
            "We are stressed but managing",
            "We are very stressed",
            "We won't be able to handle things soon",
            "We are in crisis",
        ),
        _scale(
            "relationship",
            "All of the time",
            "Most of the time",
            "More often than not",
            "Occasionally",
            "Rarely",
            "Never",
            "Not applicable",
            not_applicable=6,
        ),
    )
}


@dataclass(frozen=True, slots=True)
class Question:
    """A single questionnaire item."""

    id: int
    code: str
    text: str
    category: str
    answer_type: str = "default"
    is_reverse: bool = False

    def __post_init__(self) -> None:
        """Validate answer type and reverse flag."""
        if self.answer_type not in ANSWER_SCALES:
            raise ValueError(f"Question {self.code}: unknown answer type '{self.answer_type}'")
        if self.is_reverse and self.scale.max_value != REVERSE_SCALE_MAX:
            raise ValueError(f"Question {self.code}: reverse scoring needs a 0-4 scale")

    @property
    def scale(self) -> AnswerScale:
        """Answer scale shown for this question."""
        return ANSWER_SCALES[self.answer_type]

    @property
    def domain(self) -> ScoringDomain | None:
        """Scoring domain, or None for unscored categories."""
        try:
            return ScoringDomain(self.category)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class Questionnaire:
    """An ordered questionnaire for one assessment type.

    Attributes:
        assessment_type: Flow this questionnaire drives.
        questions: Questions in step order.
        subject_role: Profile type the questionnaire is answered about.
        interlude_index: Step index after which the interlude is shown.
        sequences_subjects: Whether every subject of `subject_role` in the
            household runs through the flow in turn.
        composite_domains: Domains scored as the sum of other domains.
    """

    assessment_type: AssessmentType
    questions: tuple[Question, ...]
    subject_role: ProfileType
    interlude_index: int | None = None
    sequences_subjects: bool = False
    composite_domains: dict[ScoringDomain, tuple[ScoringDomain, ...]] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        """Validate question codes and the interlude checkpoint."""
        if not self.questions:
            raise ValueError(f"{self.assessment_type}: questionnaire is empty")
        codes = [q.code for q in self.questions]
        if len(set(codes)) != len(codes):
            raise ValueError(f"{self.assessment_type}: duplicate question codes")
        if self.interlude_index is not None and not (
            0 <= self.interlude_index < len(self.questions) - 1
        ):
            raise ValueError(f"{self.assessment_type}: interlude must precede the last step")

    @property
    def total_steps(self) -> int:
        """Number of answer steps."""
        return len(self.questions)

    @property
    def last_index(self) -> int:
        """Index of the final step."""
        return len(self.questions) - 1

    def question_at(self, step_index: int) -> Question:
        """Return the question shown at a step.

        Raises:
            IndexError: If the step index is outside the questionnaire.
        """
        if not 0 <= step_index < len(self.questions):
            raise IndexError(f"Step {step_index} outside 0..{self.last_index}")
        return self.questions[step_index]

    def question_by_code(self, code: str) -> Question | None:
        """Return the question with a code, or None."""
        for question in self.questions:
            if question.code == code:
                return question
        return None

    def domains(self) -> list[ScoringDomain]:
        """Scored domains in ScoringDomain declaration order."""
        present = {q.domain for q in self.questions if q.domain is not None}
        present.update(self.composite_domains)
        return [d for d in ScoringDomain if d in present]

    def items_for(self, domain: ScoringDomain) -> list[Question]:
        """Questions that feed a (non-composite) domain."""
        return [q for q in self.questions if q.domain is domain]


def _code(prefix: str, number: int) -> str:
    return f"{prefix}_q{number:02d}"


_CHECKUP_ITEMS: Final[tuple[tuple[str, ScoringDomain, bool], ...]] = (
    ("My child is often unhappy, depressed or tearful", ScoringDomain.EMOTIONAL, False),
    ("My child has many worries or often seems worried", ScoringDomain.EMOTIONAL, False),
    ("My child often complains of stomach-aches, headaches or other pains", ScoringDomain.EMOTIONAL, False),  # noqa: E501
    ("My child is nervous in new situations", ScoringDomain.EMOTIONAL, False),
    ("My child has many fears", ScoringDomain.EMOTIONAL, False),
    ("My child often loses their temper or has tantrums", ScoringDomain.CONDUCT, False),
    ("My child is generally well behaved and does what adults request", ScoringDomain.CONDUCT, True),  # noqa: E501
    ("My child often fights with or bullies other children", ScoringDomain.CONDUCT, False),
    ("My child often lies or cheats", ScoringDomain.CONDUCT, False),
    ("My child steals from home, school or elsewhere", ScoringDomain.CONDUCT, False),
    ("My child is restless and overactive, cannot stay still for long", ScoringDomain.HYPERACTIVITY, False),  # noqa: E501
    ("My child is constantly fidgeting or squirming", ScoringDomain.HYPERACTIVITY, False),
    ("My child is easily distracted and struggles to keep attention", ScoringDomain.HYPERACTIVITY, False),  # noqa: E501
    ("My child thinks things out before acting", ScoringDomain.HYPERACTIVITY, True),
    ("My child sees tasks through to the end and concentrates well", ScoringDomain.HYPERACTIVITY, True),  # noqa: E501
    ("My child gets on well with other children", ScoringDomain.PEER_PROBLEMS, True),
    ("My child is kind to younger children", ScoringDomain.PEER_PROBLEMS, True),
    ("My child often argues with adults", ScoringDomain.PEER_PROBLEMS, False),
    ("My child can be spiteful or vindictive", ScoringDomain.PEER_PROBLEMS, False),
    ("My child is helpful if someone is hurt, upset or ill", ScoringDomain.PEER_PROBLEMS, True),
    ("My child is liked by other children", ScoringDomain.PEER_PROBLEMS, True),
)

_CHECKUP_IMPACT_ITEMS: Final[tuple[tuple[str, ScoringDomain], ...]] = (
    ("Do the difficulties upset or distress your child?", ScoringDomain.IMPACT_CHILD),
    ("Do they interfere with home life?", ScoringDomain.IMPACT_FAMILY),
    ("Do they interfere with friendships?", ScoringDomain.IMPACT_FAMILY),
    ("Do they interfere with your child's learning or school?", ScoringDomain.IMPACT_FAMILY),
    ("Do they keep your child from taking part in activities?", ScoringDomain.IMPACT_FAMILY),
    ("Do they limit your family's everyday activities or routines?", ScoringDomain.IMPACT_FAMILY),
    ("Do they negatively affect your other children?", ScoringDomain.IMPACT_FAMILY),
    # impact_parent: three 0-3 items, so the maximum is 9 (not 6). Its cutoffs
    # are set against 9.
    ("Do they negatively affect your mental health?", ScoringDomain.IMPACT_PARENT),
    ("Do they negatively affect your partner's mental health?", ScoringDomain.IMPACT_PARENT),
    ("Do they negatively affect your relationship with your partner?", ScoringDomain.IMPACT_PARENT),
)


def _build_checkup() -> Questionnaire:
    questions: list[Question] = []
    for number, (text, domain, reverse) in enumerate(_CHECKUP_ITEMS, start=1):
        questions.append(
            Question(
                id=number,
                code=_code("checkup", number),
                text=text,
                category=domain.value,
                is_reverse=reverse,
            )
        )
    offset = len(questions)
    for number, (text, domain) in enumerate(_CHECKUP_IMPACT_ITEMS, start=offset + 1):
        questions.append(
            Question(
                id=number,
                code=_code("checkup", number),
                text=text,
                category=domain.value,
                answer_type="impact",
            )
        )
    return Questionnaire(
        assessment_type=AssessmentType.CHECKUP,
        questions=tuple(questions),
        subject_role=ProfileType.CHILD,
        # Interlude sits between the behaviour items and the impact items.
        interlude_index=offset - 1,
        sequences_subjects=True,
    )


def _build_parent() -> Questionnaire:
    items = (
        ("Sex designated at birth", DEMOGRAPHICS_CATEGORY, "sex"),
        ("Feeling nervous, anxious, or on edge", ScoringDomain.ANXIETY.value, "frequency"),
        ("Not being able to stop or control worrying", ScoringDomain.ANXIETY.value, "frequency"),
        ("Little interest or pleasure in doing things", ScoringDomain.DEPRESSION.value, "frequency"),  # noqa: E501
        ("Feeling down, depressed, or hopeless", ScoringDomain.DEPRESSION.value, "frequency"),
    )
    return Questionnaire(
        assessment_type=AssessmentType.PARENT,
        questions=tuple(
            Question(
                id=number,
                code=_code("parent", number),
                text=text,
                category=category,
                answer_type=answer_type,
            )
            for number, (text, category, answer_type) in enumerate(items, start=1)
        ),
        subject_role=ProfileType.PARENT,
        composite_domains={
            ScoringDomain.TOTAL: (ScoringDomain.ANXIETY, ScoringDomain.DEPRESSION),
        },
    )


def _build_family() -> Questionnaire:
    items = (
        ("How is your family doing?", ScoringDomain.FAMILY_STRESS, "wellbeing"),
        (
            "In general, how often do you think that things between you and your "
            "partner are going well?",
            ScoringDomain.PARTNER_RELATIONSHIP,
            "relationship",
        ),
    )
    return Questionnaire(
        assessment_type=AssessmentType.FAMILY,
        questions=tuple(
            Question(
                id=number,
                code=_code("family", number),
                text=text,
                category=domain.value,
                answer_type=answer_type,
            )
            for number, (text, domain, answer_type) in enumerate(items, start=1)
        ),
        subject_role=ProfileType.PARENT,
    )


QUESTIONNAIRES: Final[dict[AssessmentType, Questionnaire]] = {
    AssessmentType.CHECKUP: _build_checkup(),
    AssessmentType.PARENT: _build_parent(),
    AssessmentType.FAMILY: _build_family(),
}


def get_questionnaire(assessment_type: AssessmentType) -> Questionnaire:
    """Return the questionnaire for an assessment type."""
    return QUESTIONNAIRES[assessment_type]
