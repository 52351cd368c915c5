"""Scoring engine: stored answers to per-domain scores and status labels.

Scoring is a pure function of the answer set, the questionnaire catalog, the
cutoff table and the skip policy. It performs no I/O, so completion and
report recomputation produce identical summaries for identical answers.

Skip handling:
    - `-1` (skipped) and a scale's "not applicable" option contribute 0.
    - zero policy: the domain maximum stays the full item count.
    - exclude policy: the maximum shrinks to the answered items, and the
      status is classified on the score prorated back to the full maximum.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from household_checkup.domain.enums import ScoringDomain, SkipPolicy
from household_checkup.domain.exceptions import RecalculationError
from household_checkup.domain.value_objects import SKIPPED_VALUE, DomainScore
from household_checkup.infrastructure.logging import get_logger
from household_checkup.questionnaires.catalog import ANSWER_SCALES, get_questionnaire
from household_checkup.services.cutoffs import CutoffTable, load_cutoff_table

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from household_checkup.config import ScoringSettings
    from household_checkup.domain.entities import Answer
    from household_checkup.domain.enums import AssessmentType
    from household_checkup.questionnaires.catalog import AnswerScale, Questionnaire

logger = get_logger(__name__)


@dataclass(slots=True)
class _Tally:
    """Running totals for one domain."""

    score: int = 0
    answered: int = 0
    answered_max: int = 0
    full_max: int = 0
    items: int = 0


class ScoringEngine:
    """Aggregates an assessment's stored answers into domain scores."""

    def __init__(
        self,
        settings: ScoringSettings | None = None,
        cutoffs: CutoffTable | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Scoring settings. If None, uses defaults from config.
            cutoffs: Cutoff table. If None, loads the configured table.
        """
        if settings is None:
            from household_checkup.config import get_settings  # noqa: PLC0415

            settings = get_settings().scoring
        self._skip_policy = settings.skip_policy
        self._cutoffs = cutoffs or load_cutoff_table(settings.cutoffs_path)

    @property
    def skip_policy(self) -> SkipPolicy:
        """Skip policy in effect."""
        return self._skip_policy

    @property
    def cutoffs(self) -> CutoffTable:
        """Cutoff table in effect."""
        return self._cutoffs

    def score(
        self,
        assessment_type: AssessmentType,
        answers: Iterable[Answer],
    ) -> dict[ScoringDomain, DomainScore]:
        """Score an answer set.

        Args:
            assessment_type: Questionnaire the answers belong to.
            answers: Stored (post-transform) answers.

        Returns:
            Domain scores in ScoringDomain declaration order.

        Raises:
            RecalculationError: If the answer set is malformed.
        """
        questionnaire = get_questionnaire(assessment_type)
        tallies = self._tally(questionnaire, list(answers))

        for composite, parts in questionnaire.composite_domains.items():
            combined = _Tally()
            for part in parts:
                tally = tallies.get(part, _Tally())
                combined.score += tally.score
                combined.answered += tally.answered
                combined.answered_max += tally.answered_max
                combined.full_max += tally.full_max
                combined.items += tally.items
            tallies[composite] = combined

        results = {
            domain: self._to_domain_score(domain, tallies[domain])
            for domain in ScoringDomain
            if domain in tallies
        }
        logger.debug(
            "Answers scored",
            assessment_type=assessment_type.value,
            domains=len(results),
            skip_policy=self._skip_policy.value,
        )
        return results

    def score_summary(
        self,
        assessment_type: AssessmentType,
        answers: Iterable[Answer],
    ) -> dict[str, dict[str, Any]]:
        """Score an answer set and serialize it as a results summary."""
        return to_results_summary(self.score(assessment_type, answers))

    def _tally(
        self, questionnaire: Questionnaire, answers: list[Answer]
    ) -> dict[ScoringDomain, _Tally]:
        tallies: dict[ScoringDomain, _Tally] = {}

        # Catalog items set the full denominator, answered or not.
        for domain in questionnaire.domains():
            items = questionnaire.items_for(domain)
            if not items:
                continue
            tally = tallies.setdefault(domain, _Tally())
            tally.items = len(items)
            tally.full_max = sum(q.scale.max_value for q in items)

        seen: set[str] = set()
        for answer in answers:
            if answer.question_code in seen:
                raise RecalculationError(
                    f"Duplicate answer for {answer.question_code} in {answer.assessment_id}"
                )
            seen.add(answer.question_code)

            try:
                domain = ScoringDomain(answer.category)
            except ValueError:
                continue

            scale = _scale_for(answer)
            question = questionnaire.question_by_code(answer.question_code)
            in_catalog = question is not None and question.domain is domain

            tally = tallies.setdefault(domain, _Tally())
            if not in_catalog:
                # Categories without catalog items are sized by their answers.
                tally.items += 1
                tally.full_max += scale.max_value

            if answer.value == SKIPPED_VALUE or answer.value == scale.not_applicable:
                continue
            tally.score += answer.value
            tally.answered += 1
            tally.answered_max += scale.max_value
        return tallies

    def _to_domain_score(self, domain: ScoringDomain, tally: _Tally) -> DomainScore:
        if self._skip_policy is SkipPolicy.EXCLUDE:
            max_score = tally.answered_max
            classified: float = (
                tally.score * tally.full_max / tally.answered_max if tally.answered_max else 0
            )
        else:
            max_score = tally.full_max
            classified = tally.score
        return DomainScore(
            domain=domain,
            score=tally.score,
            status=self._cutoffs.classify(domain, classified),
            max_score=max_score,
            answered_items=tally.answered,
            skipped_items=max(tally.items - tally.answered, 0),
        )


def _scale_for(answer: Answer) -> AnswerScale:
    scale = ANSWER_SCALES.get(answer.answer_type)
    if scale is None:
        raise RecalculationError(
            f"Unknown answer type '{answer.answer_type}' for {answer.question_code}"
        )
    if answer.value != SKIPPED_VALUE and answer.value not in scale.values:
        raise RecalculationError(
            f"Value outside '{scale.answer_type}' scale for {answer.question_code}"
        )
    return scale


def to_results_summary(scores: Mapping[ScoringDomain, DomainScore]) -> dict[str, dict[str, Any]]:
    """Serialize domain scores to the stored `{domain: {score, status}}` shape."""
    return {
        domain.value: scores[domain].to_summary() for domain in ScoringDomain if domain in scores
    }
