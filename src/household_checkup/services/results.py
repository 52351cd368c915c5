"""Household report assembly from completed assessments.

The aggregator reads the latest completed assessment per (member, type),
repairs stale results on the way, and folds the legacy single `impact` field
into the current domain view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final

from household_checkup.domain.enums import (
    AssessmentStatus,
    AssessmentType,
    DomainStatus,
    LegacyImpactStatus,
    ProfileType,
    ScoringDomain,
)
from household_checkup.domain.exceptions import (
    AssessmentNotFoundError,
    PersistenceError,
    RecalculationError,
    ValidationError,
)
from household_checkup.infrastructure.hashing import results_fingerprint
from household_checkup.infrastructure.logging import get_logger
from household_checkup.infrastructure.telemetry import TelemetryCategory, record_telemetry
from household_checkup.services.scoring import ScoringEngine

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import date
    from uuid import UUID

    from household_checkup.domain.entities import Assessment, Profile
    from household_checkup.domain.value_objects import WorryTagsSnapshot
    from household_checkup.infrastructure.storage.protocols import DataStore, ProfileStore

logger = get_logger(__name__)

STALE_MARKER: Final[str] = "_stale"
LEGACY_IMPACT_KEY: Final[str] = "impact"

_IMPACT_DOMAINS: Final[frozenset[str]] = frozenset(
    {
        ScoringDomain.IMPACT_CHILD.value,
        ScoringDomain.IMPACT_PARENT.value,
        ScoringDomain.IMPACT_FAMILY.value,
    }
)


@dataclass(frozen=True, slots=True)
class DomainResult:
    """One domain as shown in a report.

    `domain` is a ScoringDomain value, or "impact" for a legacy record.
    """

    domain: str
    score: int | None
    status: DomainStatus
    legacy_status: LegacyImpactStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "domain": self.domain,
            "score": self.score,
            "status": self.status.value,
        }
        if self.legacy_status is not None:
            data["legacy_status"] = self.legacy_status.value
        return data


@dataclass(frozen=True, slots=True)
class SubjectReport:
    """Results of one completed assessment."""

    assessment_type: AssessmentType
    assessment_id: UUID
    profile_id: UUID
    first_name: str
    age: int | None
    completed_at: datetime | None
    worry_tags: WorryTagsSnapshot
    domains: tuple[DomainResult, ...] = ()
    results_available: bool = True
    """False when results could neither be read nor recomputed."""
    from_cache: bool = False
    """True when a failed recomputation fell back to the stored summary."""

    def domain(self, name: str) -> DomainResult | None:
        """Return the result for a domain name, or None."""
        for result in self.domains:
            if result.domain == name:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "assessment_type": self.assessment_type.value,
            "assessment_id": str(self.assessment_id),
            "profile_id": str(self.profile_id),
            "first_name": self.first_name,
            "age": self.age,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "worry_tags": self.worry_tags.to_dict(),
            "domains": [result.to_dict() for result in self.domains],
            "results_available": self.results_available,
            "from_cache": self.from_cache,
        }


@dataclass(frozen=True, slots=True)
class CompositeReport:
    """Household report: every completed child checkup, then parent and family."""

    user_id: UUID
    children: tuple[SubjectReport, ...] = ()
    parent: SubjectReport | None = None
    family: SubjectReport | None = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_empty(self) -> bool:
        return not self.children and self.parent is None and self.family is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "generated_at": self.generated_at.isoformat(),
            "children": [child.to_dict() for child in self.children],
            "parent": self.parent.to_dict() if self.parent else None,
            "family": self.family.to_dict() if self.family else None,
        }


def is_stale(summary: Mapping[str, Any] | None) -> bool:
    """True when a stored summary must be recomputed before use."""
    return not summary or summary.get(STALE_MARKER) is True


def normalize_summary(summary: Mapping[str, Any]) -> tuple[DomainResult, ...]:
    """Convert a stored summary into report domain results.

    Current domains come first in ScoringDomain order. A legacy `impact`
    entry is included only when no `impact_*` domain is present.
    """
    results: list[DomainResult] = []
    for domain in ScoringDomain:
        entry = summary.get(domain.value)
        if not isinstance(entry, dict):
            continue
        try:
            status = DomainStatus(entry.get("status"))
        except ValueError:
            logger.warning("Unknown domain status in stored summary", domain=domain.value)
            continue
        results.append(DomainResult(domain=domain.value, score=entry.get("score"), status=status))

    legacy = summary.get(LEGACY_IMPACT_KEY)
    if isinstance(legacy, dict) and not _IMPACT_DOMAINS.intersection(summary):
        try:
            legacy_status = LegacyImpactStatus(legacy.get("status"))
        except ValueError:
            logger.warning("Unknown legacy impact status in stored summary")
        else:
            results.append(
                DomainResult(
                    domain=LEGACY_IMPACT_KEY,
                    score=legacy.get("score"),
                    status=legacy_status.to_domain_status(),
                    legacy_status=legacy_status,
                )
            )
            record_telemetry(TelemetryCategory.LEGACY_IMPACT_NORMALIZED, component="results")
    return tuple(results)


def _cached_entries(summary: Mapping[str, Any] | None) -> dict[str, Any]:
    return {k: v for k, v in (summary or {}).items() if k != STALE_MARKER}


class ResultsAggregator:
    """Builds household reports and recomputes stale results."""

    def __init__(
        self,
        profile_store: ProfileStore,
        data_store: DataStore,
        scoring_engine: ScoringEngine | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            profile_store: Live household members.
            data_store: Assessments and answers.
            scoring_engine: Engine used for recomputation.
        """
        self._profiles = profile_store
        self._data = data_store
        self._scoring = scoring_engine or ScoringEngine()

    async def recalculate(self, assessment_id: UUID) -> dict[str, Any]:
        """Recompute and store the results of a completed assessment.

        Identical results are not written again.

        Returns:
            The recomputed results summary.

        Raises:
            AssessmentNotFoundError: If the assessment does not exist.
            ValidationError: If the assessment is not completed.
            RecalculationError: If the stored answers cannot be scored.
            PersistenceError: If the new summary cannot be written.
        """
        assessment = await self._data.get_assessment(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        if assessment.status is not AssessmentStatus.COMPLETED:
            raise ValidationError(
                f"Assessment {assessment_id} is {assessment.status.value}, not completed"
            )
        return await self._recompute(assessment)

    async def _recompute(self, assessment: Assessment) -> dict[str, Any]:
        answers = await self._data.list_answers(assessment.id)
        summary = self._scoring.score_summary(assessment.assessment_type, answers)
        fingerprint = results_fingerprint(summary)
        if fingerprint == results_fingerprint(assessment.results_summary):
            logger.debug(
                "Results unchanged; write skipped",
                assessment_id=str(assessment.id),
                fingerprint=fingerprint,
            )
            return summary
        await self._data.update_results(assessment.id, summary)
        record_telemetry(
            TelemetryCategory.RESULTS_RECALCULATED,
            component="results",
            assessment_id=str(assessment.id),
        )
        logger.info(
            "Results recalculated",
            assessment_id=str(assessment.id),
            fingerprint=fingerprint,
        )
        return summary

    async def build_household_report(
        self, user_id: UUID, *, today: date | None = None
    ) -> CompositeReport:
        """Assemble the household report.

        Args:
            user_id: Household account.
            today: Reference date for ages. Defaults to the current UTC date.

        Returns:
            One record per completed child checkup (oldest child first), plus
            the parent and family records when completed.
        """
        today = today or datetime.now(UTC).date()
        household = await self._profiles.list_profiles(user_id)
        children = [p for p in household if p.type is ProfileType.CHILD]
        parent = next((p for p in household if p.type is ProfileType.PARENT), None)

        members = [p.id for p in children] + ([parent.id] if parent else [])
        latest = (
            await self._data.find_latest_completed_assessments(members, list(AssessmentType))
            if members
            else {}
        )

        child_reports = []
        for child in children:
            assessment = latest.get((child.id, AssessmentType.CHECKUP))
            if assessment is not None:
                child_reports.append(await self._subject_report(assessment, child, today))

        parent_report = family_report = None
        if parent is not None:
            parent_assessment = latest.get((parent.id, AssessmentType.PARENT))
            if parent_assessment is not None:
                parent_report = await self._subject_report(parent_assessment, parent, today)
            family_assessment = latest.get((parent.id, AssessmentType.FAMILY))
            if family_assessment is not None:
                family_report = await self._subject_report(family_assessment, parent, today)

        report = CompositeReport(
            user_id=user_id,
            children=tuple(child_reports),
            parent=parent_report,
            family=family_report,
        )
        logger.info(
            "Household report built",
            children=len(report.children),
            has_parent=report.parent is not None,
            has_family=report.family is not None,
        )
        return report

    async def _subject_report(
        self, assessment: Assessment, profile: Profile, today: date
    ) -> SubjectReport:
        summary: Mapping[str, Any] | None = assessment.results_summary
        available = True
        from_cache = False

        if is_stale(summary):
            try:
                summary = await self._recompute(assessment)
            except (RecalculationError, PersistenceError) as e:
                cached = _cached_entries(summary)
                available = bool(cached)
                from_cache = available
                summary = cached
                logger.warning(
                    "Recalculation failed; using cached results"
                    if available
                    else "Recalculation failed; results not yet available",
                    assessment_id=str(assessment.id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                record_telemetry(
                    TelemetryCategory.RECALCULATION_FALLBACK,
                    component="results",
                    assessment_id=str(assessment.id),
                    cached=available,
                )

        return SubjectReport(
            assessment_type=assessment.assessment_type,
            assessment_id=assessment.id,
            profile_id=profile.id,
            first_name=profile.first_name,
            age=profile.age_on(today),
            completed_at=assessment.completed_at,
            worry_tags=assessment.worry_tags,
            domains=normalize_summary(summary) if summary else (),
            results_available=available,
            from_cache=from_cache,
        )
