"""Domain enumerations for the household checkup core.

This module defines core enumerations used throughout the domain layer:
- ProfileType: Household member roles
- AssessmentType: The three questionnaire flows (checkup, parent, family)
- AssessmentStatus: Assessment lifecycle states
- ScoringDomain: Clinical scoring categories
- DomainStatus: Status labels derived from domain scores
- LegacyImpactStatus: Status labels of the retired single `impact` field
- SkipPolicy: How skipped answers enter a domain score
"""

from __future__ import annotations

from enum import StrEnum


class ProfileType(StrEnum):
    """Role of a household member."""

    PARENT = "parent"
    CHILD = "child"
    PARTNER = "partner"
    SIBLING = "sibling"
    CAREGIVER = "caregiver"
    OTHER = "other"


class AssessmentType(StrEnum):
    """Questionnaire flow an assessment belongs to.

    The household flow runs the types in declaration order: every child
    completes a checkup, then the parent questionnaire, then the family one.
    """

    CHECKUP = "checkup"
    """Per-child emotional and behavioural checkup (31 questions)."""

    PARENT = "parent"
    """Parent's own anxiety and mood screen."""

    FAMILY = "family"
    """Family stress and partner relationship."""

    @property
    def next_in_flow(self) -> AssessmentType | None:
        """Return the assessment type that follows this one, if any.

        Returns:
            The next AssessmentType in the household flow, or None at the end.
        """
        order = list(AssessmentType)
        index = order.index(self)
        return order[index + 1] if index + 1 < len(order) else None


class AssessmentStatus(StrEnum):
    """Lifecycle status of an assessment."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ScoringDomain(StrEnum):
    """Clinical scoring categories.

    Answer categories map one-to-one onto these values. Declaration order is
    the order domains appear in a results summary.
    """

    # Checkup (child)
    EMOTIONAL = "emotional"
    CONDUCT = "conduct"
    HYPERACTIVITY = "hyperactivity"
    PEER_PROBLEMS = "peer_problems"
    IMPACT_CHILD = "impact_child"
    IMPACT_PARENT = "impact_parent"
    IMPACT_FAMILY = "impact_family"

    # Parent
    ANXIETY = "anxiety"
    DEPRESSION = "depression"
    TOTAL = "total"

    # Family
    FAMILY_STRESS = "family_stress"
    PARTNER_RELATIONSHIP = "partner_relationship"
    COPARENTING = "coparenting"


class DomainStatus(StrEnum):
    """Status label for a scored domain, ordered from least to most severe."""

    TYPICAL = "typical"
    BORDERLINE = "borderline"
    CONCERNING = "concerning"

    @property
    def severity(self) -> int:
        """Ordinal severity (0 = typical, 2 = concerning)."""
        return list(DomainStatus).index(self)


class LegacyImpactStatus(StrEnum):
    """Status labels stored by older records in a single `impact` field."""

    HIGH_IMPACT = "high_impact"
    MEDIUM_IMPACT = "medium_impact"
    LOW_IMPACT = "low_impact"

    def to_domain_status(self) -> DomainStatus:
        """Map the legacy label onto the current three-tier scale."""
        return {
            LegacyImpactStatus.HIGH_IMPACT: DomainStatus.CONCERNING,
            LegacyImpactStatus.MEDIUM_IMPACT: DomainStatus.BORDERLINE,
            LegacyImpactStatus.LOW_IMPACT: DomainStatus.TYPICAL,
        }[self]


class SkipPolicy(StrEnum):
    """How a skipped answer (-1) enters its domain.

    The clinical owner has not confirmed which policy applies, so both are
    supported and selected through configuration.
    """

    ZERO = "zero"
    """Skipped items contribute 0; the domain maximum is unchanged."""

    EXCLUDE = "exclude"
    """Skipped items leave the denominator; classification is prorated."""
