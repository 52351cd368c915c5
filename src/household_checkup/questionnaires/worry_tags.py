"""Worry-tag catalogs and snapshot capture.

Caregivers pick worry tags on profiles. A parent profile holds both personal
and family tags in one set; the family catalog decides which bucket a tag
belongs to. The bucket relevant to an assessment is frozen onto it when the
assessment is created.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from household_checkup.domain.enums import AssessmentType, ProfileType
from household_checkup.domain.value_objects import WorryTagsSnapshot

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from household_checkup.domain.entities import Profile

CHILD_WORRY_TAGS: Final[tuple[str, ...]] = (
    "Focus & attention",
    "Sadness & crying",
    "Worries & anxiety",
    "Eating",
    "Sleep & routine",
    "Toileting",
    "Sensory sensitivity",
    "Anger & aggression",
    "Impulsivity",
    "Trauma",
    "Grief & loss",
    "Bullying",
    "Self-esteem",
    "School & kindergarten",
    "Hitting, biting or kicking",
    "Gender or sexual identity",
    "Cooperation",
)

PERSONAL_WORRY_TAGS: Final[tuple[str, ...]] = (
    "Burnout",
    "Anxiety",
    "Low mood",
    "Difficulty concentrating",
    "General stress",
)

FAMILY_WORRY_TAGS: Final[tuple[str, ...]] = (
    "Separation or divorce",
    "Family stress",
    "Partner relationship",
    "Partner's mental health",
    "Parenting",
    "Family conflict",
)

_FAMILY_TAG_SET: Final[frozenset[str]] = frozenset(FAMILY_WORRY_TAGS)


def personal_tags(tags: Iterable[str]) -> list[str]:
    """Tags from a parent profile that are not family tags."""
    return [tag for tag in tags if tag not in _FAMILY_TAG_SET]


def family_tags(tags: Iterable[str]) -> list[str]:
    """Tags that belong to the family catalog."""
    return [tag for tag in tags if tag in _FAMILY_TAG_SET]


def capture_snapshot(
    assessment_type: AssessmentType,
    subject: Profile,
    household: Sequence[Profile],
) -> WorryTagsSnapshot:
    """Build the worry-tag snapshot for a new assessment.

    Args:
        assessment_type: Flow the assessment belongs to.
        subject: The profile the assessment is about.
        household: Every profile of the household (used for family tags).

    Returns:
        A snapshot holding only the bucket relevant to the flow.
    """
    if assessment_type is AssessmentType.CHECKUP:
        return WorryTagsSnapshot.capture(child=subject.worry_tags)
    if assessment_type is AssessmentType.PARENT:
        return WorryTagsSnapshot.capture(personal=personal_tags(subject.worry_tags))
    adults = [p for p in household if p.type in (ProfileType.PARENT, ProfileType.PARTNER)]
    if subject not in adults:
        adults.append(subject)
    return WorryTagsSnapshot.capture(
        family=[tag for profile in adults for tag in family_tags(profile.worry_tags)]
    )
