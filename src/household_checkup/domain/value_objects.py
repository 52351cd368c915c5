"""Immutable value objects for the household checkup domain.

Value objects are immutable (frozen) dataclasses that represent domain
concepts without identity. They are equal if all their attributes are equal.

All value objects use:
- frozen=True: Makes instances immutable
- slots=True: Optimizes memory usage
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from household_checkup.domain.enums import DomainStatus, ScoringDomain

SKIPPED_VALUE: Final[int] = -1
"""Stored answer value meaning the subject skipped the question."""

_WORRY_BUCKETS: Final[tuple[str, ...]] = ("child", "personal", "family")


def _freeze_tags(tags: Iterable[str] | None) -> tuple[str, ...] | None:
    if tags is None:
        return None
    return tuple(sorted({tag.strip() for tag in tags if tag and tag.strip()}))


@dataclass(frozen=True, slots=True)
class WorryTagsSnapshot:
    """Worry tags frozen onto an assessment when it is created.

    Reports read this snapshot verbatim instead of the live profile, so a
    later edit to a profile's worry tags never changes a historical report.
    A bucket that was not captured is None; a captured but empty bucket is ().
    """

    child: tuple[str, ...] | None = None
    """Concerns about the child the checkup is about."""

    personal: tuple[str, ...] | None = None
    """Concerns the parent shared about themselves."""

    family: tuple[str, ...] | None = None
    """Concerns about the family and the partner relationship."""

    @classmethod
    def capture(
        cls,
        *,
        child: Iterable[str] | None = None,
        personal: Iterable[str] | None = None,
        family: Iterable[str] | None = None,
    ) -> WorryTagsSnapshot:
        """Copy tag collections into an immutable, de-duplicated snapshot.

        Args:
            child: Child-bucket tags, or None to leave the bucket uncaptured.
            personal: Personal-bucket tags, or None.
            family: Family-bucket tags, or None.

        Returns:
            A snapshot holding sorted, de-duplicated tuples.
        """
        return cls(
            child=_freeze_tags(child),
            personal=_freeze_tags(personal),
            family=_freeze_tags(family),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> WorryTagsSnapshot:
        """Rebuild a snapshot from its JSON form.

        Args:
            data: Mapping of bucket name to list of tags (may be None).

        Returns:
            The corresponding snapshot; unknown keys are ignored.
        """
        data = data or {}
        return cls.capture(**{bucket: data.get(bucket) for bucket in _WORRY_BUCKETS})

    def to_dict(self) -> dict[str, list[str]]:
        """Serialize to the `{child?, personal?, family?}` JSON shape."""
        out: dict[str, list[str]] = {}
        for bucket in _WORRY_BUCKETS:
            tags = getattr(self, bucket)
            if tags is not None:
                out[bucket] = list(tags)
        return out

    @property
    def is_empty(self) -> bool:
        """True when no bucket holds a tag."""
        return not any(getattr(self, bucket) for bucket in _WORRY_BUCKETS)


@dataclass(frozen=True, slots=True)
class DomainScore:
    """Score and status of one domain, as computed by the scoring engine."""

    domain: ScoringDomain
    """The scored domain."""

    score: int
    """Sum of stored answer values in the domain (skips contribute 0)."""

    status: DomainStatus
    """Status derived from the cutoff table."""

    max_score: int
    """Domain maximum used for progress normalization only."""

    answered_items: int = 0
    """Items with a real answer."""

    skipped_items: int = 0
    """Items that were skipped or marked not applicable."""

    def __post_init__(self) -> None:
        """Validate counters.

        Raises:
            ValueError: If a counter or maximum is negative.
        """
        if self.max_score < 0:
            raise ValueError(f"max_score must be >= 0, got {self.max_score}")
        if self.answered_items < 0 or self.skipped_items < 0:
            raise ValueError("Item counts must be non-negative")

    @property
    def progress(self) -> float:
        """Score as a fraction of the domain maximum, clamped to [0, 1]."""
        if self.max_score == 0:
            return 0.0
        return max(0.0, min(1.0, self.score / self.max_score))

    def to_summary(self) -> dict[str, int | str]:
        """Serialize to the `{score, status}` results-summary entry."""
        return {"score": self.score, "status": self.status.value}
