"""Abandonment sweep for in-progress assessments nobody came back to.

Runs from a scheduler the surrounding application owns. The idle threshold
comes from `PROGRESSION_ABANDON_AFTER_DAYS`; 0 disables the sweep.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from household_checkup.config import get_progression_settings
from household_checkup.domain.enums import AssessmentStatus
from household_checkup.infrastructure.logging import get_logger, with_context
from household_checkup.infrastructure.telemetry import TelemetryCategory, record_telemetry

if TYPE_CHECKING:
    from uuid import UUID

    from household_checkup.infrastructure.storage.protocols import DataStore

logger = get_logger(__name__)


@with_context(job="abandon_sweep")
async def abandon_stale_assessments(
    data_store: DataStore,
    older_than_days: int | None = None,
    *,
    now: datetime | None = None,
) -> list[UUID]:
    """Mark in-progress assessments idle for too long as abandoned.

    Args:
        data_store: Store holding assessments.
        older_than_days: Idle threshold in days. 0 disables the sweep.
            Defaults to the configured `abandon_after_days`.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        Ids of the assessments that were abandoned.

    Raises:
        ValueError: If older_than_days is negative.
    """
    if older_than_days is None:
        older_than_days = get_progression_settings().abandon_after_days
    if older_than_days < 0:
        raise ValueError(f"older_than_days must be >= 0, got {older_than_days}")
    if older_than_days == 0:
        logger.info("Abandonment sweep disabled")
        return []

    cutoff = (now or datetime.now(UTC)) - timedelta(days=older_than_days)
    stale = await data_store.list_assessments(
        status=AssessmentStatus.IN_PROGRESS, updated_before=cutoff
    )
    abandoned: list[UUID] = []
    for assessment in stale:
        await data_store.mark_abandoned(assessment.id)
        abandoned.append(assessment.id)
        record_telemetry(
            TelemetryCategory.ASSESSMENT_ABANDONED,
            component="retention",
            assessment_id=str(assessment.id),
        )

    logger.info(
        "Abandonment sweep finished",
        cutoff=cutoff.isoformat(),
        abandoned=len(abandoned),
    )
    return abandoned
