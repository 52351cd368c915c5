"""Privacy-safe telemetry for degraded paths.

The registry answers questions the logs alone make tedious:

- How often answer saves fail and are swallowed.
- How often reports recompute stale results, and how often they fall back.
- How many stored summaries still carry the legacy `impact` field.

Telemetry is strictly additive: it must not change runtime behavior. Events
hold identifiers and counts only, never answer values or worry-tag text.
"""

from __future__ import annotations

import contextvars
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

from household_checkup.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

logger = get_logger(__name__)

_DEFAULT_MAX_EVENTS: Final[int] = 5000


class TelemetryCategory(StrEnum):
    """Telemetry event categories."""

    # Answer persistence
    ANSWER_SAVE_FAILED = "answer_save_failed"

    # Report reconciliation
    RESULTS_RECALCULATED = "results_recalculated"
    RECALCULATION_FALLBACK = "recalculation_fallback"
    LEGACY_IMPACT_NORMALIZED = "legacy_impact_normalized"

    # Retention
    ASSESSMENT_ABANDONED = "assessment_abandoned"


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """Single telemetry event."""

    category: TelemetryCategory
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    component: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "timestamp": self.timestamp,
            "component": self.component,
            "context": self.context,
        }


@dataclass
class TelemetryRegistry:
    """Collects telemetry events for a run."""

    run_id: str
    events: list[TelemetryEvent] = field(default_factory=list)
    max_events: int = _DEFAULT_MAX_EVENTS
    dropped_events: int = 0
    _start_time: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def record(
        self,
        category: TelemetryCategory,
        *,
        component: str | None = None,
        **context: Any,
    ) -> None:
        if len(self.events) < self.max_events:
            self.events.append(
                TelemetryEvent(category=category, component=component, context=context)
            )
            return
        self.dropped_events += 1

    def count(self, category: TelemetryCategory) -> int:
        """Number of recorded events in a category."""
        return sum(1 for event in self.events if event.category is category)

    def summary(self) -> dict[str, Any]:
        by_category: dict[str, int] = {}
        by_component: dict[str, int] = {}

        for event in self.events:
            by_category[event.category.value] = by_category.get(event.category.value, 0) + 1
            if event.component:
                by_component[event.component] = by_component.get(event.component, 0) + 1

        return {
            "run_id": self.run_id,
            "start_time": self._start_time,
            "end_time": datetime.now(UTC).isoformat(),
            "total_events": len(self.events),
            "dropped_events": self.dropped_events,
            "by_category": dict(sorted(by_category.items(), key=lambda x: -x[1])),
            "by_component": dict(sorted(by_component.items(), key=lambda x: -x[1])),
        }

    def save(self, output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"telemetry_{self.run_id}.json"
        data = {
            "summary": self.summary(),
            "events": [event.to_dict() for event in self.events],
        }
        output_path.write_text(json.dumps(data, indent=2))
        return output_path


_registry_var: contextvars.ContextVar[TelemetryRegistry | None] = contextvars.ContextVar(
    "household_checkup_telemetry_registry",
    default=None,
)


def get_telemetry_registry() -> TelemetryRegistry:
    registry = _registry_var.get()
    if registry is None:
        raise RuntimeError(
            "Telemetry registry not initialized. Call init_telemetry_registry() first."
        )
    return registry


def init_telemetry_registry(run_id: str) -> TelemetryRegistry:
    registry = TelemetryRegistry(run_id=run_id)
    _registry_var.set(registry)
    return registry


def clear_telemetry_registry() -> None:
    """Clear the telemetry registry for the current context.

    This is primarily intended for unit tests to avoid test-order dependence.
    """

    _registry_var.set(None)


def record_telemetry(category: TelemetryCategory, **kwargs: Any) -> None:
    """Record telemetry if initialized; no-op otherwise."""
    try:
        registry = get_telemetry_registry()
        registry.record(category, **kwargs)
    except RuntimeError:
        # Only the category is logged; kwargs may carry identifiers.
        logger.debug("telemetry_registry_not_initialized", category=category.value)
