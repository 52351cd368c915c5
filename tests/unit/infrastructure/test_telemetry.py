"""Unit tests for degraded-path telemetry."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from household_checkup.infrastructure.telemetry import (
    TelemetryCategory,
    TelemetryRegistry,
    clear_telemetry_registry,
    get_telemetry_registry,
    init_telemetry_registry,
    record_telemetry,
)

pytestmark = pytest.mark.unit

if TYPE_CHECKING:
    from pathlib import Path


def test_record_telemetry_noop_when_uninitialized() -> None:
    """record_telemetry() must not raise when registry is not initialized."""
    clear_telemetry_registry()
    record_telemetry(TelemetryCategory.ANSWER_SAVE_FAILED, step=3)
    with pytest.raises(RuntimeError, match="Telemetry registry not initialized"):
        get_telemetry_registry()


def test_registry_summary_counts() -> None:
    registry = TelemetryRegistry(run_id="test")
    registry.record(TelemetryCategory.ANSWER_SAVE_FAILED, component="answer_recorder")
    registry.record(TelemetryCategory.ANSWER_SAVE_FAILED, component="answer_recorder")
    registry.record(TelemetryCategory.RESULTS_RECALCULATED)

    summary = registry.summary()
    assert summary["run_id"] == "test"
    assert summary["total_events"] == 3
    assert summary["dropped_events"] == 0
    assert summary["by_category"] == {"answer_save_failed": 2, "results_recalculated": 1}
    assert summary["by_component"] == {"answer_recorder": 2}
    assert registry.count(TelemetryCategory.ANSWER_SAVE_FAILED) == 2
    assert registry.count(TelemetryCategory.ASSESSMENT_ABANDONED) == 0


def test_registry_caps_events() -> None:
    registry = TelemetryRegistry(run_id="cap", max_events=2)
    for _ in range(5):
        registry.record(TelemetryCategory.LEGACY_IMPACT_NORMALIZED)

    assert len(registry.events) == 2
    assert registry.summary()["dropped_events"] == 3


def test_record_telemetry_uses_context_registry(telemetry: TelemetryRegistry) -> None:
    record_telemetry(
        TelemetryCategory.RECALCULATION_FALLBACK, component="results", reason="persistence"
    )

    assert get_telemetry_registry() is telemetry
    (event,) = telemetry.events
    assert event.category is TelemetryCategory.RECALCULATION_FALLBACK
    assert event.component == "results"
    assert event.context == {"reason": "persistence"}


def test_init_replaces_registry() -> None:
    first = init_telemetry_registry("one")
    second = init_telemetry_registry("two")
    try:
        assert first is not second
        assert get_telemetry_registry().run_id == "two"
    finally:
        clear_telemetry_registry()


def test_save_writes_summary_and_events(tmp_path: Path) -> None:
    registry = TelemetryRegistry(run_id="run123")
    registry.record(TelemetryCategory.ASSESSMENT_ABANDONED, component="retention", count=2)

    path = registry.save(tmp_path / "telemetry")

    assert path.name == "telemetry_run123.json"
    data = json.loads(path.read_text())
    assert data["summary"]["total_events"] == 1
    assert data["events"][0]["category"] == "assessment_abandoned"
    assert data["events"][0]["context"] == {"count": 2}
