"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

# Set TESTING mode BEFORE any app imports to prevent .env file loading.
os.environ["TESTING"] = "1"

# Clear environment variables BEFORE any imports that might use Pydantic Settings
# This runs at conftest import time, before test collection
_ENV_VARS_TO_CLEAR = [
    "SCORING_SKIP_POLICY",
    "SCORING_CUTOFFS_PATH",
    "PROGRESSION_DRAIN_TIMEOUT_SECONDS",
    "PROGRESSION_ABANDON_AFTER_DAYS",
    "LOG_FORMAT",
    "LOG_LEVEL",
    "LOG_INCLUDE_TIMESTAMP",
    "LOG_INCLUDE_CALLER",
]

for _var in _ENV_VARS_TO_CLEAR:
    os.environ.pop(_var, None)

from household_checkup.config import Settings, get_settings  # noqa: E402
from household_checkup.infrastructure.storage import (  # noqa: E402
    InMemoryDataStore,
    InMemoryProfileStore,
)
from household_checkup.infrastructure.telemetry import (  # noqa: E402
    clear_telemetry_registry,
    init_telemetry_registry,
)
from household_checkup.services.cutoffs import load_cutoff_table  # noqa: E402
from household_checkup.services.progression import ProgressionController  # noqa: E402
from household_checkup.services.results import ResultsAggregator  # noqa: E402
from household_checkup.services.scoring import ScoringEngine  # noqa: E402
from tests.fixtures import Household, build_household  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Iterator

    from household_checkup.infrastructure.telemetry import TelemetryRegistry
    from household_checkup.services.cutoffs import CutoffTable


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear environment variables that might be set by .env file.

    This ensures tests use code defaults, not local developer overrides.
    Also clears any cached settings to force re-read of defaults.
    """
    for var in _ENV_VARS_TO_CLEAR:
        monkeypatch.delenv(var, raising=False)

    get_settings.cache_clear()


@pytest.fixture
def telemetry() -> Iterator[TelemetryRegistry]:
    """A fresh telemetry registry for the test, cleared afterwards."""
    registry = init_telemetry_registry("test")
    yield registry
    clear_telemetry_registry()


@pytest.fixture
def settings() -> Settings:
    """Default settings (no env, no .env)."""
    return Settings()


@pytest.fixture(scope="session")
def cutoffs() -> CutoffTable:
    """The packaged cutoff table."""
    return load_cutoff_table()


@pytest.fixture
def engine(settings: Settings, cutoffs: CutoffTable) -> ScoringEngine:
    """Scoring engine with the zero skip policy."""
    return ScoringEngine(settings.scoring, cutoffs)


@pytest.fixture
def household() -> Household:
    """A parent, a partner and two children (older child created first)."""
    return build_household(children=2)


@pytest.fixture
def profile_store(household: Household) -> InMemoryProfileStore:
    return household.profile_store


@pytest.fixture
def data_store() -> InMemoryDataStore:
    return InMemoryDataStore()


@pytest.fixture
def controller(
    profile_store: InMemoryProfileStore,
    data_store: InMemoryDataStore,
    settings: Settings,
    engine: ScoringEngine,
) -> ProgressionController:
    return ProgressionController(
        profile_store, data_store, settings=settings, scoring_engine=engine
    )


@pytest.fixture
def aggregator(
    profile_store: InMemoryProfileStore,
    data_store: InMemoryDataStore,
    engine: ScoringEngine,
) -> ResultsAggregator:
    return ResultsAggregator(profile_store, data_store, engine)
