"""Test fixtures module.

This module contains test doubles and household builders that are test-only
artifacts. These MUST NOT be imported from production code (src/).
"""

from __future__ import annotations

from tests.fixtures.households import (
    FlakyDataStore,
    Household,
    build_household,
    checkup_answers,
    completed_assessment,
    raw_checkup_selections,
)

__all__ = [
    "FlakyDataStore",
    "Household",
    "build_household",
    "checkup_answers",
    "completed_assessment",
    "raw_checkup_selections",
]
