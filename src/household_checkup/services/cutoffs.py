"""Per-domain cutoff table mapping scores to status labels.

Cutoffs are clinical configuration, not code. The table is a YAML file
validated into Pydantic models; the packaged default is provisional.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from household_checkup.domain.enums import DomainStatus, ScoringDomain
from household_checkup.infrastructure.logging import get_logger

logger = get_logger(__name__)


def default_cutoffs_path() -> Path:
    """Path of the packaged provisional cutoff table."""
    # This file: src/household_checkup/services/cutoffs.py
    return Path(__file__).parent.parent / "data" / "cutoffs.yaml"


class DomainCutoff(BaseModel):
    """Thresholds for one domain. `borderline` is absent for two-tier domains."""

    borderline: int | None = Field(default=None, ge=0)
    concerning: int = Field(ge=0)

    @model_validator(mode="after")
    def validate_order(self) -> DomainCutoff:
        """Borderline must sit strictly below concerning."""
        if self.borderline is not None and self.borderline >= self.concerning:
            raise ValueError(
                f"borderline ({self.borderline}) must be below concerning ({self.concerning})"
            )
        return self

    def classify(self, score: float) -> DomainStatus:
        """Return the status for a score. Monotonic in score."""
        if score >= self.concerning:
            return DomainStatus.CONCERNING
        if self.borderline is not None and score >= self.borderline:
            return DomainStatus.BORDERLINE
        return DomainStatus.TYPICAL


class CutoffTable(BaseModel):
    """Cutoffs for every scoring domain."""

    version: str = Field(description="Identifier of the table revision")
    domains: dict[ScoringDomain, DomainCutoff]

    @model_validator(mode="after")
    def validate_coverage(self) -> CutoffTable:
        """Every scoring domain needs cutoffs."""
        missing = [d.value for d in ScoringDomain if d not in self.domains]
        if missing:
            raise ValueError(f"Cutoff table missing domains: {missing}")
        return self

    def classify(self, domain: ScoringDomain, score: float) -> DomainStatus:
        """Return the status of a domain score."""
        return self.domains[domain].classify(score)


def load_cutoff_table(path: Path | None = None) -> CutoffTable:
    """Load and validate a cutoff table.

    Args:
        path: YAML file. None loads the packaged provisional table.

    Returns:
        The validated table.

    Raises:
        FileNotFoundError: If the file is missing.
        ValueError: If the YAML is malformed or fails validation.
    """
    if path is None:
        return _load_default_table()
    return _load(path)


@lru_cache(maxsize=1)
def _load_default_table() -> CutoffTable:
    table = _load(default_cutoffs_path())
    logger.warning(
        "Using provisional cutoff table",
        version=table.version,
        hint="Set SCORING_CUTOFFS_PATH to the clinically sourced table",
    )
    return table


def _load(path: Path) -> CutoffTable:
    with path.open("r", encoding="utf-8") as f:
        try:
            data: dict[str, Any] = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed cutoff table {path}: {e}") from e
    try:
        table = CutoffTable.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid cutoff table {path}: {e}") from e
    logger.debug("Cutoff table loaded", path=str(path), version=table.version)
    return table
