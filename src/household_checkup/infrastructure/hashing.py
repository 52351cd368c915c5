"""Stable hashing helpers for privacy-safe observability.

Short SHA-256 prefixes let logs correlate results summaries without
leaking scores, and let recalculation skip writes that would not change
anything.
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

HASH_PREFIX_LENGTH: Final[int] = 12


def stable_text_hash(text: str) -> str:
    """Return a stable short hash for a text payload (no raw text)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:HASH_PREFIX_LENGTH]


def canonical_json(payload: Mapping[str, Any] | None) -> str:
    """Serialize a JSON-compatible mapping with sorted keys and no whitespace."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def results_fingerprint(summary: Mapping[str, Any] | None) -> str:
    """Return a stable short hash for a results summary.

    Two summaries with equal content share a fingerprint regardless of key
    insertion order.
    """
    return stable_text_hash(canonical_json(summary))
