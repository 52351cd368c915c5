"""Reverse scoring applied between what a subject selects and what is stored.

Positively worded items ("thinks things out before acting") are inverted so
that a higher stored value always means more difficulty.
"""

from __future__ import annotations

from household_checkup.domain.value_objects import SKIPPED_VALUE
from household_checkup.questionnaires.catalog import REVERSE_SCALE_MAX


def transform(raw_value: int, is_reverse: bool) -> int:
    """Return the value to store for a raw selection.

    Args:
        raw_value: Option value the subject selected, or -1 for a skip.
        is_reverse: Whether the question is reverse scored.

    Returns:
        `4 - raw_value` for reverse questions with raw_value in [0, 4];
        otherwise raw_value unchanged (including -1 and out-of-range values).
    """
    if raw_value == SKIPPED_VALUE or not is_reverse:
        return raw_value
    if 0 <= raw_value <= REVERSE_SCALE_MAX:
        return REVERSE_SCALE_MAX - raw_value
    return raw_value


def unreverse(stored_value: int) -> int:
    """Invert a stored reverse-scored value back to what was selected.

    Self-inverse on [0, 4]; -1 is returned unchanged.
    """
    if stored_value == SKIPPED_VALUE:
        return stored_value
    return REVERSE_SCALE_MAX - stored_value


def displayed_value(stored_value: int, is_reverse: bool) -> int | None:
    """Value a resumed session should show as selected.

    Returns:
        None for a skipped answer, else the pre-transform selection.
    """
    if stored_value == SKIPPED_VALUE:
        return None
    return unreverse(stored_value) if is_reverse else stored_value
