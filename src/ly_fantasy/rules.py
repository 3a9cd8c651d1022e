"""Point rules for every scoring category.

One table maps a :class:`Category` to its :class:`CategoryRule`.  Fetchers
read ``base_points`` when they create score rows; the weekly aggregation reads
``weekly_cap`` when it reports per-category totals.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    """Score category stored on every ``Score`` row."""

    PROPOSE_BILL = "PROPOSE_BILL"
    COSIGN_BILL = "COSIGN_BILL"
    WRITTEN_SPEECH = "WRITTEN_SPEECH"
    FLOOR_SPEECH = "FLOOR_SPEECH"
    ROLLCALL_VOTE = "ROLLCALL_VOTE"
    MAVERICK_BONUS = "MAVERICK_BONUS"


@dataclass(frozen=True)
class CategoryRule:
    category: Category
    base_points: int
    weekly_cap: int | None = None
    # (threshold, points) pairs, highest threshold first
    bonus_thresholds: tuple[tuple[float, int], ...] = ()
    label: str = ""


# Extra row created when a proposed bill passes (separate from the base 3).
PASSED_BILL_BONUS = 6

# Status markers from the 議案狀態 field.
THIRD_READING_MARKER = "三讀"
PASSED_MARKER = "通過"

RULES: dict[Category, CategoryRule] = {
    Category.PROPOSE_BILL: CategoryRule(Category.PROPOSE_BILL, 3, label="Bill proposed"),
    Category.COSIGN_BILL: CategoryRule(Category.COSIGN_BILL, 3, label="Cosigned bill passed"),
    Category.WRITTEN_SPEECH: CategoryRule(
        Category.WRITTEN_SPEECH, 3, label="Written interpellation"
    ),
    Category.FLOOR_SPEECH: CategoryRule(
        Category.FLOOR_SPEECH, 1, weekly_cap=5, label="Floor speech"
    ),
    Category.ROLLCALL_VOTE: CategoryRule(Category.ROLLCALL_VOTE, 1, label="Roll-call vote"),
    Category.MAVERICK_BONUS: CategoryRule(
        Category.MAVERICK_BONUS,
        0,
        bonus_thresholds=((0.9, 9), (0.8, 6), (0.7, 3)),
        label="Voted against party",
    ),
}


def points_for(category: Category | str) -> int:
    """Base points for one activity in *category*."""
    return RULES[Category(category)].base_points


def maverick_bonus(fraction: float) -> int:
    """Bonus for breaking with a party whose majority share is *fraction* (0-1).

    Thresholds are checked highest first and do not stack.

        >>> maverick_bonus(0.95), maverick_bonus(0.85), maverick_bonus(0.7), maverick_bonus(0.69)
        (9, 6, 3, 0)
    """
    for threshold, points in RULES[Category.MAVERICK_BONUS].bonus_thresholds:
        if fraction >= threshold:
            return points
    return 0


def is_third_reading(status: str | None) -> bool:
    """True when the bill status carries the third-reading marker."""
    return bool(status) and THIRD_READING_MARKER in status


def is_bill_passed(status: str | None) -> bool:
    """Passage check for proposed bills (third reading or 通過)."""
    if not status:
        return False
    return THIRD_READING_MARKER in status or PASSED_MARKER in status


def capped_points(category: Category | str, raw_points: float) -> float:
    """Apply the category's weekly cap to a week's raw total."""
    cap = RULES[Category(category)].weekly_cap
    if cap is None:
        return raw_points
    return min(raw_points, cap)
