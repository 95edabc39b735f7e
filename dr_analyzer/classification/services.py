"""DR value classification."""

from typing import Dict, Iterable

from .models import HealthCategory
from ..core.config import DRScale

_CATEGORY_BY_DR = {
    8: HealthCategory.BURNT,
    9: HealthCategory.ORANGE,
    10: HealthCategory.YELLOW,
    11: HealthCategory.LIME,
    12: HealthCategory.MINT,
    13: HealthCategory.GREEN,
}


def classify(dr_value: int) -> HealthCategory:
    """Map a DR value to its health category.

    Values below the scale clamp to RED and values above DR14 clamp to NEON.
    """
    if dr_value <= DRScale.RED_CEILING:
        return HealthCategory.RED
    if dr_value >= DRScale.MAX_DR:
        return HealthCategory.NEON
    return _CATEGORY_BY_DR[dr_value]


def category_counts(dr_values: Iterable[int]) -> Dict[HealthCategory, int]:
    """Count DR values per category, including empty categories, worst first."""
    counts = {category: 0 for category in HealthCategory}
    for value in dr_values:
        counts[classify(value)] += 1
    return counts
