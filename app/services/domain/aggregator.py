"""
Domain service: category totals per lifecycle status.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable

from app.domain.models import Requirement, Status, STATUSES, ViewMode
from app.services.domain.status_classifier import classify_with_value
from app.utils.numeric import percentage_of

logger = logging.getLogger(__name__)


def empty_buckets() -> Dict[Status, float]:
    """One zeroed bucket per status, in display order."""
    return {status: 0 for status in STATUSES}


@dataclass
class CategoryTotals:
    """Totals per status plus grand total and percentage shares."""
    view_mode: ViewMode
    totals: Dict[Status, float] = field(default_factory=empty_buckets)
    grand_total: float = 0
    percentages: Dict[Status, float] = field(
        default_factory=lambda: {status: 0.0 for status in STATUSES}
    )
    requirement_count: int = 0


def aggregate(
    requirements: Iterable[Requirement],
    today: date,
    view_mode: ViewMode,
) -> CategoryTotals:
    """
    Fold requirements into per-status totals.

    Every status bucket is present in the result even when zero, and an
    empty input yields an all-zero structure.

    Args:
        requirements: Filtered canonical requirements
        today: Evaluation date for status classification
        view_mode: COUNT adds 1 per requirement, AMOUNT adds its payable amount

    Returns:
        CategoryTotals for the given view mode
    """
    totals = empty_buckets()
    count = 0

    for requirement in requirements:
        status, value = classify_with_value(requirement, today, view_mode)
        totals[status] += value
        count += 1

    grand_total = sum(totals.values())
    percentages = {
        status: percentage_of(value, grand_total)
        for status, value in totals.items()
    }

    logger.debug(f"Aggregated {count} requirements ({view_mode.value}), "
                 f"grand total={grand_total}")

    return CategoryTotals(
        view_mode=view_mode,
        totals=totals,
        grand_total=grand_total,
        percentages=percentages,
        requirement_count=count,
    )
