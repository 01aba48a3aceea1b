"""
Domain service: time series of requirement totals per calendar period.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List

from app.domain.models import Granularity, Requirement, Status, ViewMode
from app.services.domain.aggregator import empty_buckets
from app.services.domain.status_classifier import classify_with_value
from app.utils.date_helpers import month_key, week_key

logger = logging.getLogger(__name__)


_PERIOD_KEYS: Dict[Granularity, Callable[[date], str]] = {
    Granularity.MONTHLY: month_key,
    Granularity.WEEKLY: week_key,
}


@dataclass
class PeriodRow:
    """Per-status values for one period plus their total."""
    period: str
    values: Dict[Status, float] = field(default_factory=empty_buckets)

    @property
    def total(self) -> float:
        return sum(self.values.values())


def period_key(day: date, granularity: Granularity) -> str:
    """Period a registration date falls in, ``YYYY-MM`` or ``YYYY-Www``."""
    return _PERIOD_KEYS[granularity](day)


def group_by_period(
    requirements: Iterable[Requirement],
    today: date,
    view_mode: ViewMode,
    granularity: Granularity,
) -> List[PeriodRow]:
    """
    Bucket requirements by the period of their registration date.

    Only periods holding at least one requirement appear; rows are sorted
    by period key as plain strings, which is chronological for both formats.

    Args:
        requirements: Filtered canonical requirements
        today: Evaluation date for status classification
        view_mode: COUNT or AMOUNT
        granularity: MONTHLY or WEEKLY

    Returns:
        Ordered list of PeriodRow
    """
    grouped: Dict[str, PeriodRow] = {}

    for requirement in requirements:
        key = period_key(requirement.registration_date, granularity)
        row = grouped.get(key)
        if row is None:
            row = grouped[key] = PeriodRow(period=key)

        status, value = classify_with_value(requirement, today, view_mode)
        row.values[status] += value

    series = [grouped[key] for key in sorted(grouped)]
    logger.debug(f"Grouped requirements into {len(series)} {granularity.value} periods")
    return series
