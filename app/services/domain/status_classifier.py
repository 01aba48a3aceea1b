"""
Domain service: lifecycle status and payable amount of a requirement.

Both functions are pure: the current date is always passed in by the caller
so the same requirement can be re-evaluated deterministically.
"""
from datetime import date

from app.domain.models import Requirement, Status, ViewMode


_PENALTY_STATUSES = frozenset({Status.RECEIVED, Status.PAID})


def classify(requirement: Requirement, today: date) -> Status:
    """
    Derive the lifecycle status of a requirement.

    Rules are evaluated in order and the first match wins:
    1. Has a payment report -> PAID
    2. Has a reception date -> RECEIVED
    3. Has a work order and its due date is before ``today`` -> OVERDUE
    4. Has no work order -> NOT_STARTED
    5. Otherwise -> IN_PROGRESS

    A requirement due exactly ``today`` is still IN_PROGRESS.

    Args:
        requirement: Canonical requirement with validated dates
        today: Evaluation date

    Returns:
        The single status that applies
    """
    if requirement.payment_report is not None:
        return Status.PAID
    if requirement.reception_date is not None:
        return Status.RECEIVED
    if requirement.work_order is not None and requirement.due_date < today:
        return Status.OVERDUE
    if requirement.work_order is None:
        return Status.NOT_STARTED
    return Status.IN_PROGRESS


def amount_payable(requirement: Requirement, status: Status) -> float:
    """
    Monetary value attributed to a requirement in amount views.

    A stored non-zero amount payable is authoritative. Otherwise the penalty
    is only deducted once the requirement has been received or paid.

    Args:
        requirement: Canonical requirement
        status: Status previously derived with ``classify``

    Returns:
        Amount to sum for this requirement
    """
    if requirement.stored_amount_payable:
        return requirement.stored_amount_payable
    if status in _PENALTY_STATUSES:
        return requirement.total_price - requirement.penalty
    return requirement.total_price


def classify_with_value(
    requirement: Requirement,
    today: date,
    view_mode: ViewMode,
) -> tuple[Status, float]:
    """Status of a requirement and what it contributes in ``view_mode``."""
    status = classify(requirement, today)
    if view_mode == ViewMode.COUNT:
        return status, 1
    return status, amount_payable(requirement, status)


def days_overdue(requirement: Requirement, today: date) -> int:
    """Whole days elapsed since the due date, 0 when not yet due."""
    return max(0, (today - requirement.due_date).days)
