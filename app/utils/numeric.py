"""
Numeric helpers for aggregated views.
"""


def percentage_of(value: float, total: float) -> float:
    """
    Share of ``value`` in ``total`` as a percentage.

    Returns 0.0 when ``total`` is zero so empty views never divide by zero.
    """
    if not total:
        return 0.0
    return value / total * 100
