"""
API router for category totals, time series and matrix views.
"""
from datetime import date
from typing import Annotated, List, Optional
from fastapi import APIRouter, Query

from app.api.dependencies import AnalysisServiceDep
from app.api.v1.models.responses import (
    MatrixResponse,
    PeriodEntry,
    SummaryResponse,
    TimeSeriesResponse,
)
from app.domain.models import Granularity, LineType, Status, ViewMode


router = APIRouter(
    prefix="/analysis",
    tags=["analysis"],
)

TodayQuery = Annotated[
    Optional[date],
    Query(description="Evaluation date for overdue detection, defaults to today"),
]
ViewModeQuery = Annotated[ViewMode, Query(description="Count requirements or sum amounts")]


@router.get(
    "/summary",
    response_model=SummaryResponse,
    summary="Totals per lifecycle status",
)
def get_summary(
    service: AnalysisServiceDep,
    view_mode: ViewModeQuery = ViewMode.COUNT,
    today: TodayQuery = None,
) -> SummaryResponse:
    """
    Category totals over the selected requirements.

    Every status is always listed; percentages are 0 when nothing matches.
    """
    today = today or date.today()
    totals = service.summary(today, view_mode)
    return SummaryResponse.from_totals(totals, today)


@router.get(
    "/timeseries",
    response_model=TimeSeriesResponse,
    summary="Totals per status and calendar period",
)
def get_timeseries(
    service: AnalysisServiceDep,
    view_mode: ViewModeQuery = ViewMode.COUNT,
    granularity: Annotated[Granularity, Query(description="Monthly or weekly periods")] = Granularity.MONTHLY,
    today: TodayQuery = None,
) -> TimeSeriesResponse:
    """Periods are keyed by registration date and sorted ascending."""
    today = today or date.today()
    series = service.timeseries(today, view_mode, granularity)
    return TimeSeriesResponse(
        view_mode=view_mode,
        granularity=granularity,
        today=today,
        periods=[PeriodEntry.from_row(row) for row in series],
    )


@router.get(
    "/matrix",
    response_model=MatrixResponse,
    summary="Line x contract matrix with garden drill-down",
)
def get_matrix(
    service: AnalysisServiceDep,
    view_mode: ViewModeQuery = ViewMode.COUNT,
    expand: Annotated[List[LineType], Query(description="Lines to break down by garden")] = [],
    status: Annotated[
        Optional[List[Status]],
        Query(description="Status filter override; defaults to the stored matrix filter"),
    ] = None,
    today: TodayQuery = None,
) -> MatrixResponse:
    """
    Cross-tab of the selected requirements.

    Cells are null for slots with no dataset loaded and 0 for loaded slots
    without matching requirements.
    """
    today = today or date.today()
    view = service.matrix(today, view_mode, expand=expand, statuses=status)
    return MatrixResponse.from_view(view, today)
