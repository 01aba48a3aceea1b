"""
API router for garden selection and matrix status filters.
"""
from typing import Annotated
from fastapi import APIRouter, HTTPException, Path

from app.api.dependencies import AnalysisServiceDep
from app.api.v1.models.responses import (
    GardenFilterRequest,
    GardenFiltersResponse,
    StatusFilterModel,
)
from app.domain.exceptions import DatasetNotFoundError
from app.domain.models import ContractType, LineType


router = APIRouter(
    prefix="/filters",
    tags=["filters"],
)


@router.get(
    "/gardens",
    response_model=GardenFiltersResponse,
    summary="Get the garden selection of every slot",
)
def get_garden_filters(service: AnalysisServiceDep) -> GardenFiltersResponse:
    return GardenFiltersResponse(filters=service.garden_filters())


@router.put(
    "/gardens/{contract}/{line}",
    response_model=GardenFiltersResponse,
    summary="Replace the garden selection of one slot",
    responses={404: {"description": "No dataset loaded for the slot"}},
)
def set_garden_filter(
    contract: Annotated[ContractType, Path(description="Contract type of the slot")],
    line: Annotated[LineType, Path(description="Budget line of the slot")],
    payload: GardenFilterRequest,
    service: AnalysisServiceDep,
) -> GardenFiltersResponse:
    """An empty list excludes the slot from the combined analysis."""
    try:
        service.set_garden_filter(contract, line, payload.garden_codes)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return GardenFiltersResponse(filters=service.garden_filters())


@router.get(
    "/statuses",
    response_model=StatusFilterModel,
    summary="Get the matrix status filter",
)
def get_status_filter(service: AnalysisServiceDep) -> StatusFilterModel:
    return StatusFilterModel(statuses=service.status_filter())


@router.put(
    "/statuses",
    response_model=StatusFilterModel,
    summary="Replace the matrix status filter",
)
def set_status_filter(
    payload: StatusFilterModel,
    service: AnalysisServiceDep,
) -> StatusFilterModel:
    return StatusFilterModel(statuses=service.set_status_filter(payload.statuses))
