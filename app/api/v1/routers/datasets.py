"""
API router for dataset import, listing and export.
"""
from datetime import date
from typing import Annotated, Optional
from fastapi import APIRouter, HTTPException, Path, Query, Request
from fastapi.responses import StreamingResponse

from app.api.dependencies import AnalysisServiceDep, ImportBody
from app.api.rate_limit import limiter, write_limit
from app.api.v1.models.responses import (
    DatasetListResponse,
    DatasetSummary,
    ImportResponse,
)
from app.domain.exceptions import (
    DatasetNotFoundError,
    InvalidSlotError,
    MalformedDateError,
    SchemaMismatchError,
)
from app.domain.models import ContractType, LineType


router = APIRouter(
    prefix="/datasets",
    tags=["datasets"],
)

ContractPath = Annotated[ContractType, Path(description="Contract type of the slot")]
LinePath = Annotated[LineType, Path(description="Budget line of the slot")]


@router.get(
    "",
    response_model=DatasetListResponse,
    summary="List loaded datasets",
)
def list_datasets(service: AnalysisServiceDep) -> DatasetListResponse:
    """Loaded (contract, line) slots in load order."""
    return DatasetListResponse(
        datasets=[DatasetSummary.from_dataset(d) for d in service.list_datasets()]
    )


@router.get(
    "/export.csv",
    summary="Export every loaded requirement as CSV",
    response_class=StreamingResponse,
)
def export_consolidated(
    service: AnalysisServiceDep,
    today: Annotated[Optional[date], Query(description="Evaluation date, defaults to today")] = None,
) -> StreamingResponse:
    """
    Consolidated CSV of all loaded datasets.

    Each row carries its contract and line plus the derived status,
    amount payable and days overdue as of ``today``.
    """
    today = today or date.today()
    if not service.list_datasets():
        raise HTTPException(status_code=404, detail="No datasets loaded")

    return StreamingResponse(
        service.export_csv(today),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename=consolidado_{today.isoformat()}.csv",
        },
    )


@router.put(
    "/{contract}/{line}",
    response_model=ImportResponse,
    summary="Import a dataset into a slot",
    description="""
    Import an exported JSON document for one (contract, line) slot.

    The request body is the raw JSON document in either the legacy
    (metadata/catalogos/datos) or the flat (jardines/partidas/recintos/
    requerimientos) layout. A previous dataset for the same slot is
    replaced as a whole.
    """,
    responses={
        400: {"description": "Contract cannot be loaded on this line"},
        413: {"description": "Document exceeds the import size limit"},
        422: {"description": "Document shape or dates are invalid"},
        429: {"description": "Rate limit exceeded"},
    }
)
@limiter.limit(write_limit)
def import_dataset(
    request: Request,
    contract: ContractPath,
    line: LinePath,
    body: ImportBody,
    service: AnalysisServiceDep,
) -> ImportResponse:
    """
    Import a dataset.

    Args:
        request: Incoming request, used for rate limiting
        contract: Contract type of the slot
        line: Budget line of the slot
        body: Raw JSON document, size-checked while reading
        service: Analysis service (injected dependency)

    Returns:
        ImportResponse with the loaded slot summary

    Raises:
        HTTPException: If the slot or document is invalid
    """
    try:
        dataset, replaced = service.import_dataset(body, contract, line)
    except InvalidSlotError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (SchemaMismatchError, MalformedDateError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ImportResponse(dataset=DatasetSummary.from_dataset(dataset), replaced=replaced)


@router.delete(
    "/{contract}/{line}",
    response_model=DatasetSummary,
    summary="Unload a dataset",
    responses={404: {"description": "No dataset loaded for the slot"}},
)
def remove_dataset(
    contract: ContractPath,
    line: LinePath,
    service: AnalysisServiceDep,
) -> DatasetSummary:
    """Remove a slot and its garden selection."""
    try:
        dataset = service.remove_dataset(contract, line)
    except DatasetNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return DatasetSummary.from_dataset(dataset)
