"""
API response models using Pydantic.
"""
from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from app.config import settings
from app.domain.models import (
    CONTRACTS,
    STATUS_LABELS,
    STATUSES,
    ContractType,
    Granularity,
    LineType,
    LoadedDataset,
    SchemaVersion,
    Status,
    ViewMode,
)
from app.services.application.analysis_service import MatrixView
from app.services.domain.aggregator import CategoryTotals
from app.services.domain.matrix_builder import GardenRow
from app.services.domain.temporal_grouper import PeriodRow


def _pct(value: float) -> float:
    return round(value, settings.amount_percentage_decimals)


class DatasetSummary(BaseModel):
    """A loaded (contract, line) slot."""
    contract: ContractType
    line: LineType
    schema_version: SchemaVersion
    exported_at: str = Field(description="Export date reported by the imported file")
    imported_at: datetime
    requirement_count: int
    garden_count: int
    cost_item_count: int
    location_count: int
    work_order_count: int
    payment_report_count: int

    @classmethod
    def from_dataset(cls, dataset: LoadedDataset) -> "DatasetSummary":
        return cls(
            contract=dataset.contract,
            line=dataset.line,
            schema_version=dataset.schema_version,
            exported_at=dataset.exported_at,
            imported_at=dataset.imported_at,
            requirement_count=len(dataset.requirements),
            garden_count=len(dataset.catalog.gardens),
            cost_item_count=len(dataset.catalog.cost_items),
            location_count=len(dataset.catalog.locations),
            work_order_count=dataset.work_order_count,
            payment_report_count=dataset.payment_report_count,
        )


class DatasetListResponse(BaseModel):
    """Response model for the dataset listing."""
    datasets: List[DatasetSummary]


class ImportResponse(BaseModel):
    """Response model for a dataset import."""
    dataset: DatasetSummary
    replaced: bool = Field(description="Whether a previous dataset was discarded")


class GardenFiltersResponse(BaseModel):
    """Garden selection per slot key (``contract-line``)."""
    filters: Dict[str, List[str]]


class GardenFilterRequest(BaseModel):
    """New garden selection for one slot; empty excludes the slot."""
    garden_codes: List[str]


class StatusFilterModel(BaseModel):
    """Statuses the matrix accumulates."""
    statuses: List[Status]


class CategoryEntry(BaseModel):
    status: Status
    label: str
    value: float
    percentage: float


class SummaryResponse(BaseModel):
    """Response model for category totals."""
    view_mode: ViewMode
    today: date
    requirement_count: int
    grand_total: float
    categories: List[CategoryEntry]

    @classmethod
    def from_totals(cls, totals: CategoryTotals, today: date) -> "SummaryResponse":
        return cls(
            view_mode=totals.view_mode,
            today=today,
            requirement_count=totals.requirement_count,
            grand_total=totals.grand_total,
            categories=[
                CategoryEntry(
                    status=status,
                    label=STATUS_LABELS[status],
                    value=totals.totals[status],
                    percentage=_pct(totals.percentages[status]),
                )
                for status in STATUSES
            ],
        )

    class Config:
        json_schema_extra = {
            "example": {
                "view_mode": "count",
                "today": "2024-06-01",
                "requirement_count": 4,
                "grand_total": 4,
                "categories": [
                    {"status": "paid", "label": "Pagados", "value": 1, "percentage": 25.0},
                    {"status": "received", "label": "Recibidos", "value": 1, "percentage": 25.0},
                    {"status": "overdue", "label": "Atrasados", "value": 1, "percentage": 25.0},
                    {"status": "in_progress", "label": "En Curso", "value": 0, "percentage": 0.0},
                    {"status": "not_started", "label": "Sin Curso", "value": 1, "percentage": 25.0},
                ]
            }
        }


class PeriodEntry(BaseModel):
    period: str
    paid: float
    received: float
    overdue: float
    in_progress: float
    not_started: float
    total: float

    @classmethod
    def from_row(cls, row: PeriodRow) -> "PeriodEntry":
        return cls(
            period=row.period,
            total=row.total,
            **{status.value: value for status, value in row.values.items()},
        )


class TimeSeriesResponse(BaseModel):
    """Response model for the period series."""
    view_mode: ViewMode
    granularity: Granularity
    today: date
    periods: List[PeriodEntry]


class GardenEntry(BaseModel):
    code: str
    name: str
    cells: Dict[ContractType, Optional[float]]
    total: float
    percentage: float

    @classmethod
    def from_row(cls, row: GardenRow) -> "GardenEntry":
        return cls(
            code=row.garden_code,
            name=row.garden_name,
            cells=row.cells,
            total=row.total,
            percentage=_pct(row.percentage),
        )


class MatrixRowEntry(BaseModel):
    line: LineType
    cells: Dict[ContractType, Optional[float]] = Field(
        description="null when no dataset is loaded for the slot"
    )
    total: float
    percentage: float
    gardens: Optional[List[GardenEntry]] = Field(
        default=None,
        description="Per-garden breakdown, only for expanded lines"
    )


class MatrixResponse(BaseModel):
    """Response model for the line x contract matrix."""
    view_mode: ViewMode
    today: date
    statuses: List[Status]
    contracts: List[ContractType]
    rows: List[MatrixRowEntry]
    column_totals: Dict[ContractType, float]
    column_percentages: Dict[ContractType, float]
    grand_total: float

    @classmethod
    def from_view(cls, view: MatrixView, today: date) -> "MatrixResponse":
        matrix = view.matrix
        row_totals = matrix.row_totals
        row_percentages = matrix.row_percentages
        rows = []
        for line, cells in matrix.cells.items():
            gardens = view.expanded.get(line)
            rows.append(MatrixRowEntry(
                line=line,
                cells=cells,
                total=row_totals[line],
                percentage=_pct(row_percentages[line]),
                gardens=[GardenEntry.from_row(g) for g in gardens] if gardens is not None else None,
            ))
        return cls(
            view_mode=matrix.view_mode,
            today=today,
            statuses=[s for s in STATUSES if s in matrix.statuses],
            contracts=CONTRACTS,
            rows=rows,
            column_totals=matrix.column_totals,
            column_percentages={
                contract: _pct(value)
                for contract, value in matrix.column_percentages.items()
            },
            grand_total=matrix.grand_total,
        )
