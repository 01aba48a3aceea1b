"""
Domain models for maintenance-contract datasets and requirements.

These models represent the core domain entities and should be independent
of any infrastructure concerns (file formats, storage, HTTP, etc.).
Every requirement reaching the analysis services has already been converted
to the canonical shape defined here, whatever schema it was imported from.
"""
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class ContractType(str, Enum):
    """Maintenance contract categories, in display order."""
    MANTENCION = "mantencion"
    CALEFACCION = "calefaccion"
    AREA_VERDE = "area_verde"
    ASCENSORES = "ascensores"


class LineType(str, Enum):
    """Budget line slots, in display order."""
    LINEA_1 = "linea_1"
    LINEA_2 = "linea_2"
    LINEA_3 = "linea_3"
    LINEA_4 = "linea_4"
    LINEA_5 = "linea_5"


class Status(str, Enum):
    """Lifecycle status derived from a requirement's markers."""
    PAID = "paid"
    RECEIVED = "received"
    OVERDUE = "overdue"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"


class ViewMode(str, Enum):
    """What an aggregation accumulates per requirement."""
    COUNT = "count"
    AMOUNT = "amount"


class Granularity(str, Enum):
    """Calendar bucket size for time series."""
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class SchemaVersion(str, Enum):
    """Historical JSON layouts accepted on import."""
    LEGACY = "legacy"
    FLAT = "flat"


CONTRACTS: List[ContractType] = list(ContractType)
LINES: List[LineType] = list(LineType)
STATUSES: List[Status] = list(Status)

CONTRACT_LABELS = {
    ContractType.MANTENCION: "Mantención",
    ContractType.CALEFACCION: "Calefacción",
    ContractType.AREA_VERDE: "Áreas Verdes",
    ContractType.ASCENSORES: "Ascensores",
}

STATUS_LABELS = {
    Status.PAID: "Pagados",
    Status.RECEIVED: "Recibidos",
    Status.OVERDUE: "Atrasados",
    Status.IN_PROGRESS: "En Curso",
    Status.NOT_STARTED: "Sin Curso",
}

# Elevator contracts only exist on the first budget line
RESTRICTED_CONTRACT_LINES = {
    ContractType.ASCENSORES: {LineType.LINEA_1},
}


def is_valid_slot(contract: ContractType, line: LineType) -> bool:
    """Whether a dataset may be loaded for this (contract, line) pair."""
    allowed = RESTRICTED_CONTRACT_LINES.get(contract)
    return allowed is None or line in allowed


def slot_key(contract: ContractType, line: LineType) -> str:
    """Key used for selection filters, e.g. ``mantencion-linea_1``."""
    return f"{ContractType(contract).value}-{LineType(line).value}"


class Garden(BaseModel):
    """A physical site requirements are raised against."""
    code: str
    name: str


class CostItem(BaseModel):
    """Priced maintenance item from the contract catalog."""
    item: str
    name: str
    unit: Optional[str] = None
    unit_price: float = 0.0


class Location(BaseModel):
    """Room or area inside a garden."""
    garden_code: str
    name: str


class Catalog(BaseModel):
    """Lookup tables shipped with each dataset."""
    gardens: List[Garden] = Field(default_factory=list)
    cost_items: List[CostItem] = Field(default_factory=list)
    locations: List[Location] = Field(default_factory=list)


class Requirement(BaseModel):
    """A maintenance work item tracked from registration to payment."""
    id: Optional[int] = None
    garden_code: str
    location: str = ""
    cost_item: str = ""
    quantity: float = 0.0

    unit_price: float = 0.0
    total_price: float = 0.0
    penalty: float = 0.0
    stored_amount_payable: Optional[float] = Field(
        default=None,
        description="Precomputed amount to pay, authoritative when non-zero"
    )

    registration_date: date
    start_date: date
    base_term_days: int = 0
    additional_term_days: int = 0
    total_term_days: int = 0
    due_date: date

    work_order: Optional[str] = None
    reception_date: Optional[date] = None
    payment_report: Optional[str] = None

    description: Optional[str] = None
    observations: Optional[str] = None


class LoadedDataset(BaseModel):
    """One imported JSON document bound to a (contract, line) slot."""
    contract: ContractType
    line: LineType
    schema_version: SchemaVersion
    exported_at: str = Field(description="Export date reported by the file")
    imported_at: datetime
    catalog: Catalog
    requirements: List[Requirement]
    work_order_count: int = 0
    payment_report_count: int = 0

    @property
    def key(self) -> str:
        return slot_key(self.contract, self.line)
