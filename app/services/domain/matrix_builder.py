"""
Domain service: cross-tabulation of requirements by line, contract and garden.

Cells for slots without a loaded dataset are ``None`` and stay distinct from
loaded slots with no matching requirements (``0``). Totals and percentages
are properties so they are always recomputed from the current cells.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Collection, Dict, List, Mapping, Optional, Sequence, Tuple

from app.domain.models import (
    CONTRACTS,
    LINES,
    ContractType,
    Garden,
    LineType,
    Requirement,
    Status,
    ViewMode,
    is_valid_slot,
)
from app.services.domain.status_classifier import classify_with_value
from app.utils.numeric import percentage_of

logger = logging.getLogger(__name__)


SlotRequirements = Mapping[Tuple[ContractType, LineType], Sequence[Requirement]]
Cell = Optional[float]


def _empty_row() -> Dict[ContractType, Cell]:
    return {contract: None for contract in CONTRACTS}


def _cell_sum(cells) -> float:
    return sum(value for value in cells if value is not None)


@dataclass
class ContractLineMatrix:
    """Lines as rows, contract types as columns."""
    view_mode: ViewMode
    statuses: frozenset
    cells: Dict[LineType, Dict[ContractType, Cell]] = field(
        default_factory=lambda: {line: _empty_row() for line in LINES}
    )

    def cell(self, contract: ContractType, line: LineType) -> Cell:
        return self.cells[line][contract]

    @property
    def row_totals(self) -> Dict[LineType, float]:
        return {line: _cell_sum(row.values()) for line, row in self.cells.items()}

    @property
    def column_totals(self) -> Dict[ContractType, float]:
        return {
            contract: _cell_sum(row[contract] for row in self.cells.values())
            for contract in CONTRACTS
        }

    @property
    def grand_total(self) -> float:
        return sum(self.row_totals.values())

    @property
    def row_percentages(self) -> Dict[LineType, float]:
        grand_total = self.grand_total
        return {
            line: percentage_of(total, grand_total)
            for line, total in self.row_totals.items()
        }

    @property
    def column_percentages(self) -> Dict[ContractType, float]:
        grand_total = self.grand_total
        return {
            contract: percentage_of(total, grand_total)
            for contract, total in self.column_totals.items()
        }


@dataclass
class GardenRow:
    """Drill-down row for one garden within a line."""
    line: LineType
    garden_code: str
    garden_name: str
    grand_total: float
    cells: Dict[ContractType, Cell] = field(default_factory=_empty_row)

    @property
    def total(self) -> float:
        return _cell_sum(self.cells.values())

    @property
    def percentage(self) -> float:
        return percentage_of(self.total, self.grand_total)


def _sum_matching(
    requirements: Sequence[Requirement],
    today: date,
    view_mode: ViewMode,
    statuses: Collection[Status],
) -> Dict[str, float]:
    """Per-garden sums of requirements whose status is in ``statuses``."""
    sums: Dict[str, float] = {}
    for requirement in requirements:
        status, value = classify_with_value(requirement, today, view_mode)
        if status in statuses:
            sums[requirement.garden_code] = sums.get(requirement.garden_code, 0) + value
    return sums


def build_matrix(
    slots: SlotRequirements,
    today: date,
    view_mode: ViewMode,
    statuses: Collection[Status],
) -> ContractLineMatrix:
    """
    Build the line x contract matrix.

    Args:
        slots: Filtered requirements for every loaded (contract, line) slot
        today: Evaluation date for status classification
        view_mode: COUNT or AMOUNT
        statuses: Statuses that contribute to the cells

    Returns:
        ContractLineMatrix; every cell is None when ``statuses`` is empty
    """
    active = frozenset(statuses)
    matrix = ContractLineMatrix(view_mode=view_mode, statuses=active)

    if not active:
        logger.debug("Empty status filter, matrix left blank")
        return matrix

    for (contract, line), requirements in slots.items():
        if not is_valid_slot(contract, line):
            logger.warning(f"Ignoring requirements for invalid slot {contract.value}-{line.value}")
            continue
        sums = _sum_matching(requirements, today, view_mode, active)
        matrix.cells[line][contract] = sum(sums.values())

    return matrix


def build_garden_breakdown(
    slots: SlotRequirements,
    line: LineType,
    gardens: Sequence[Garden],
    today: date,
    view_mode: ViewMode,
    statuses: Collection[Status],
    grand_total: float,
) -> List[GardenRow]:
    """
    Expand one line of the matrix into per-garden rows.

    Args:
        slots: Filtered requirements for every loaded (contract, line) slot
        line: Line being expanded
        gardens: Gardens to enumerate, in catalog order
        today: Evaluation date for status classification
        view_mode: COUNT or AMOUNT
        statuses: Statuses that contribute to the cells
        grand_total: Matrix grand total the row percentages refer to

    Returns:
        One GardenRow per garden
    """
    active = frozenset(statuses)
    per_contract: Dict[ContractType, Dict[str, float]] = {}

    if active:
        for contract in CONTRACTS:
            requirements = slots.get((contract, line))
            if requirements is None or not is_valid_slot(contract, line):
                continue
            per_contract[contract] = _sum_matching(requirements, today, view_mode, active)

    rows = []
    for garden in gardens:
        row = GardenRow(
            line=line,
            garden_code=garden.code,
            garden_name=garden.name,
            grand_total=grand_total,
        )
        for contract, sums in per_contract.items():
            row.cells[contract] = sums.get(garden.code, 0)
        rows.append(row)

    logger.debug(f"Expanded {line.value} into {len(rows)} garden rows")
    return rows
