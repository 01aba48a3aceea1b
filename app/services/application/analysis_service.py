"""
Application service: Orchestration layer for dataset analysis.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from app.config import settings
from app.domain.exceptions import SchemaMismatchError
from app.domain.models import (
    ContractType,
    Garden,
    Granularity,
    LineType,
    LoadedDataset,
    Requirement,
    Status,
    ViewMode,
)
from app.infrastructure.consolidated_export import iter_consolidated_csv
from app.infrastructure.dataset_importer import import_dataset, parse_document
from app.infrastructure.dataset_store import DatasetStore, StoreSnapshot
from app.services.domain.aggregator import CategoryTotals, aggregate
from app.services.domain.matrix_builder import (
    ContractLineMatrix,
    GardenRow,
    build_garden_breakdown,
    build_matrix,
)
from app.services.domain.temporal_grouper import PeriodRow, group_by_period

logger = logging.getLogger(__name__)


SlotKey = Tuple[ContractType, LineType]


@dataclass
class MatrixView:
    """Matrix plus the garden rows of every expanded line."""
    matrix: ContractLineMatrix
    expanded: Dict[LineType, List[GardenRow]] = field(default_factory=dict)


def filter_by_selection(snapshot: StoreSnapshot) -> Dict[SlotKey, List[Requirement]]:
    """
    Apply the garden selection to every loaded dataset.

    A slot without a stored selection keeps all its requirements; an empty
    selection keeps none.
    """
    slots: Dict[SlotKey, List[Requirement]] = {}
    for dataset in snapshot.datasets:
        selection = snapshot.garden_filters.get(dataset.key)
        if selection is None:
            slots[(dataset.contract, dataset.line)] = list(dataset.requirements)
            continue
        selected = set(selection)
        slots[(dataset.contract, dataset.line)] = [
            r for r in dataset.requirements if r.garden_code in selected
        ]
    return slots


def gardens_for_line(datasets: Iterable[LoadedDataset], line: LineType) -> List[Garden]:
    """Gardens of the first-loaded dataset on ``line``."""
    for dataset in datasets:
        if dataset.line == line:
            return list(dataset.catalog.gardens)
    return []


class AnalysisService:
    """
    Application service for dataset import and analysis.

    Coordinates the dataset store and the importer with the pure domain
    services; no classification or aggregation logic lives here.
    """

    def __init__(self, store: DatasetStore):
        """
        Initialize the service with dependencies.

        Args:
            store: Dataset store holding datasets and filters
        """
        self.store = store

    # ------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------

    def import_dataset(
        self,
        raw: Union[bytes, str],
        contract: ContractType,
        line: LineType,
    ) -> Tuple[LoadedDataset, bool]:
        """
        Import a JSON document into a (contract, line) slot.

        Returns:
            The loaded dataset and whether it replaced a previous one

        Raises:
            SchemaMismatchError: If the document has an unsupported shape
            MalformedDateError: If a date is not a zero-padded calendar date
            InvalidSlotError: If the contract cannot be loaded on the line
        """
        if len(raw) > settings.max_import_bytes:
            raise SchemaMismatchError(
                f"Document exceeds the {settings.max_import_bytes} byte import limit"
            )
        document = parse_document(raw)
        dataset = import_dataset(document, contract, line)
        previous = self.store.put(dataset)
        return dataset, previous is not None

    def list_datasets(self) -> List[LoadedDataset]:
        return self.store.datasets()

    def remove_dataset(self, contract: ContractType, line: LineType) -> LoadedDataset:
        return self.store.remove(contract, line)

    def export_csv(self, today: date) -> Iterator[str]:
        return iter_consolidated_csv(self.store.datasets(), today)

    # ------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------

    def garden_filters(self) -> Dict[str, List[str]]:
        return self.store.garden_filters()

    def set_garden_filter(
        self,
        contract: ContractType,
        line: LineType,
        garden_codes: Sequence[str],
    ) -> List[str]:
        return self.store.set_garden_filter(contract, line, garden_codes)

    def status_filter(self) -> List[Status]:
        return self.store.status_filter()

    def set_status_filter(self, statuses: Sequence[Status]) -> List[Status]:
        return self.store.set_status_filter(statuses)

    # ------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------

    def selected_requirements(self, snapshot: Optional[StoreSnapshot] = None) -> List[Requirement]:
        """Combined requirements of every slot after the garden selection."""
        snapshot = snapshot or self.store.snapshot()
        combined: List[Requirement] = []
        for requirements in filter_by_selection(snapshot).values():
            combined.extend(requirements)
        return combined

    def summary(self, today: date, view_mode: ViewMode) -> CategoryTotals:
        requirements = self.selected_requirements()
        logger.info(f"Summary over {len(requirements)} requirements ({view_mode.value})")
        return aggregate(requirements, today, view_mode)

    def timeseries(
        self,
        today: date,
        view_mode: ViewMode,
        granularity: Granularity,
    ) -> List[PeriodRow]:
        requirements = self.selected_requirements()
        return group_by_period(requirements, today, view_mode, granularity)

    def matrix(
        self,
        today: date,
        view_mode: ViewMode,
        expand: Sequence[LineType] = (),
        statuses: Optional[Sequence[Status]] = None,
    ) -> MatrixView:
        """
        Build the line x contract matrix and the requested drill-downs.

        Args:
            today: Evaluation date
            view_mode: COUNT or AMOUNT
            expand: Lines to break down by garden
            statuses: Status filter; defaults to the stored matrix filter

        Returns:
            MatrixView
        """
        snapshot = self.store.snapshot()
        active = snapshot.status_filter if statuses is None else tuple(statuses)
        slots = filter_by_selection(snapshot)

        matrix = build_matrix(slots, today, view_mode, active)
        view = MatrixView(matrix=matrix)

        for line in dict.fromkeys(expand):
            gardens = gardens_for_line(snapshot.datasets, line)
            view.expanded[line] = build_garden_breakdown(
                slots=slots,
                line=line,
                gardens=gardens,
                today=today,
                view_mode=view_mode,
                statuses=active,
                grand_total=matrix.grand_total,
            )

        logger.info(f"Matrix built for {len(slots)} slots, "
                    f"{len(active)} statuses, expanded={[l.value for l in view.expanded]}")
        return view
