"""
Infrastructure layer: persistent store of loaded datasets and filters.

Holds at most one dataset per (contract, line) slot, the garden selection
per slot and the matrix status filter, and persists them to a JSON file.
Analysis code never reads the store directly; it works on the immutable
snapshot returned by ``DatasetStore.snapshot``.
"""
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
from pydantic import ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from app.config import settings
from app.domain.exceptions import (
    DatasetNotFoundError,
    DatasetStoreError,
    InvalidSlotError,
)
from app.domain.models import (
    STATUSES,
    ContractType,
    LineType,
    LoadedDataset,
    Status,
    is_valid_slot,
    slot_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSnapshot:
    """Point-in-time copy of the store handed to the analysis layer."""
    datasets: Tuple[LoadedDataset, ...] = ()
    garden_filters: Dict[str, List[str]] = field(default_factory=dict)
    status_filter: Tuple[Status, ...] = tuple(STATUSES)


@retry(
    stop=stop_after_attempt(settings.store_write_retry_attempts),
    wait=wait_exponential(
        min=settings.store_write_retry_min_wait,
        max=settings.store_write_retry_max_wait,
    ),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)
def _write_atomic(path: Path, payload: str) -> None:
    """Write ``payload`` to a temp file next to ``path`` and swap it in."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class DatasetStore:
    """
    Store of loaded datasets and selection filters.

    Pass ``path=None`` for a purely in-memory store.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._datasets: List[LoadedDataset] = []
        self._garden_filters: Dict[str, List[str]] = {}
        self._status_filter: List[Status] = list(STATUSES)

        if self.path and self.path.exists():
            self._load()

    # ------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------

    def _load(self) -> None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            self._datasets = [
                LoadedDataset.model_validate(item) for item in raw.get("datasets", [])
            ]
            self._garden_filters = {
                key: list(codes) for key, codes in raw.get("garden_filters", {}).items()
            }
            self._status_filter = [
                Status(value) for value in raw.get("status_filter", [s.value for s in STATUSES])
            ]
        except (OSError, json.JSONDecodeError, ValidationError, ValueError) as e:
            logger.error(f"Could not restore dataset store from {self.path}: {e}")
            raise DatasetStoreError(f"Could not restore dataset store: {e}") from e

        logger.info(f"Restored {len(self._datasets)} datasets from {self.path}")

    def _commit(
        self,
        datasets: Optional[List[LoadedDataset]] = None,
        garden_filters: Optional[Dict[str, List[str]]] = None,
        status_filter: Optional[List[Status]] = None,
    ) -> None:
        """
        Persist the new state, then make it current.

        Arguments left as None keep their current value. In-memory state is
        only replaced once the file write succeeded.
        """
        datasets = self._datasets if datasets is None else datasets
        garden_filters = self._garden_filters if garden_filters is None else garden_filters
        status_filter = self._status_filter if status_filter is None else status_filter

        if self.path is not None:
            payload = json.dumps({
                "datasets": [d.model_dump(mode="json") for d in datasets],
                "garden_filters": garden_filters,
                "status_filter": [s.value for s in status_filter],
            }, ensure_ascii=False)
            try:
                _write_atomic(self.path, payload)
            except OSError as e:
                logger.error(f"Failed to persist dataset store to {self.path}: {e}")
                raise DatasetStoreError(f"Failed to persist dataset store: {e}") from e

        self._datasets = datasets
        self._garden_filters = garden_filters
        self._status_filter = status_filter

    # ------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------

    def datasets(self) -> List[LoadedDataset]:
        """Loaded datasets in load order."""
        with self._lock:
            return list(self._datasets)

    def get(self, contract: ContractType, line: LineType) -> Optional[LoadedDataset]:
        with self._lock:
            for dataset in self._datasets:
                if dataset.contract == contract and dataset.line == line:
                    return dataset
        return None

    def put(self, dataset: LoadedDataset) -> Optional[LoadedDataset]:
        """
        Load a dataset into its slot, replacing any previous one.

        The new dataset goes to the end of the load order. A slot loaded for
        the first time gets a selection filter with every garden; an existing
        filter is kept as is.

        Returns:
            The replaced dataset, if any
        """
        if not is_valid_slot(dataset.contract, dataset.line):
            raise InvalidSlotError(dataset.contract.value, dataset.line.value)

        with self._lock:
            previous = self.get(dataset.contract, dataset.line)
            datasets = [d for d in self._datasets if d.key != dataset.key]
            datasets.append(dataset)

            filters = dict(self._garden_filters)
            if dataset.key not in filters:
                filters[dataset.key] = [g.code for g in dataset.catalog.gardens]

            self._commit(datasets=datasets, garden_filters=filters)

        if previous:
            logger.info(f"Replaced dataset {dataset.key} "
                        f"(exported {previous.exported_at} -> {dataset.exported_at})")
        else:
            logger.info(f"Loaded dataset {dataset.key} (exported {dataset.exported_at})")
        return previous

    def remove(self, contract: ContractType, line: LineType) -> LoadedDataset:
        """
        Unload a slot and drop its selection filter.

        Raises:
            DatasetNotFoundError: If nothing is loaded for the slot
        """
        key = slot_key(contract, line)
        with self._lock:
            dataset = self.get(contract, line)
            if dataset is None:
                raise DatasetNotFoundError(f"No dataset loaded for {key}")
            filters = {k: v for k, v in self._garden_filters.items() if k != key}
            self._commit(
                datasets=[d for d in self._datasets if d.key != key],
                garden_filters=filters,
            )

        logger.info(f"Removed dataset {key}")
        return dataset

    def clear(self) -> None:
        with self._lock:
            self._commit(datasets=[], garden_filters={}, status_filter=list(STATUSES))
        logger.info("Cleared dataset store")

    # ------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------

    def garden_filters(self) -> Dict[str, List[str]]:
        with self._lock:
            return {key: list(codes) for key, codes in self._garden_filters.items()}

    def set_garden_filter(
        self,
        contract: ContractType,
        line: LineType,
        garden_codes: Sequence[str],
    ) -> List[str]:
        """
        Replace the garden selection for a loaded slot.

        An empty selection excludes the slot from analysis.

        Raises:
            DatasetNotFoundError: If nothing is loaded for the slot
        """
        key = slot_key(contract, line)
        codes = list(dict.fromkeys(garden_codes))
        with self._lock:
            if self.get(contract, line) is None:
                raise DatasetNotFoundError(f"No dataset loaded for {key}")
            self._commit(garden_filters={**self._garden_filters, key: codes})

        logger.info(f"Garden filter for {key} set to {len(codes)} gardens")
        return codes

    def status_filter(self) -> List[Status]:
        with self._lock:
            return list(self._status_filter)

    def set_status_filter(self, statuses: Sequence[Status]) -> List[Status]:
        """Replace the matrix status filter, keeping display order."""
        chosen = {Status(s) for s in statuses}
        with self._lock:
            ordered = [s for s in STATUSES if s in chosen]
            self._commit(status_filter=ordered)

        logger.info(f"Matrix status filter set to {[s.value for s in ordered]}")
        return list(ordered)

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                datasets=tuple(self._datasets),
                garden_filters=self.garden_filters(),
                status_filter=tuple(self._status_filter),
            )


# Singleton instance
_dataset_store: Optional[DatasetStore] = None


def get_dataset_store() -> DatasetStore:
    """
    Get or create the singleton dataset store instance.

    Returns:
        DatasetStore backed by ``settings.data_store_path``
    """
    global _dataset_store
    if _dataset_store is None:
        _dataset_store = DatasetStore(Path(settings.data_store_path))
    return _dataset_store
