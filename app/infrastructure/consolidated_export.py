"""
Infrastructure layer: consolidated CSV export of every loaded requirement.
"""
import csv
import io
from datetime import date
from typing import Dict, Iterable, Iterator

from app.domain.models import LoadedDataset
from app.services.domain.status_classifier import (
    amount_payable,
    classify,
    days_overdue,
)


EXPORT_COLUMNS = [
    "contract",
    "line",
    "id",
    "garden_code",
    "garden_name",
    "location",
    "cost_item",
    "cost_item_name",
    "cost_item_unit",
    "quantity",
    "base_term_days",
    "additional_term_days",
    "description",
    "observations",
    "unit_price",
    "total_price",
    "start_date",
    "total_term_days",
    "due_date",
    "registration_date",
    "status",
    "work_order",
    "reception_date",
    "days_overdue",
    "penalty",
    "amount_payable",
    "payment_report",
]


def _rows(dataset: LoadedDataset, today: date) -> Iterator[Dict[str, object]]:
    gardens = {g.code: g.name for g in dataset.catalog.gardens}
    cost_items = {c.item: c for c in dataset.catalog.cost_items}

    for req in dataset.requirements:
        status = classify(req, today)
        cost_item = cost_items.get(req.cost_item)
        yield {
            "contract": dataset.contract.value,
            "line": dataset.line.value,
            "id": req.id,
            "garden_code": req.garden_code,
            "garden_name": gardens.get(req.garden_code, "Desconocido"),
            "location": req.location,
            "cost_item": req.cost_item,
            "cost_item_name": cost_item.name if cost_item else "Desconocida",
            "cost_item_unit": cost_item.unit if cost_item else None,
            "quantity": req.quantity,
            "base_term_days": req.base_term_days,
            "additional_term_days": req.additional_term_days,
            "description": req.description,
            "observations": req.observations,
            "unit_price": req.unit_price,
            "total_price": req.total_price,
            "start_date": req.start_date.isoformat(),
            "total_term_days": req.total_term_days,
            "due_date": req.due_date.isoformat(),
            "registration_date": req.registration_date.isoformat(),
            "status": status.value,
            "work_order": req.work_order,
            "reception_date": req.reception_date.isoformat() if req.reception_date else None,
            "days_overdue": days_overdue(req, today),
            "penalty": req.penalty,
            "amount_payable": amount_payable(req, status),
            "payment_report": req.payment_report,
        }


def iter_consolidated_csv(datasets: Iterable[LoadedDataset], today: date) -> Iterator[str]:
    """
    Stream every requirement of ``datasets`` as CSV chunks.

    None values are written as empty cells; quoting follows the csv module
    defaults so commas and quotes in free text survive.
    """
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    yield buf.getvalue()

    for dataset in datasets:
        for row in _rows(dataset, today):
            buf.seek(0)
            buf.truncate()
            writer.writerow(row)
            yield buf.getvalue()
