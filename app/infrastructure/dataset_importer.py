"""
Infrastructure layer: import of contract datasets from exported JSON.

Two historical layouts are accepted and converted once, here, into the
canonical domain models:

- legacy: ``version`` + ``metadata`` envelope, ``catalogos`` and
  ``datos.requerimientos`` with integer ``ot_id`` / ``informe_pago_id`` and a
  precomputed ``a_pago``.
- flat: top-level ``jardines``, ``partidas``, ``recintos`` and
  ``requerimientos`` tables with per-row ``created_at`` timestamps and string
  ``ot_codigo`` / ``informe_codigo`` references.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ValidationError

from app.domain.exceptions import InvalidSlotError, SchemaMismatchError
from app.domain.models import (
    Catalog,
    ContractType,
    CostItem,
    Garden,
    LineType,
    LoadedDataset,
    Location,
    Requirement,
    SchemaVersion,
    is_valid_slot,
)
from app.utils.date_helpers import parse_calendar_date, parse_optional_date

logger = logging.getLogger(__name__)


Number = Union[float, str, None]


# Pydantic models for the legacy layout
class LegacyGarden(BaseModel):
    codigo: str
    nombre: str


class LegacyCostItem(BaseModel):
    item: str
    partida: str
    unidad: Optional[str] = None
    precio_unitario: Number = None


class LegacyLocation(BaseModel):
    jardin_codigo: str
    nombre: str


class LegacyCatalogs(BaseModel):
    jardines: List[LegacyGarden]
    partidas: List[LegacyCostItem]
    recintos: List[LegacyLocation]


class LegacyMetadata(BaseModel):
    fecha_exportacion: str
    titulo: Optional[str] = None
    total_requerimientos: Optional[int] = None
    total_ordenes: int = 0
    total_informes: int = 0


class LegacyRequirement(BaseModel):
    id: Optional[int] = None
    jardin_codigo: str
    recinto: str = ""
    partida_item: str = ""
    cantidad: float = 0
    plazo: int = 0
    plazo_adicional: int = 0
    plazo_total: int = 0
    descripcion: Optional[str] = None
    observaciones: Optional[str] = None
    precio_unitario: Number = None
    precio_total: float
    fecha_inicio: Any
    fecha_limite: Any
    fecha_registro: Any
    ot_id: Optional[int] = None
    fecha_recepcion: Any = None
    multa: float = 0
    a_pago: Optional[float] = None
    informe_pago_id: Optional[int] = None


class LegacyRequirements(BaseModel):
    requerimientos: List[LegacyRequirement]


class LegacyDocument(BaseModel):
    version: str
    metadata: LegacyMetadata
    catalogos: LegacyCatalogs
    datos: LegacyRequirements


# Pydantic models for the flat layout
class FlatGarden(BaseModel):
    codigo: str
    nombre: str
    created_at: Optional[str] = None


class FlatCostItem(BaseModel):
    item: str
    partida: str
    unidad: Optional[str] = None
    precio_unitario: Number = None
    created_at: Optional[str] = None


class FlatLocation(BaseModel):
    jardin_codigo: str
    nombre: str
    created_at: Optional[str] = None


class FlatRequirement(BaseModel):
    jardin_codigo: str
    recinto: str = ""
    partida_item: str = ""
    cantidad: float = 0
    precio_unitario: Number = None
    precio_total: float
    fecha_inicio: Any
    fecha_registro: Any
    ot_codigo: Optional[str] = None
    informe_codigo: Optional[str] = None
    fecha_recepcion: Any = None
    plazo_dias: int = 0
    plazo_adicional: int = 0
    plazo_total: int = 0
    fecha_limite: Any
    multa: float = 0
    descripcion: Optional[str] = None
    observaciones: Optional[str] = None


class FlatDocument(BaseModel):
    jardines: List[FlatGarden]
    partidas: List[FlatCostItem]
    recintos: List[FlatLocation]
    requerimientos: List[FlatRequirement]
    ordenes_trabajo: List[Dict[str, Any]] = []
    informes_pago: List[Dict[str, Any]] = []


_FLAT_TABLES = ("jardines", "partidas", "recintos", "requerimientos")


def parse_document(raw: Union[bytes, str]) -> Dict[str, Any]:
    """
    Decode an uploaded JSON document.

    Raises:
        SchemaMismatchError: If the payload is not a JSON object
    """
    try:
        document = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SchemaMismatchError(f"Invalid JSON document: {e}")

    if not isinstance(document, dict):
        raise SchemaMismatchError("Dataset document must be a JSON object")
    return document


def detect_schema_version(document: Dict[str, Any]) -> SchemaVersion:
    """
    Decide which historical layout a document uses.

    Raises:
        SchemaMismatchError: If neither layout matches
    """
    if all(isinstance(document.get(table), list) for table in _FLAT_TABLES):
        return SchemaVersion.FLAT
    if isinstance(document.get("metadata"), dict) and isinstance(document.get("datos"), dict):
        return SchemaVersion.LEGACY
    raise SchemaMismatchError(
        "Document matches neither the legacy (metadata/datos) "
        "nor the flat (jardines/partidas/recintos/requerimientos) layout"
    )


def _to_float(value: Number, field: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        raise SchemaMismatchError(f"Field '{field}' is not numeric: {value!r}")


def _reference(value) -> Optional[str]:
    """Normalise work-order / payment-report references to strings."""
    if value is None or value == "":
        return None
    return str(value)


def _legacy_requirement(raw: LegacyRequirement) -> Requirement:
    return Requirement(
        id=raw.id,
        garden_code=raw.jardin_codigo,
        location=raw.recinto,
        cost_item=raw.partida_item,
        quantity=raw.cantidad,
        unit_price=_to_float(raw.precio_unitario, "precio_unitario"),
        total_price=raw.precio_total,
        penalty=raw.multa,
        stored_amount_payable=raw.a_pago,
        registration_date=parse_calendar_date(raw.fecha_registro, "fecha_registro"),
        start_date=parse_calendar_date(raw.fecha_inicio, "fecha_inicio"),
        base_term_days=raw.plazo,
        additional_term_days=raw.plazo_adicional,
        total_term_days=raw.plazo_total,
        due_date=parse_calendar_date(raw.fecha_limite, "fecha_limite"),
        work_order=_reference(raw.ot_id),
        reception_date=parse_optional_date(raw.fecha_recepcion, "fecha_recepcion"),
        payment_report=_reference(raw.informe_pago_id),
        description=raw.descripcion,
        observations=raw.observaciones,
    )


def _flat_requirement(raw: FlatRequirement, index: int) -> Requirement:
    return Requirement(
        id=index,
        garden_code=raw.jardin_codigo,
        location=raw.recinto,
        cost_item=raw.partida_item,
        quantity=raw.cantidad,
        unit_price=_to_float(raw.precio_unitario, "precio_unitario"),
        total_price=raw.precio_total,
        penalty=raw.multa,
        registration_date=parse_calendar_date(raw.fecha_registro, "fecha_registro"),
        start_date=parse_calendar_date(raw.fecha_inicio, "fecha_inicio"),
        base_term_days=raw.plazo_dias,
        additional_term_days=raw.plazo_adicional,
        total_term_days=raw.plazo_total,
        due_date=parse_calendar_date(raw.fecha_limite, "fecha_limite"),
        work_order=_reference(raw.ot_codigo),
        reception_date=parse_optional_date(raw.fecha_recepcion, "fecha_recepcion"),
        payment_report=_reference(raw.informe_codigo),
        description=raw.descripcion,
        observations=raw.observaciones,
    )


def _latest_created_at(doc: FlatDocument) -> Optional[str]:
    """Flat exports carry no envelope; use the newest catalog timestamp."""
    stamps = [
        row.created_at
        for table in (doc.jardines, doc.partidas, doc.recintos)
        for row in table
        if row.created_at
    ]
    return max(stamps) if stamps else None


def _from_legacy(document: Dict[str, Any], contract, line, imported_at) -> LoadedDataset:
    doc = LegacyDocument.model_validate(document)
    catalog = Catalog(
        gardens=[Garden(code=g.codigo, name=g.nombre) for g in doc.catalogos.jardines],
        cost_items=[
            CostItem(
                item=p.item,
                name=p.partida,
                unit=p.unidad,
                unit_price=_to_float(p.precio_unitario, "precio_unitario"),
            )
            for p in doc.catalogos.partidas
        ],
        locations=[
            Location(garden_code=r.jardin_codigo, name=r.nombre)
            for r in doc.catalogos.recintos
        ],
    )
    return LoadedDataset(
        contract=contract,
        line=line,
        schema_version=SchemaVersion.LEGACY,
        exported_at=doc.metadata.fecha_exportacion,
        imported_at=imported_at,
        catalog=catalog,
        requirements=[_legacy_requirement(r) for r in doc.datos.requerimientos],
        work_order_count=doc.metadata.total_ordenes,
        payment_report_count=doc.metadata.total_informes,
    )


def _from_flat(document: Dict[str, Any], contract, line, imported_at) -> LoadedDataset:
    doc = FlatDocument.model_validate(document)
    catalog = Catalog(
        gardens=[Garden(code=g.codigo, name=g.nombre) for g in doc.jardines],
        cost_items=[
            CostItem(
                item=p.item,
                name=p.partida,
                unit=p.unidad,
                unit_price=_to_float(p.precio_unitario, "precio_unitario"),
            )
            for p in doc.partidas
        ],
        locations=[
            Location(garden_code=r.jardin_codigo, name=r.nombre)
            for r in doc.recintos
        ],
    )
    return LoadedDataset(
        contract=contract,
        line=line,
        schema_version=SchemaVersion.FLAT,
        exported_at=_latest_created_at(doc) or imported_at.isoformat(),
        imported_at=imported_at,
        catalog=catalog,
        requirements=[
            _flat_requirement(r, index)
            for index, r in enumerate(doc.requerimientos, start=1)
        ],
        work_order_count=len(doc.ordenes_trabajo),
        payment_report_count=len(doc.informes_pago),
    )


def import_dataset(
    document: Dict[str, Any],
    contract: ContractType,
    line: LineType,
    imported_at: Optional[datetime] = None,
) -> LoadedDataset:
    """
    Convert a decoded JSON document into a canonical LoadedDataset.

    Args:
        document: Decoded JSON object in either supported layout
        contract: Contract type the dataset is loaded for
        line: Budget line the dataset is loaded for
        imported_at: Import timestamp (defaults to now, UTC)

    Returns:
        LoadedDataset bound to (contract, line)

    Raises:
        InvalidSlotError: If the contract cannot be loaded on this line
        SchemaMismatchError: If the document has the wrong structure
        MalformedDateError: If a requirement carries a malformed date
    """
    contract = ContractType(contract)
    line = LineType(line)
    if not is_valid_slot(contract, line):
        raise InvalidSlotError(contract.value, line.value)

    imported_at = imported_at or datetime.now(timezone.utc)
    version = detect_schema_version(document)

    try:
        if version == SchemaVersion.LEGACY:
            dataset = _from_legacy(document, contract, line, imported_at)
        else:
            dataset = _from_flat(document, contract, line, imported_at)
    except ValidationError as e:
        raise SchemaMismatchError(
            f"Document does not match the {version.value} layout: "
            f"{e.error_count()} validation error(s), first: {e.errors()[0]['msg']} "
            f"at {'.'.join(str(p) for p in e.errors()[0]['loc'])}"
        )

    logger.info(f"Parsed {version.value} dataset for {dataset.key}: "
                f"{len(dataset.requirements)} requirements, "
                f"{len(dataset.catalog.gardens)} gardens")
    return dataset
