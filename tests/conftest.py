"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- A requirement factory
- Sample documents in both import layouts
- In-memory and file-backed dataset stores
- FastAPI test client wired to a fresh store
"""
import copy
import pytest
from datetime import date, datetime, timezone
from fastapi.testclient import TestClient

from app.main import app
from app.domain.models import (
    Catalog,
    ContractType,
    Garden,
    LineType,
    LoadedDataset,
    Requirement,
    SchemaVersion,
)
from app.api.rate_limit import limiter
from app.infrastructure.dataset_store import DatasetStore, get_dataset_store


TODAY = date(2024, 6, 1)


# ============================================================
# Sample Data Fixtures
# ============================================================

def build_requirement(**overrides) -> Requirement:
    """Requirement with a work order, not received, due after TODAY."""
    fields = dict(
        garden_code="J-001",
        location="Sala 1",
        cost_item="1.1",
        quantity=1,
        unit_price=1000.0,
        total_price=1000.0,
        penalty=0.0,
        registration_date=date(2024, 2, 10),
        start_date=date(2024, 2, 12),
        base_term_days=120,
        additional_term_days=0,
        total_term_days=120,
        due_date=date(2024, 6, 11),
        work_order="OT-1",
        reception_date=None,
        payment_report=None,
    )
    fields.update(overrides)
    return Requirement(**fields)


def build_dataset(
    contract: ContractType,
    line: LineType,
    requirements: list[Requirement],
    gardens: list[tuple[str, str]] = (("J-001", "Jardín Uno"), ("J-002", "Jardín Dos")),
) -> LoadedDataset:
    return LoadedDataset(
        contract=contract,
        line=line,
        schema_version=SchemaVersion.FLAT,
        exported_at="2024-05-30",
        imported_at=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        catalog=Catalog(gardens=[Garden(code=c, name=n) for c, n in gardens]),
        requirements=requirements,
    )


@pytest.fixture
def make_requirement():
    """Factory for canonical requirements."""
    return build_requirement


@pytest.fixture
def make_dataset():
    """Factory for loaded datasets."""
    return build_dataset


@pytest.fixture
def legacy_document() -> dict:
    """Export in the legacy metadata/catalogos/datos layout."""
    base = {
        "jardin_nombre": "Jardín Uno",
        "recinto": "Sala 1",
        "partida_item": "1.1",
        "partida_nombre": "Pintura",
        "partida_unidad": "m2",
        "cantidad": 10,
        "plazo": 30,
        "plazo_adicional": 0,
        "descripcion": "Pintar muros",
        "observaciones": "",
        "precio_unitario": "1000",
        "precio_total": 10000,
        "fecha_inicio": "2024-01-05",
        "plazo_total": 30,
        "fecha_limite": "2024-02-04",
        "estado": "pendiente",
        "dias_atraso": 0,
        "multa": 0,
        "a_pago": 0,
    }
    requirements = [
        {**base, "id": 1, "jardin_codigo": "J-001", "fecha_registro": "2024-01-03",
         "ot_id": None, "fecha_recepcion": None, "informe_pago_id": None},
        {**base, "id": 2, "jardin_codigo": "J-001", "fecha_registro": "2024-01-20",
         "ot_id": 7, "fecha_recepcion": "2024-02-01", "informe_pago_id": None,
         "multa": 500, "a_pago": 9500},
        {**base, "id": 3, "jardin_codigo": "J-002", "fecha_registro": "2024-02-11",
         "ot_id": 8, "fecha_recepcion": None, "informe_pago_id": None},
    ]
    return {
        "version": "1.0",
        "metadata": {
            "fecha_exportacion": "2024-05-30T10:15:00",
            "titulo": "Mantención L1",
            "total_requerimientos": 3,
            "total_ordenes": 2,
            "total_informes": 0,
        },
        "configuracion": {},
        "catalogos": {
            "jardines": [
                {"codigo": "J-001", "nombre": "Jardín Uno"},
                {"codigo": "J-002", "nombre": "Jardín Dos"},
            ],
            "partidas": [
                {"item": "1.1", "partida": "Pintura", "unidad": "m2", "precio_unitario": "1000"},
            ],
            "recintos": [
                {"jardin_codigo": "J-001", "nombre": "Sala 1"},
            ],
        },
        "datos": {"requerimientos": requirements},
    }


@pytest.fixture
def flat_document() -> dict:
    """Export in the flat table layout with per-row timestamps."""
    base = {
        "recinto": "Patio",
        "partida_item": "2.3",
        "cantidad": 2,
        "precio_unitario": 2500,
        "precio_total": 5000,
        "fecha_inicio": "2024-03-01",
        "estado": "pendiente",
        "plazo_dias": 20,
        "plazo_adicional": 5,
        "plazo_total": 25,
        "fecha_limite": "2024-03-26",
        "multa": 300,
        "descripcion": "Cambio de luminarias",
        "observaciones": None,
    }
    return {
        "jardines": [
            {"id": 1, "codigo": "J-010", "nombre": "Jardín Diez", "created_at": "2024-04-01 09:00:00"},
            {"id": 2, "codigo": "J-011", "nombre": "Jardín Once", "created_at": "2024-04-03 17:30:00"},
        ],
        "partidas": [
            {"id": 1, "item": "2.3", "partida": "Luminarias", "unidad": "un",
             "precio_unitario": 2500, "created_at": "2024-04-02 08:00:00"},
        ],
        "recintos": [
            {"id": 1, "jardin_codigo": "J-010", "nombre": "Patio", "created_at": "2024-04-01 09:00:00"},
        ],
        "requerimientos": [
            {**base, "jardin_codigo": "J-010", "fecha_registro": "2024-03-01 10:00:00",
             "ot_codigo": "OT-10", "informe_codigo": "IP-1", "fecha_recepcion": "2024-03-20"},
            {**base, "jardin_codigo": "J-011", "fecha_registro": "2024-03-15",
             "ot_codigo": "OT-11", "informe_codigo": None, "fecha_recepcion": None},
        ],
        "ordenes_trabajo": [
            {"codigo": "OT-10", "jardin_codigo": "J-010", "fecha_emision": "2024-03-01",
             "monto_total": 5000, "estado": "cerrada", "created_at": "2024-03-01"},
            {"codigo": "OT-11", "jardin_codigo": "J-011", "fecha_emision": "2024-03-15",
             "monto_total": 5000, "estado": "abierta", "created_at": "2024-03-15"},
        ],
        "informes_pago": [
            {"codigo": "IP-1", "jardin_codigo": "J-010", "fecha_emision": "2024-03-25",
             "monto_total": 4700, "estado": "pagado", "created_at": "2024-03-25"},
        ],
    }


@pytest.fixture
def clone():
    """Deep copy helper so tests can mutate fixture documents freely."""
    return copy.deepcopy


# ============================================================
# Store Fixtures
# ============================================================

@pytest.fixture
def memory_store() -> DatasetStore:
    """Dataset store without a backing file."""
    return DatasetStore()


@pytest.fixture
def file_store(tmp_path) -> DatasetStore:
    """Dataset store persisted under a temporary directory."""
    return DatasetStore(tmp_path / "store.json")


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client(memory_store) -> TestClient:
    """Synchronous test client backed by a fresh in-memory store and rate limits."""
    app.dependency_overrides[get_dataset_store] = lambda: memory_store
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        limiter.reset()
