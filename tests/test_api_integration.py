"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle against an in-memory store.
"""
import inspect
import json
import pytest
from unittest.mock import patch

from app.api.v1.routers import datasets as datasets_router
from app.config import settings


MANT_L1 = "/api/v1/datasets/mantencion/linea_1"
CALEF_L1 = "/api/v1/datasets/calefaccion/linea_1"
TODAY = {"today": "2024-06-01"}


@pytest.fixture
def loaded_client(test_client, legacy_document, flat_document):
    """Client with the legacy export on mantencion and the flat one on calefaccion."""
    assert test_client.put(MANT_L1, content=json.dumps(legacy_document)).status_code == 200
    assert test_client.put(CALEF_L1, content=json.dumps(flat_document)).status_code == 200
    return test_client


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================
# Dataset Endpoint Tests
# ============================================================

class TestDatasetEndpoints:
    """Tests for import, listing, removal and export."""

    def test_import_legacy_document(self, test_client, legacy_document):
        response = test_client.put(MANT_L1, content=json.dumps(legacy_document))

        assert response.status_code == 200
        data = response.json()
        assert data["replaced"] is False
        assert data["dataset"]["contract"] == "mantencion"
        assert data["dataset"]["line"] == "linea_1"
        assert data["dataset"]["schema_version"] == "legacy"
        assert data["dataset"]["requirement_count"] == 3
        assert data["dataset"]["garden_count"] == 2

    def test_reimport_replaces_slot(self, test_client, flat_document):
        test_client.put(CALEF_L1, content=json.dumps(flat_document))
        response = test_client.put(CALEF_L1, content=json.dumps(flat_document))

        assert response.status_code == 200
        assert response.json()["replaced"] is True
        assert len(test_client.get("/api/v1/datasets").json()["datasets"]) == 1

    def test_elevators_outside_first_line(self, test_client, flat_document):
        response = test_client.put(
            "/api/v1/datasets/ascensores/linea_2", content=json.dumps(flat_document)
        )

        assert response.status_code == 400

    def test_invalid_json(self, test_client):
        response = test_client.put(MANT_L1, content=b"{not json")

        assert response.status_code == 422

    def test_malformed_date(self, test_client, legacy_document, clone):
        document = clone(legacy_document)
        document["datos"]["requerimientos"][0]["fecha_registro"] = "3/1/2024"

        response = test_client.put(MANT_L1, content=json.dumps(document))

        assert response.status_code == 422
        assert "fecha_registro" in response.json()["detail"]
        assert test_client.get("/api/v1/datasets").json()["datasets"] == []

    def test_unknown_contract_in_path(self, test_client, flat_document):
        response = test_client.put(
            "/api/v1/datasets/jardineria/linea_1", content=json.dumps(flat_document)
        )

        assert response.status_code == 422

    def test_import_over_declared_size_limit(self, test_client, flat_document):
        with patch.object(settings, "max_import_bytes", 100):
            response = test_client.put(CALEF_L1, content=json.dumps(flat_document))

        assert response.status_code == 413
        assert test_client.get("/api/v1/datasets").json()["datasets"] == []

    def test_import_over_size_limit_without_content_length(self, test_client, flat_document):
        document = json.dumps(flat_document).encode()

        def chunks():
            for start in range(0, len(document), 64):
                yield document[start:start + 64]

        with patch.object(settings, "max_import_bytes", 100):
            response = test_client.put(CALEF_L1, content=chunks())

        assert response.status_code == 413
        assert test_client.get("/api/v1/datasets").json()["datasets"] == []

    def test_import_handler_runs_in_threadpool(self):
        """Parsing and the store write block, so the route must not be a coroutine."""
        handler = inspect.unwrap(datasets_router.import_dataset)

        assert not inspect.iscoroutinefunction(handler)

    def test_list_in_load_order(self, loaded_client):
        response = loaded_client.get("/api/v1/datasets")

        assert response.status_code == 200
        slots = [(d["contract"], d["line"]) for d in response.json()["datasets"]]
        assert slots == [("mantencion", "linea_1"), ("calefaccion", "linea_1")]

    def test_delete_dataset(self, loaded_client):
        response = loaded_client.delete(MANT_L1)

        assert response.status_code == 200
        assert response.json()["contract"] == "mantencion"
        assert "mantencion-linea_1" not in loaded_client.get("/api/v1/filters/gardens").json()["filters"]

    def test_delete_missing_dataset(self, test_client):
        response = test_client.delete(MANT_L1)

        assert response.status_code == 404

    def test_export_without_datasets(self, test_client):
        response = test_client.get("/api/v1/datasets/export.csv")

        assert response.status_code == 404

    def test_export_csv(self, loaded_client):
        response = loaded_client.get("/api/v1/datasets/export.csv", params=TODAY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "consolidado_2024-06-01.csv" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0].startswith("contract,line,id")
        assert len(lines) == 1 + 3 + 2


# ============================================================
# Filter Endpoint Tests
# ============================================================

class TestFilterEndpoints:
    """Tests for garden selections and the matrix status filter."""

    def test_import_selects_all_gardens(self, loaded_client):
        response = loaded_client.get("/api/v1/filters/gardens")

        assert response.status_code == 200
        assert response.json()["filters"] == {
            "mantencion-linea_1": ["J-001", "J-002"],
            "calefaccion-linea_1": ["J-010", "J-011"],
        }

    def test_garden_selection_narrows_summary(self, loaded_client):
        response = loaded_client.put(
            "/api/v1/filters/gardens/mantencion/linea_1", json={"garden_codes": ["J-002"]}
        )
        assert response.status_code == 200
        loaded_client.put("/api/v1/filters/gardens/calefaccion/linea_1", json={"garden_codes": []})

        summary = loaded_client.get("/api/v1/analysis/summary", params=TODAY).json()

        assert summary["requirement_count"] == 1
        overdue = next(c for c in summary["categories"] if c["status"] == "overdue")
        assert overdue["value"] == 1

    def test_garden_selection_for_unloaded_slot(self, test_client):
        response = test_client.put(
            "/api/v1/filters/gardens/mantencion/linea_3", json={"garden_codes": ["J-001"]}
        )

        assert response.status_code == 404

    def test_status_filter_round_trip(self, test_client):
        assert test_client.get("/api/v1/filters/statuses").json()["statuses"] == [
            "paid", "received", "overdue", "in_progress", "not_started",
        ]

        response = test_client.put(
            "/api/v1/filters/statuses", json={"statuses": ["overdue", "paid"]}
        )

        assert response.status_code == 200
        assert response.json()["statuses"] == ["paid", "overdue"]
        assert test_client.get("/api/v1/filters/statuses").json()["statuses"] == ["paid", "overdue"]

    def test_status_filter_rejects_unknown_status(self, test_client):
        response = test_client.put("/api/v1/filters/statuses", json={"statuses": ["lost"]})

        assert response.status_code == 422


# ============================================================
# Analysis Endpoint Tests
# ============================================================

class TestAnalysisEndpoints:
    """Tests for summary, time series and matrix views."""

    def test_summary_counts(self, loaded_client):
        response = loaded_client.get("/api/v1/analysis/summary", params=TODAY)

        assert response.status_code == 200
        data = response.json()
        values = {c["status"]: c["value"] for c in data["categories"]}
        assert values == {
            "paid": 1, "received": 1, "overdue": 2, "in_progress": 0, "not_started": 1,
        }
        assert data["grand_total"] == 5
        assert data["today"] == "2024-06-01"
        labels = [c["label"] for c in data["categories"]]
        assert labels == ["Pagados", "Recibidos", "Atrasados", "En Curso", "Sin Curso"]

    def test_summary_amounts(self, loaded_client):
        response = loaded_client.get(
            "/api/v1/analysis/summary", params={**TODAY, "view_mode": "amount"}
        )

        values = {c["status"]: c["value"] for c in response.json()["categories"]}
        assert values["paid"] == 4700
        assert values["received"] == 9500
        assert values["overdue"] == 10000 + 5000
        assert values["not_started"] == 10000

    def test_summary_without_datasets(self, test_client):
        data = test_client.get("/api/v1/analysis/summary", params=TODAY).json()

        assert data["grand_total"] == 0
        assert all(c["percentage"] == 0 for c in data["categories"])

    def test_monthly_timeseries(self, loaded_client):
        response = loaded_client.get("/api/v1/analysis/timeseries", params=TODAY)

        assert response.status_code == 200
        periods = response.json()["periods"]
        assert [p["period"] for p in periods] == ["2024-01", "2024-02", "2024-03"]
        assert periods[0]["total"] == 2
        assert periods[2]["paid"] == 1
        assert periods[2]["overdue"] == 1

    def test_weekly_timeseries(self, loaded_client):
        response = loaded_client.get(
            "/api/v1/analysis/timeseries", params={**TODAY, "granularity": "weekly"}
        )

        keys = [p["period"] for p in response.json()["periods"]]
        assert keys == sorted(keys)
        assert all("-W" in key for key in keys)

    def test_matrix_cells(self, loaded_client):
        response = loaded_client.get("/api/v1/analysis/matrix", params=TODAY)

        assert response.status_code == 200
        data = response.json()
        rows = {row["line"]: row for row in data["rows"]}
        assert rows["linea_1"]["cells"]["mantencion"] == 3
        assert rows["linea_1"]["cells"]["calefaccion"] == 2
        assert rows["linea_1"]["cells"]["area_verde"] is None
        assert rows["linea_2"]["cells"]["mantencion"] is None
        assert rows["linea_1"]["total"] == 5
        assert rows["linea_1"]["gardens"] is None
        assert data["grand_total"] == 5
        assert data["column_percentages"]["mantencion"] == 60.0

    def test_matrix_status_override(self, loaded_client):
        response = loaded_client.get(
            "/api/v1/analysis/matrix", params={**TODAY, "status": "paid"}
        )

        data = response.json()
        rows = {row["line"]: row for row in data["rows"]}
        assert data["statuses"] == ["paid"]
        assert rows["linea_1"]["cells"]["mantencion"] == 0
        assert rows["linea_1"]["cells"]["calefaccion"] == 1

    def test_matrix_uses_stored_status_filter(self, loaded_client):
        loaded_client.put("/api/v1/filters/statuses", json={"statuses": []})

        data = loaded_client.get("/api/v1/analysis/matrix", params=TODAY).json()

        assert data["statuses"] == []
        assert all(v is None for row in data["rows"] for v in row["cells"].values())
        assert data["grand_total"] == 0

    def test_matrix_garden_expansion(self, loaded_client):
        response = loaded_client.get(
            "/api/v1/analysis/matrix", params={**TODAY, "expand": ["linea_1", "linea_4"]}
        )

        rows = {row["line"]: row for row in response.json()["rows"]}
        gardens = rows["linea_1"]["gardens"]
        assert [g["code"] for g in gardens] == ["J-001", "J-002"]
        assert gardens[0]["cells"]["mantencion"] == 2
        assert gardens[0]["cells"]["calefaccion"] == 0
        assert gardens[0]["percentage"] == 40.0
        assert rows["linea_4"]["gardens"] == []
        assert rows["linea_2"]["gardens"] is None

    def test_invalid_view_mode(self, test_client):
        response = test_client.get("/api/v1/analysis/summary", params={"view_mode": "sum"})

        assert response.status_code == 422


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Tests for API response formats."""

    def test_openapi_schema_available(self, test_client):
        """OpenAPI schema should be available."""
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        data = response.json()
        assert "openapi" in data
        assert "/api/v1/datasets/{contract}/{line}" in data["paths"]
        assert "/api/v1/analysis/matrix" in data["paths"]
        assert "/api/v1/filters/gardens" in data["paths"]

    def test_docs_endpoint_available(self, test_client):
        response = test_client.get("/docs")

        assert response.status_code == 200
        assert "swagger" in response.text.lower() or "html" in response.headers.get("content-type", "")

    def test_redoc_endpoint_available(self, test_client):
        response = test_client.get("/redoc")

        assert response.status_code == 200


# ============================================================
# Rate Limiting Tests
# ============================================================

class TestRateLimiting:
    """Tests for rate limiting functionality."""

    def test_rate_limit_documented_in_openapi(self, test_client):
        """Rate limit should be documented on the import endpoint."""
        data = test_client.get("/openapi.json").json()

        import_path = data["paths"]["/api/v1/datasets/{contract}/{line}"]
        assert "429" in import_path["put"]["responses"]

    def test_imports_over_limit_are_rejected(self, test_client):
        """Requests past the per-minute write limit get 429."""
        with patch.object(settings, "rate_limit_requests", 2):
            statuses = [test_client.put(MANT_L1, content=b"{}").status_code for _ in range(3)]

        assert statuses == [422, 422, 429]

    def test_read_endpoints_are_not_limited(self, test_client):
        with patch.object(settings, "rate_limit_requests", 1):
            test_client.put(MANT_L1, content=b"{}")
            test_client.put(MANT_L1, content=b"{}")
            responses = [test_client.get("/api/v1/datasets") for _ in range(3)]

        assert all(r.status_code == 200 for r in responses)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
