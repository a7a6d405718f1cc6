"""
Tests for the REST API.
"""

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from po_lifecycle import __version__
from po_lifecycle.api import create_app
from po_lifecycle.main import build_container


@pytest.fixture
def client(test_config, database_path):
    container = build_container(test_config, database_path=database_path)
    with TestClient(create_app(container)) as client:
        yield client


@pytest.fixture
def loaded_client(client, three_pos):
    for po in three_pos:
        assert client.post("/pos", json=po).status_code == 201
    return client


class TestHealth:
    """Test service endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == __version__
        assert body["pos"] == 0
        assert body["cacheSweeperRunning"] is True

    def test_config_hides_credentials(self, client):
        body = client.get("/config").json()

        assert body["mockMode"] is True
        assert body["initialStatus"] == "UPLOADED"
        assert not any("key" in name.lower() for name in body)


class TestPOEndpoints:
    """Test PO CRUD endpoints."""

    def test_create_and_get(self, client, sample_po):
        created = client.post("/pos", json=sample_po)
        assert created.status_code == 201

        response = client.get("/pos/1000001")
        assert response.status_code == 200
        assert response.json()["header"]["status"] == "UPLOADED"

    def test_create_existing(self, client, sample_po):
        client.post("/pos", json=sample_po)
        response = client.post("/pos", json=sample_po)

        assert response.status_code == 200
        assert response.json()["isExisting"] is True

    def test_create_invalid(self, client, sample_po):
        sample_po["weights"] = {"grossWeight": 50, "netWeight": 60}
        response = client.post("/pos", json=sample_po)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"][0]["message"] == "Gross weight must be greater than net weight"

    def test_get_missing(self, client):
        response = client.get("/pos/9999999")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_list_with_filters(self, loaded_client):
        body = loaded_client.get("/pos", params={"location": "Houston DC"}).json()
        assert body["count"] == 2

        body = loaded_client.get("/pos", params={"limit": 1}).json()
        assert body["count"] == 1

    def test_search(self, loaded_client):
        body = loaded_client.get("/pos/search", params={"query": "Sam"}).json()

        assert body["metadata"]["total"] == 1
        assert body["data"][0]["header"]["poNumber"] == "1000002"

    def test_buyers_and_locations(self, loaded_client):
        assert loaded_client.get("/pos/buyers").json()["data"] == ["Jane Smith", "Sam Lee"]
        assert loaded_client.get("/pos/locations").json()["data"] == ["Dallas DC", "Houston DC"]

    def test_update(self, loaded_client):
        po = loaded_client.get("/pos/1000001").json()
        response = loaded_client.put("/pos/1000001", json={"header": po["header"], "notes": "Updated"})

        assert response.status_code == 200
        assert response.json()["revision"] == 2

    def test_delete(self, loaded_client):
        assert loaded_client.delete("/pos/1000001").json()["success"] is True
        assert loaded_client.delete("/pos/1000001").status_code == 404

    def test_distributions(self, loaded_client):
        board = loaded_client.get("/pos/distribution/status").json()["data"]
        assert board == [{"status": "UPLOADED", "count": 3, "pos": ["1000001", "1000002", "1000003"]}]

        locations = loaded_client.get("/pos/distribution/locations").json()["data"]
        assert locations[0] == {"location": "Dallas DC", "count": 1, "total": 300.0}

    def test_bulk_status_change(self, loaded_client):
        response = loaded_client.post(
            "/pos/bulk-operations",
            json={"poNumbers": ["1000001", "1000002", "9999999"], "status": "CONFIRMED", "user": "jsmith"},
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["succeeded"], body["failed"]) == (2, 1)
        assert loaded_client.get("/pos/1000002").json()["header"]["status"] == "CONFIRMED"

    def test_bulk_unknown_operation(self, loaded_client):
        response = loaded_client.post(
            "/pos/bulk-operations",
            json={"poNumbers": ["1000001"], "operation": "archive", "status": "CONFIRMED"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid operation: archive"


class TestUploadEndpoint:
    """Test PDF upload."""

    def test_upload_pdf(self, client):
        with patch("po_lifecycle.extraction.processor.extract_text_from_pdf", return_value="PURCHASE ORDER 10000001 mock text"):
            response = client.post("/pos/upload", files={"file": ("po.pdf", b"%PDF-1.4 fake", "application/pdf")})

        assert response.status_code == 201
        assert response.json()["header"]["poNumber"] == "10000001"

    def test_rejects_non_pdf(self, client):
        response = client.post("/pos/upload", files={"file": ("po.txt", b"text", "text/plain")})

        assert response.status_code == 400
        assert response.json()["message"] == "Only PDF files are accepted"

    def test_unreadable_pdf(self, client):
        response = client.post("/pos/upload", files={"file": ("po.pdf", b"not really a pdf", "application/pdf")})

        assert response.status_code == 422
        assert response.json()["error"] == "PROCESSING_ERROR"

    def test_rejects_oversized_upload(self, client, test_config, monkeypatch):
        monkeypatch.setattr(test_config, "MAX_UPLOAD_BYTES", 16)

        response = client.post("/pos/upload", files={"file": ("po.pdf", b"%PDF-1.4 " + b"x" * 64, "application/pdf")})

        assert response.status_code == 400
        assert response.json()["message"] == "File too large"


class TestStatusEndpoints:
    """Test status workflow endpoints."""

    def test_list_statuses(self, client):
        names = [status["name"] for status in client.get("/statuses").json()["data"]]
        assert names == ["UPLOADED", "CONFIRMED", "SHIPPED", "INVOICED", "DELIVERED", "CANCELLED"]

    def test_initial_status(self, client):
        assert client.get("/statuses/initial").json()["name"] == "UPLOADED"

    def test_get_status(self, client):
        body = client.get("/statuses/SHIPPED").json()

        assert body["allowed_transitions"] == ["INVOICED", "CANCELLED"]
        assert client.get("/statuses/SHIPPING").status_code == 404

    def test_transitions_and_requirements(self, client):
        assert client.get("/statuses/UPLOADED/transitions").json()["transitions"] == ["CONFIRMED", "CANCELLED"]
        assert client.get("/statuses/UNKNOWN/transitions").json()["transitions"] == []

        requirements = client.get("/statuses/INVOICED/requirements").json()["requirements"]
        assert requirements["invoiceDetails"]["level"] == "MANDATORY"

    def test_validate_transition(self, client, sample_po):
        sample_po["validationErrors"] = ["Price mismatch"]
        response = client.post(
            "/statuses/validate-transition",
            json={"current": "UPLOADED", "next": "CONFIRMED", "data": sample_po},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is False
        assert body["errors"][0]["message"] == "Requirement not met: dataVerified"

    def test_validate_terminal_transition(self, client):
        body = client.post("/statuses/validate-transition", json={"current": "DELIVERED", "next": "CONFIRMED"}).json()

        assert body["errors"][0]["message"] == "Invalid status transition: DELIVERED -> CONFIRMED"
        assert body["context"]["valid_transitions"] == []

    def test_change_status(self, loaded_client):
        response = loaded_client.post("/pos/1000001/status", json={"status": "CONFIRMED", "user": "jsmith"})

        assert response.status_code == 200
        assert response.json()["header"]["status"] == "CONFIRMED"

    def test_refused_status_change(self, loaded_client):
        response = loaded_client.post("/pos/1000001/status", json={"status": "DELIVERED"})

        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_TRANSITION"


class TestMetricsEndpoints:
    """Test metrics endpoints."""

    def test_metrics(self, loaded_client):
        body = loaded_client.get("/metrics").json()

        assert body["financial"]["sales"]["total"] == 600
        assert body["financial"]["sales"]["average"] == 200
        assert body["product"] == body["financial"]["products"]

    def test_metrics_date_range(self, loaded_client):
        body = loaded_client.get("/metrics", params={"startDate": "2026-01-15", "endDate": "2026-02-28"}).json()
        assert body["financial"]["sales"]["total"] == 500

    def test_metrics_invalid_range(self, loaded_client):
        response = loaded_client.get("/metrics", params={"startDate": "2026-02-28", "endDate": "2026-01-15"})
        assert response.status_code == 400

    def test_metric_category(self, loaded_client):
        body = loaded_client.get("/metrics/calendar").json()

        assert body["calendar"]["delivery"]["total"] == 3
        assert loaded_client.get("/metrics/weather").status_code == 404

    def test_detailed_metrics(self, loaded_client):
        body = loaded_client.get("/metrics/detailed", params={"period": "30d", "endDate": "2026-01-31"}).json()

        assert body["data"]["financial"]["sales"]["total"] == 300
        assert body["metadata"]["count"] == 2
        assert body["metadata"]["timeRange"]["startDate"] == "2026-01-01T00:00:00"

    def test_custom_metrics(self, loaded_client):
        response = loaded_client.post(
            "/metrics",
            json={"startDate": "2026-01-15", "endDate": "2026-02-28", "categories": ["financial"]},
        )

        assert response.status_code == 200
        body = response.json()
        assert list(body["data"]) == ["financial"]
        assert body["data"]["financial"]["sales"]["total"] == 500

    def test_custom_metrics_unknown_category(self, loaded_client):
        response = loaded_client.post("/metrics", json={"categories": ["weather"]})

        assert response.status_code == 400
        assert response.json()["details"][0]["unknown"] == ["weather"]

    def test_record_and_read_events(self, client):
        response = client.post("/metrics/events/upload", json={"size": 10})
        assert response.status_code == 201
        assert response.json()["size"] == 10

        body = client.get("/metrics/events/upload").json()
        assert body["count"] == 1
