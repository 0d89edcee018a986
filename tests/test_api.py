"""HTTP tests for the import endpoints."""

import pytest
from fastapi.testclient import TestClient

from inventory_import.api.dependencies.services import get_import_service, get_queue
from inventory_import.core.config import Settings
from inventory_import.domain.job import JobState, RowError
from inventory_import.main import create_app
from inventory_import.services.file_reader import FileReader
from inventory_import.services.import_service import ImportService


@pytest.fixture
def client(queue, cache):
    app = create_app()
    service = ImportService(queue, FileReader(), cache=cache, settings=Settings())
    app.dependency_overrides[get_queue] = lambda: queue
    app.dependency_overrides[get_import_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def enqueue(client, **overrides):
    payload = {
        "import_type": "products",
        "tenant_id": 1,
        "user_id": 7,
        "source_file_ref": "uploads/productos.csv",
    }
    payload.update(overrides)
    return client.post("/api/imports/jobs", json=payload)


def test_liveness(client) -> None:
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_enqueue_then_poll(client, dispatcher) -> None:
    response = enqueue(client, options={"overwrite_existing": True, "specific": {"validarPrecios": True}})

    assert response.status_code == 202
    body = response.json()
    assert body["import_type"] == "products"
    assert body["confidence"] is None
    assert dispatcher.dispatched == [(body["job_id"], 2)]

    status = client.get(f"/api/imports/jobs/{body['job_id']}").json()
    assert status["state"] == "pending"
    assert status["progress"] == 0
    assert status["message"] == "Processed 0/? rows"


def test_enqueue_auto_reports_confidence(client, write_csv) -> None:
    path = write_csv("p.csv", ["nombre", "stock", "precioCompra", "precioVenta"], [["Pala", 1, 2, 3]])

    response = enqueue(client, import_type="auto", source_file_ref=path)

    assert response.status_code == 202
    assert response.json()["import_type"] == "products"
    assert response.json()["confidence"] == 81


def test_enqueue_auto_unrecognised_headers(client, write_csv) -> None:
    path = write_csv("x.csv", ["foo", "bar"], [["1", "2"]])

    assert enqueue(client, import_type="auto", source_file_ref=path).status_code == 422


def test_enqueue_auto_missing_file(client, tmp_path) -> None:
    response = enqueue(client, import_type="auto", source_file_ref=str(tmp_path / "none.csv"))

    assert response.status_code == 400


@pytest.mark.parametrize(
    "overrides",
    [{"import_type": "widgets"}, {"tenant_id": 0}, {"source_file_ref": ""}],
)
def test_enqueue_validation(client, overrides) -> None:
    assert enqueue(client, **overrides).status_code == 422


def test_unknown_job_is_404(client) -> None:
    assert client.get("/api/imports/jobs/import-nope").status_code == 404


def test_cancel(client) -> None:
    job_id = enqueue(client).json()["job_id"]

    first = client.post(f"/api/imports/jobs/{job_id}/cancel").json()
    second = client.post(f"/api/imports/jobs/{job_id}/cancel").json()

    assert first == {"job_id": job_id, "cancelled": True}
    assert second["cancelled"] is False
    status = client.get(f"/api/imports/jobs/{job_id}").json()
    assert status["state"] == "failed"
    assert status["message"] == "Failed: Trabajo cancelado por el usuario"


def test_tenant_listing_and_stats(client, queue) -> None:
    first = enqueue(client).json()["job_id"]
    second = enqueue(client, import_type="suppliers").json()["job_id"]
    enqueue(client, tenant_id=2)
    queue.claim(second)
    queue.set_total(second, 2)
    queue.record_chunk(second, processed=2, succeeded=1, failed_rows=1, errors=[RowError(2, "email", "x", "bad")])
    queue.complete(second)

    listed = client.get("/api/imports/tenants/1/jobs").json()
    assert [item["id"] for item in listed] == [second, first]
    assert listed[0]["message"] == "Completed with partial errors: 1 of 2 rows failed"
    assert len(client.get("/api/imports/tenants/1/jobs", params={"limit": 1, "offset": 1}).json()) == 1

    stats = client.get("/api/imports/tenants/1/stats").json()
    assert stats["total_jobs"] == 2
    assert stats["by_state"][JobState.COMPLETED.value] == 1
    assert stats["records_failed"] == 1


def test_types_and_detect(client) -> None:
    types = client.get("/api/imports/types").json()
    assert [item["import_type"] for item in types] == ["products", "suppliers", "movements"]

    detected = client.post("/api/imports/detect", json={"columns": ["proveedor", "correo", "telefono"]}).json()
    assert detected[0]["import_type"] == "suppliers"
    assert "proveedor" in detected[0]["matched_columns"]
