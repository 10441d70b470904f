"""Admin HTTP API through FastAPI's TestClient (lifespan not started)."""
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db
from app.main import app
from app.models.material import Material
from app.services import catalog_service
from app.services.catalog_service import increment_download
from app.services.user_service import ensure_user, record_download

PHYS = "Physiological Integrity"
PSYCH = "Psychosocial Integrity"
PDF = b"%PDF-1.4\nhello nurses\n%%EOF"


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _upload(client, **fields):
    form = {
        "title": "Cardiac Review",
        "topics": "cardiac disorders, pharmacology",
        "category": PHYS,
        "price": "9.99",
        "keywords": "digoxin",
    }
    form.update(fields)
    return client.post(
        "/api/materials/upload",
        data=form,
        files={"pdf": ("cardiac.pdf", PDF, "application/pdf")},
    )


# ==============================================================================
# MATERIALS
# ==============================================================================

def test_upload_and_fetch(client):
    resp = _upload(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "PDF uploaded successfully."
    material = body["data"]
    assert material["topics"] == ["cardiac disorders", "pharmacology"]
    assert material["file_name"] == "cardiac.pdf"
    assert material["file_size"] == len(PDF)

    resp = client.get(f"/api/materials/{material['id']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Cardiac Review"


def test_upload_rejects_non_pdf(client):
    resp = client.post(
        "/api/materials/upload",
        data={"title": "T", "topics": "a", "category": PHYS, "price": "Free"},
        files={"pdf": ("notes.txt", b"plain", "text/plain")},
    )
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Only PDF files are allowed!"}


def test_upload_requires_file(client):
    resp = client.post("/api/materials/upload", data={"title": "T"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "No PDF file uploaded."


@pytest.mark.parametrize("fields,message", [
    ({"category": "Astrology"}, "Invalid category"),
    ({"price": "lots"}, 'Price must be a valid number or "Free".'),
    ({"title": ""}, "Title is required."),
])
def test_upload_validation_errors(client, fields, message):
    resp = _upload(client, **fields)
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert message in resp.json()["message"]


def test_upload_too_large(client, monkeypatch):
    monkeypatch.setattr("app.api.routes.materials.settings.MAX_UPLOAD_BYTES", 10)
    resp = _upload(client)
    assert resp.status_code == 400
    assert "too large" in resp.json()["message"]


def test_list_materials_with_filters(client):
    _upload(client)
    _upload(client, title="Grief Care", topics="grief", category=PSYCH, price="Free", keywords="")

    resp = client.get("/api/materials")
    assert resp.json()["count"] == 2

    resp = client.get("/api/materials", params={"category": PSYCH})
    assert [m["title"] for m in resp.json()["data"]] == ["Grief Care"]

    resp = client.get("/api/materials", params={"topics": "pharmacology,renal"})
    assert [m["title"] for m in resp.json()["data"]] == ["Cardiac Review"]

    resp = client.get("/api/materials", params={"search": "digoxin"})
    assert resp.json()["count"] == 1


def test_get_missing_material_is_404(client):
    resp = client.get("/api/materials/12345")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Material not found."}


def test_update_material(client):
    material_id = _upload(client).json()["data"]["id"]
    resp = client.put(f"/api/materials/{material_id}", json={"price": 19.5, "topics": "renal"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["price"] == "19.5"
    assert data["topics"] == ["renal"]

    resp = client.put(f"/api/materials/{material_id}", json={"category": "Astrology"})
    assert resp.status_code == 400


def test_download_streams_stored_bytes(client):
    material_id = _upload(client).json()["data"]["id"]
    resp = client.get(f"/api/materials/{material_id}/download")
    assert resp.status_code == 200
    assert resp.content == PDF
    assert resp.headers["content-type"] == "application/pdf"
    assert 'filename="cardiac.pdf"' in resp.headers["content-disposition"]


def test_delete_material(client):
    material_id = _upload(client).json()["data"]["id"]
    resp = client.delete(f"/api/materials/{material_id}")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert client.get(f"/api/materials/{material_id}").status_code == 404
    assert client.get(f"/api/materials/{material_id}/download").status_code == 404
    assert client.delete(f"/api/materials/{material_id}").status_code == 404


def test_counters(client):
    material_id = _upload(client, price="2.50").json()["data"]["id"]

    resp = client.patch(f"/api/materials/{material_id}/increment-download")
    assert resp.json()["data"] == {"downloads": 1}

    client.patch(f"/api/materials/{material_id}/increment-purchase")
    resp = client.patch(f"/api/materials/{material_id}/increment-purchase")
    assert resp.json()["data"] == {"purchases": 2, "revenue": 5.0}

    assert client.patch("/api/materials/999/increment-download").status_code == 404


def test_analytics_endpoints(client, db):
    material_id = _upload(client).json()["data"]["id"]
    _upload(client, title="Grief Care", topics="grief", category=PSYCH, price="Free")
    increment_download(db, material_id)

    summary = client.get("/api/materials/analytics/summary").json()["data"]
    assert summary["totalMaterials"] == 2
    assert summary["totalDownloads"] == 1

    topics = client.get("/api/materials/analytics/topic-trends").json()["data"]
    assert topics[0]["downloads"] == 1
    assert {t["topic"] for t in topics} == {"cardiac disorders", "pharmacology", "grief"}

    categories = client.get("/api/materials/analytics/category-trends").json()["data"]
    assert categories[0] == {"category": PHYS, "downloads": 1, "count": 1}

    stats = client.get("/api/materials/analytics/all-with-stats").json()
    assert stats["count"] == 2


def test_categories_and_topics(client):
    _upload(client)
    categories = client.get("/api/materials/categories/list").json()
    assert categories["count"] == 4
    assert categories["data"][0] == "Safe and Effective Care Environment"

    topics = client.get("/api/materials/topics/unique").json()
    assert topics["data"] == ["cardiac disorders", "pharmacology"]


def test_invalid_id_is_400(client):
    resp = client.get("/api/materials/not-a-number")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


# ==============================================================================
# USERS
# ==============================================================================

def test_users_endpoints(client, db):
    material_id = _upload(client, price="4").json()["data"]["id"]
    user = ensure_user(db, "424242", "hana")
    record_download(db, user, db.get(Material, material_id))

    listing = client.get("/api/users").json()
    assert listing["success"] is True
    assert listing["data"]["users"][0]["telegram"] == "@424242"
    assert listing["data"]["users"][0]["totalSpent"] == "$4.00"

    detail = client.get("/api/users/424242").json()["data"]
    assert detail["name"] == "hana"
    assert len(detail["downloadHistory"]) == 1

    summary = client.get("/api/users/stats/summary").json()["data"]
    assert summary["totalUsers"] == 1
    assert summary["totalRevenue"] == "$4.00"

    assert client.get("/api/users/nobody").status_code == 404
    assert client.get("/api/users", params={"status": "sleeping"}).status_code == 400


def test_users_csv_export(client, db):
    ensure_user(db, "31337", "ivy")
    resp = client.get("/api/users/export/csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=\"users_" in resp.headers["content-disposition"]
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith('"Name","Telegram ID"')
    assert '"ivy","31337"' in lines[1]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_unexpected_error_uses_json_envelope(db, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(catalog_service, "list_materials", broken)
    app.dependency_overrides[get_db] = lambda: db
    try:
        resp = TestClient(app, raise_server_exceptions=False).get("/api/materials")
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.headers["content-type"].startswith("application/json")
    assert resp.json() == {"success": False, "message": "Internal server error"}
