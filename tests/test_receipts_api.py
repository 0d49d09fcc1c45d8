from fastapi.testclient import TestClient
from healthspend.api.main import app
import asyncio
import io
import pytest

client = TestClient(app)

JPEG_BYTES = b"\xff\xd8\xff\xe0 fake receipt photo"

MOCK_SUGGESTION = {
    "date": "2025-03-14",
    "vendor": "CVS Pharmacy",
    "amount": 19.98,
    "service_type": "Prescription",
}


@pytest.fixture(autouse=True)
def _mock_backends(mock_ocr, receipt_store):
    """Every API test runs against the mock OCR provider and an empty store"""
    yield


def _image(content=JPEG_BYTES, content_type="image/jpeg"):
    return {"image": ("receipt.jpg", io.BytesIO(content), content_type)}


def _upload(data=None, headers=None, **image_kwargs):
    return client.post("/receipts/upload", files=_image(**image_kwargs), data=data or {}, headers=headers or {})


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["ocr_provider"] == "mock"


def test_upload_without_fields_returns_suggestions_only(receipt_store):
    r = _upload()
    assert r.status_code == 200

    body = r.json()
    assert body["receipt"] is None
    assert body["ocr"]["extracted"] is True
    assert body["ocr"]["confidence"] == 92
    assert body["ocr"]["suggested"] == MOCK_SUGGESTION

    # Nothing was stored
    assert receipt_store.list_receipts("local-user") == ([], 0)


def test_upload_with_manual_fields_stores_receipt():
    data = {
        "date": "2025-02-10",
        "vendor": "Dr. Patel Family Medicine",
        "service_type": "Doctor Visit",
        "amount": "150.00",
    }
    r = _upload(data=data)
    assert r.status_code == 201

    receipt = r.json()["receipt"]
    assert receipt["date"] == "2025-02-10"
    assert receipt["vendor"] == "Dr. Patel Family Medicine"
    assert receipt["service_type"] == "Doctor Visit"
    assert receipt["amount"] == 150.0
    assert receipt["image_filename"] == "receipt.jpg"
    assert receipt["image_size_bytes"] == len(JPEG_BYTES)
    assert receipt["ocr_confidence"] == 92
    assert receipt["ocr_text"].startswith("CVS Pharmacy")

    listing = client.get("/receipts").json()
    assert listing["pagination"]["total"] == 1
    assert listing["receipts"][0]["id"] == receipt["id"]


def test_upload_fills_missing_fields_from_ocr():
    r = _upload(data={"amount": "25.00"})
    assert r.status_code == 201

    receipt = r.json()["receipt"]
    assert receipt["vendor"] == "CVS Pharmacy"
    assert receipt["date"] == "2025-03-14"
    assert receipt["service_type"] == "Prescription"
    assert receipt["amount"] == 25.0


def test_upload_of_blank_image_uses_defaults():
    r = _upload(data={"vendor": "Acme Lab", "amount": "10"}, content=b"")
    assert r.status_code == 201

    receipt = r.json()["receipt"]
    assert receipt["service_type"] == "Other"
    assert receipt["ocr_text"] is None
    assert receipt["ocr_confidence"] is None
    assert r.json()["ocr"]["extracted"] is False


def test_upload_validation_errors_are_listed():
    r = _upload(data={"vendor": "Acme", "amount": "-3"})
    assert r.status_code == 400

    body = r.json()
    assert body["error"] == "Please check the form fields"
    assert body["details"] == ["Amount is required and must be a positive number."]


def test_upload_requires_an_image():
    r = client.post("/receipts/upload", data={"vendor": "Acme", "amount": "5"})
    assert r.status_code == 400
    assert r.json()["detail"] == "No image file provided"


def test_upload_rejects_non_images():
    r = _upload(content=b"%PDF-1.4", content_type="application/pdf")
    assert r.status_code == 400
    assert r.json()["detail"] == "Only image files are allowed"


def test_upload_rejects_oversized_images():
    from healthspend.core.config import settings

    original = settings.max_upload_bytes
    settings.max_upload_bytes = 10

    try:
        r = _upload()
        assert r.status_code == 413
    finally:
        settings.max_upload_bytes = original


def test_scan_multipart():
    r = client.post("/receipts/scan", files=_image())
    assert r.status_code == 200

    body = r.json()
    assert body["confidence"] == 92
    assert body["word_count"] > 0
    assert body["suggested"] == MOCK_SUGGESTION


def test_scan_raw_body():
    r = client.post("/receipts/scan", content=JPEG_BYTES, headers={"Content-Type": "image/jpeg"})
    assert r.status_code == 200
    assert r.json()["suggested"]["vendor"] == "CVS Pharmacy"


def test_scan_empty_body_returns_422():
    r = client.post("/receipts/scan")
    assert r.status_code == 422


def test_receipts_are_private_to_their_owner():
    r = _upload(data={"amount": "30.00"}, headers={"X-User-Id": "alice"})
    receipt_id = r.json()["receipt"]["id"]

    assert client.get(f"/receipts/{receipt_id}", headers={"X-User-Id": "alice"}).status_code == 200
    assert client.get(f"/receipts/{receipt_id}", headers={"X-User-Id": "bob"}).status_code == 404
    assert client.get("/receipts", headers={"X-User-Id": "bob"}).json()["pagination"]["total"] == 0


def test_update_receipt():
    receipt_id = _upload(data={"amount": "30.00"}).json()["receipt"]["id"]

    r = client.put(f"/receipts/{receipt_id}", json={
        "date": "2025-03-15",
        "vendor": "CVS",
        "service_type": "Prescription",
        "amount": 31.5,
    })
    assert r.status_code == 200
    assert r.json()["vendor"] == "CVS"
    assert r.json()["amount"] == 31.5

    assert client.get(f"/receipts/{receipt_id}").json()["date"] == "2025-03-15"


def test_update_rejects_invalid_fields():
    receipt_id = _upload(data={"amount": "30.00"}).json()["receipt"]["id"]

    r = client.put(f"/receipts/{receipt_id}", json={"date": "2025-03-15", "vendor": "", "amount": 5})
    assert r.status_code == 400
    assert any("Vendor" in d for d in r.json()["details"])


def test_update_missing_receipt_returns_404():
    r = client.put("/receipts/does-not-exist", json={"date": "2025-03-15", "vendor": "CVS", "amount": 5})
    assert r.status_code == 404


def test_delete_receipt():
    receipt_id = _upload(data={"amount": "30.00"}).json()["receipt"]["id"]

    r = client.delete(f"/receipts/{receipt_id}")
    assert r.status_code == 200

    assert client.get(f"/receipts/{receipt_id}").status_code == 404
    assert client.delete(f"/receipts/{receipt_id}").status_code == 404


def test_list_filters(receipt_store):
    for day, service_type in (("2024-11-02", "Dental"), ("2024-12-05", "Vision"), ("2023-05-05", "Dental")):
        receipt_store.create_receipt("local-user", {
            "date": day, "vendor": "Acme", "service_type": service_type, "amount": 10.0
        })

    body = client.get("/receipts", params={"year": 2024, "service_type": "Dental"}).json()
    assert body["pagination"]["total"] == 1
    assert body["receipts"][0]["date"] == "2024-11-02"

    body = client.get("/receipts", params={"limit": 1, "offset": 1}).json()
    assert body["pagination"] == {"total": 3, "limit": 1, "offset": 1}
    assert body["receipts"][0]["date"] == "2024-11-02"


def test_list_rejects_unknown_service_type():
    r = client.get("/receipts", params={"service_type": "Spa"})
    assert r.status_code == 422


def test_stats_summary(receipt_store):
    for day, amount in (("2024-02-01", 120.0), ("2024-08-01", 240.0), ("2023-05-05", 180.0)):
        receipt_store.create_receipt("local-user", {
            "date": day, "vendor": "Acme", "service_type": "Other", "amount": amount
        })

    r = client.get("/receipts/stats/summary", params={"year": 2024})
    assert r.status_code == 200

    body = r.json()
    assert body["year"] == 2024
    assert body["ytd_expenses"] == 360.0
    assert body["monthly_average"] == 30.0
    assert body["yoy_change"] == 100.0
    assert body["tax_savings"] == 126.0


@pytest.mark.parametrize("path", ["/receipts/scan", "/receipts/upload"])
def test_ocr_runs_outside_the_event_loop(path, monkeypatch):
    from healthspend.api.routers import receipts as receipts_router

    loops_seen = []
    real_ocr = receipts_router.run_receipt_ocr

    def recording_ocr(content):
        try:
            loops_seen.append(asyncio.get_running_loop())
        except RuntimeError:
            loops_seen.append(None)
        return real_ocr(content)

    monkeypatch.setattr(receipts_router, "run_receipt_ocr", recording_ocr)

    r = client.post(path, files=_image())
    assert r.status_code == 200
    assert loops_seen == [None]
