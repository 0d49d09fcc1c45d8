"""
Integration tests using real receipt photos with Azure Document Intelligence.

These tests require Azure Document Intelligence to be configured:
- Set AZ_DI_ENDPOINT in .env
- Set AZ_DI_API_KEY in .env

Sample images live in samples/receipts/. Missing files are skipped.
"""

import pytest
from pathlib import Path
from fastapi.testclient import TestClient
from healthspend.api.main import app
from healthspend.core.config import settings

client = TestClient(app)

# Check if Azure DI is configured
AZURE_DI_CONFIGURED = bool(settings.az_di_endpoint and settings.az_di_api_key)
skip_if_no_azure_di = pytest.mark.skipif(
    not AZURE_DI_CONFIGURED,
    reason="Azure Document Intelligence not configured (set AZ_DI_ENDPOINT and AZ_DI_API_KEY)",
)

SAMPLES_DIR = Path(__file__).parent.parent / "samples" / "receipts"


@skip_if_no_azure_di
@pytest.mark.integration
@pytest.mark.parametrize(
    "receipt_file",
    [
        "pharmacy-receipt.jpg",
        "dental-invoice.jpg",
        "lab-results-bill.png",
    ],
)
def test_scan_real_receipt(receipt_file):
    """Real photos produce text, a confidence score and bounded suggestions"""
    image_path = SAMPLES_DIR / receipt_file

    if not image_path.exists():
        pytest.skip(f"Sample file not found: {image_path}")

    content_type = "image/png" if image_path.suffix == ".png" else "image/jpeg"
    with open(image_path, "rb") as f:
        files = {"image": (receipt_file, f, content_type)}
        response = client.post("/receipts/scan", files=files)

    assert response.status_code == 200

    body = response.json()
    assert body["text"]
    assert 0 < body["confidence"] <= 100

    amount = body["suggested"]["amount"]
    if amount is not None:
        assert 0 < amount < 100000
