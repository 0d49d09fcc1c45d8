"""
Pytest configuration.

Registers the integration marker / --run-integration option and provides
fixtures that pin the OCR provider to its mock and give each test a fresh
in-memory receipt store.
"""

import pytest

from healthspend.core.config import settings
from healthspend.services import storage
from healthspend.services.storage.receipts import InMemoryReceiptStore


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against real Azure resources"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring real Azure resources"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def mock_ocr():
    """Disable Azure DI so the provider returns its mock receipt text"""
    original_endpoint = settings.az_di_endpoint
    original_key = settings.az_di_api_key
    settings.az_di_endpoint = None
    settings.az_di_api_key = None

    try:
        yield
    finally:
        settings.az_di_endpoint = original_endpoint
        settings.az_di_api_key = original_key


@pytest.fixture
def receipt_store():
    """Swap the global receipt store for an empty in-memory one"""
    original = storage.receipt_store
    storage.receipt_store = InMemoryReceiptStore()

    try:
        yield storage.receipt_store
    finally:
        storage.receipt_store = original
