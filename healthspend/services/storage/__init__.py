from ...core.config import settings
from .receipt_store_base import ReceiptStoreBase
from .receipts import InMemoryReceiptStore
from .receipts_sqlite import SQLiteReceiptStore


def create_receipt_store(backend: str | None = None) -> ReceiptStoreBase:
    """Build the store selected by RECEIPTS_BACKEND ("memory" or "sqlite")"""
    backend = (backend or settings.receipts_backend).lower()
    if backend == "sqlite":
        return SQLiteReceiptStore(settings.receipts_db_path)
    if backend == "memory":
        return InMemoryReceiptStore()
    raise ValueError(f"Unknown RECEIPTS_BACKEND: {backend!r} (expected 'memory' or 'sqlite')")


# Global instance (in production, use dependency injection)
receipt_store = create_receipt_store()
