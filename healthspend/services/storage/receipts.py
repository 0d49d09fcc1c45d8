"""
In-memory receipt storage (for demo and test purposes).
Use the SQLite store for anything that must survive a restart.
"""
from datetime import datetime, UTC
from typing import Dict, Optional
import uuid
from .receipt_store_base import EDITABLE_FIELDS, ReceiptStoreBase


class InMemoryReceiptStore(ReceiptStoreBase):
    def __init__(self):
        self._receipts: Dict[str, dict] = {}

    def _visible(self, user_id: str, receipt_id: str) -> Optional[dict]:
        receipt = self._receipts.get(receipt_id)
        if receipt is None or receipt["user_id"] != user_id or receipt["deleted_at"] is not None:
            return None
        return receipt

    def create_receipt(self, user_id: str, data: dict) -> dict:
        """Store a new receipt and return a copy of the record"""
        receipt_id = str(uuid.uuid4())
        now = datetime.now(UTC).isoformat()
        self._receipts[receipt_id] = {
            "id": receipt_id,
            "user_id": user_id,
            "date": data["date"],
            "vendor": data["vendor"],
            "service_type": data["service_type"],
            "amount": data["amount"],
            "image_filename": data.get("image_filename"),
            "image_content_type": data.get("image_content_type"),
            "image_size_bytes": data.get("image_size_bytes"),
            "ocr_text": data.get("ocr_text"),
            "ocr_confidence": data.get("ocr_confidence"),
            "ocr_processed_at": data.get("ocr_processed_at"),
            "created_at": now,
            "updated_at": now,
            "deleted_at": None
        }
        return dict(self._receipts[receipt_id])

    def get_receipt(self, user_id: str, receipt_id: str) -> Optional[dict]:
        receipt = self._visible(user_id, receipt_id)
        return dict(receipt) if receipt else None

    def update_receipt(self, user_id: str, receipt_id: str, fields: dict) -> Optional[dict]:
        receipt = self._visible(user_id, receipt_id)
        if receipt is None:
            return None

        for key in EDITABLE_FIELDS:
            receipt[key] = fields[key]
        receipt["updated_at"] = datetime.now(UTC).isoformat()
        return dict(receipt)

    def delete_receipt(self, user_id: str, receipt_id: str) -> bool:
        receipt = self._visible(user_id, receipt_id)
        if receipt is None:
            return False

        receipt["deleted_at"] = datetime.now(UTC).isoformat()
        return True

    def list_receipts(self, user_id: str, year: Optional[int] = None, month: Optional[int] = None,
                      service_type: Optional[str] = None, limit: int = 50, offset: int = 0) -> tuple[list, int]:
        matching = [
            r for r in self._receipts.values()
            if r["user_id"] == user_id and r["deleted_at"] is None
            and (year is None or int(r["date"][:4]) == year)
            and (month is None or int(r["date"][5:7]) == month)
            and (service_type is None or r["service_type"] == service_type)
        ]
        matching.sort(key=lambda r: (r["date"], r["created_at"]), reverse=True)
        return [dict(r) for r in matching[offset:offset + limit]], len(matching)

    def total_for_year(self, user_id: str, year: int) -> float:
        receipts, _ = self.list_receipts(user_id, year=year, limit=len(self._receipts))
        return float(round(sum(r["amount"] for r in receipts), 2))
