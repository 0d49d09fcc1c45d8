"""
Abstract base class for receipt storage implementations.

Defines the interface every receipt store implements so the API can be
wired to an in-memory store (tests, demos) or SQLite without changes.
"""

from abc import ABC, abstractmethod
from typing import Optional

# Columns a caller may change after a receipt is stored
EDITABLE_FIELDS = ("date", "vendor", "service_type", "amount")


class ReceiptStoreBase(ABC):
    """
    Abstract base class for receipt storage.

    Receipts are always scoped to the user that owns them: a receipt
    belonging to another user behaves exactly like a missing one.
    Deleting is a soft delete; deleted receipts disappear from every read.
    """

    @abstractmethod
    def create_receipt(self, user_id: str, data: dict) -> dict:
        """
        Store a new receipt and return the full record.

        Args:
            user_id: Owner of the receipt
            data: Validated fields (date, vendor, service_type, amount) plus
                optional image and OCR metadata (image_filename,
                image_content_type, image_size_bytes, ocr_text,
                ocr_confidence, ocr_processed_at)

        Returns:
            Receipt dictionary including id, created_at and updated_at
        """
        pass

    @abstractmethod
    def get_receipt(self, user_id: str, receipt_id: str) -> Optional[dict]:
        """
        Get a receipt by ID.

        Returns:
            Receipt dictionary, or None if missing, deleted or not owned by user_id
        """
        pass

    @abstractmethod
    def update_receipt(self, user_id: str, receipt_id: str, fields: dict) -> Optional[dict]:
        """
        Replace the editable fields of a receipt.

        Returns:
            Updated receipt dictionary, or None if not found
        """
        pass

    @abstractmethod
    def delete_receipt(self, user_id: str, receipt_id: str) -> bool:
        """
        Soft-delete a receipt.

        Returns:
            True if a receipt was deleted, False if not found
        """
        pass

    @abstractmethod
    def list_receipts(
        self,
        user_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
        service_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list, int]:
        """
        List a user's receipts, newest transaction date first.

        Returns:
            (page of receipt dictionaries, total number matching the filters)
        """
        pass

    @abstractmethod
    def total_for_year(self, user_id: str, year: int) -> float:
        """
        Sum of receipt amounts dated in the given year.

        Returns:
            Total amount, 0.0 when there are no receipts
        """
        pass
