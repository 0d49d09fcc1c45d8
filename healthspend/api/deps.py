from fastapi import Header
from pydantic import BaseModel
from ..core.config import settings
from ..services import storage
from ..services.receipt_types import ExtractedFields
from ..services.storage.receipt_store_base import ReceiptStoreBase


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, as forwarded by the upstream auth layer"""
    return (x_user_id or "").strip() or settings.default_user_id


def get_receipt_store() -> ReceiptStoreBase:
    return storage.receipt_store


class SuggestedFields(BaseModel):
    date: str | None = None
    vendor: str | None = None
    amount: float | None = None
    service_type: str | None = None

    @classmethod
    def from_extracted(cls, extracted: ExtractedFields) -> "SuggestedFields":
        return cls(
            date=extracted.date,
            vendor=extracted.vendor,
            amount=float(extracted.amount) if extracted.amount is not None else None,
            service_type=extracted.service_type.value if extracted.service_type else None,
        )


class OcrSuggestion(BaseModel):
    extracted: bool
    confidence: int = 0
    suggested: SuggestedFields


class ScanResponse(BaseModel):
    text: str = ""  # Full OCR text content
    confidence: int = 0
    word_count: int = 0
    suggested: SuggestedFields


class ReceiptSummary(BaseModel):
    id: str
    date: str
    vendor: str
    service_type: str
    amount: float
    image_filename: str | None = None
    created_at: str
    updated_at: str


class ReceiptDetail(ReceiptSummary):
    image_content_type: str | None = None
    image_size_bytes: int | None = None
    ocr_text: str | None = None
    ocr_confidence: int | None = None
    ocr_processed_at: str | None = None


class UploadResponse(BaseModel):
    message: str
    receipt: ReceiptDetail | None = None
    ocr: OcrSuggestion | None = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int


class ReceiptListResponse(BaseModel):
    receipts: list[ReceiptSummary]
    pagination: Pagination
