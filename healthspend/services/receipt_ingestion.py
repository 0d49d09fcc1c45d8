"""
Receipt ingestion: OCR, field suggestions, manual overrides and validation.

The extractor only suggests values. What ends up on a stored receipt is
decided here:

1. Manual input from the user always wins over OCR suggestions
2. Missing values fall back to OCR, then to defaults (today, "Other")
3. The merged record is validated as a whole, reporting every problem
"""

from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from loguru import logger
from pydantic import BaseModel

from .ocr_provider import OcrProviderError, recognize_receipt
from .receipt_types import ExtractedFields, OcrResult, ServiceType
from ..core.config import settings

VENDOR_MAX_LENGTH = 255
AMOUNT_MAX = Decimal("100000")

SERVICE_TYPE_VALUES = [s.value for s in ServiceType]


class ReceiptValidationError(Exception):
    """Merged receipt fields failed validation; ``details`` lists every problem"""

    def __init__(self, details: list[str]):
        super().__init__("; ".join(details))
        self.details = details


class ManualReceiptFields(BaseModel):
    """Fields typed in by the user (form values arrive as strings)"""
    date: str | None = None
    vendor: str | None = None
    service_type: str | None = None
    amount: str | float | None = None

    def is_empty(self) -> bool:
        """True when the upload only asks for OCR suggestions"""
        return not (_clean(self.date) or _clean(self.vendor) or _clean(self.amount))


def _clean(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def run_receipt_ocr(image_bytes: bytes) -> OcrResult:
    """Recognise text on an image, substituting an empty result on provider failure."""
    try:
        result = recognize_receipt(image_bytes)
    except OcrProviderError as e:
        logger.warning(f"OCR unavailable, continuing without suggestions: {e}")
        return OcrResult.empty()

    if result.full_text and result.overall_confidence < settings.low_confidence_threshold:
        logger.warning(
            "Low OCR confidence",
            confidence=result.overall_confidence,
            threshold=settings.low_confidence_threshold
        )

    return result


def merge_receipt_fields(
    manual: ManualReceiptFields,
    extracted: Optional[ExtractedFields],
    today: Optional[date] = None,
) -> dict:
    """Combine manual input with OCR suggestions; manual input takes precedence."""
    today = today or date.today()
    extracted = extracted or ExtractedFields()

    merged = {
        "date": _clean(manual.date) or extracted.date or today.isoformat(),
        "vendor": _clean(manual.vendor) or _clean(extracted.vendor),
        "service_type": _clean(manual.service_type)
        or (extracted.service_type.value if extracted.service_type else ServiceType.OTHER.value),
        "amount": _clean(manual.amount) or (str(extracted.amount) if extracted.amount is not None else ""),
    }

    logger.debug("Merged receipt fields", **merged)
    return merged


def validate_receipt_fields(fields: dict, today: Optional[date] = None) -> dict:
    """
    Validate and normalise receipt fields.

    Args:
        fields: Mapping with date, vendor, service_type and amount
        today: Reference date for the "not in the future" rule

    Returns:
        Normalised fields: ISO date, trimmed vendor, service type value,
        amount as a float with 2 decimals

    Raises:
        ReceiptValidationError: listing every failed rule
    """
    today = today or date.today()
    errors = []

    # Date: ISO calendar date, not in the future
    receipt_date = None
    try:
        receipt_date = date.fromisoformat(_clean(fields.get("date")))
    except ValueError:
        errors.append("Date is required and must be in YYYY-MM-DD format.")
    if receipt_date is not None and receipt_date > today:
        errors.append("Date cannot be in the future.")

    # Vendor: required, bounded length
    vendor = _clean(fields.get("vendor"))
    if not vendor:
        errors.append("Vendor name is required. Please enter the store or business name.")
    elif len(vendor) > VENDOR_MAX_LENGTH:
        errors.append(f"Vendor name is too long (max {VENDOR_MAX_LENGTH} characters).")

    # Service type: fixed enumeration
    service_type = _clean(fields.get("service_type")) or ServiceType.OTHER.value
    if service_type not in SERVICE_TYPE_VALUES:
        errors.append(f"Service type must be one of: {', '.join(SERVICE_TYPE_VALUES)}.")

    # Amount: positive, capped, cents precision
    amount = None
    try:
        amount = Decimal(_clean(fields.get("amount")).replace("$", "").replace(",", ""))
        if not amount.is_finite():
            amount = None
    except InvalidOperation:
        amount = None
    if amount is None or amount <= 0:
        errors.append("Amount is required and must be a positive number.")
    elif amount > AMOUNT_MAX:
        errors.append("Amount cannot exceed $100,000.")

    if errors:
        logger.info("Receipt validation failed", errors=errors)
        raise ReceiptValidationError(errors)

    return {
        "date": receipt_date.isoformat(),
        "vendor": vendor,
        "service_type": service_type,
        "amount": float(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
    }


def prepare_receipt(
    manual: ManualReceiptFields,
    extracted: Optional[ExtractedFields],
    today: Optional[date] = None,
) -> dict:
    """Merge then validate; the result is ready to be stored."""
    return validate_receipt_fields(merge_receipt_fields(manual, extracted, today), today)
