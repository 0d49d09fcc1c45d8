from datetime import datetime, UTC
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from ..deps import (
    OcrSuggestion,
    Pagination,
    ReceiptDetail,
    ReceiptListResponse,
    ReceiptSummary,
    ScanResponse,
    SuggestedFields,
    UploadResponse,
    get_current_user_id,
    get_receipt_store,
)
from ...core.config import settings
from ...models.receipt import ReceiptUpdateRequest
from ...services.receipt_extractor import extract_receipt_fields
from ...services.receipt_ingestion import ManualReceiptFields, prepare_receipt, run_receipt_ocr, validate_receipt_fields
from ...services.receipt_types import ServiceType
from ...services.spending_stats import SpendingSummary, summarize_spending
from ...services.storage.receipt_store_base import ReceiptStoreBase

router = APIRouter(prefix="/receipts", tags=["receipts"])


def _check_size(content: bytes) -> bytes:
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Image too large (max {settings.max_upload_bytes} bytes)"
        )
    return content


async def _read_image(image: UploadFile | None) -> bytes:
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")
    return _check_size(await image.read())


@router.post("/scan", response_model=ScanResponse)
async def scan(request: Request, image: UploadFile = File(None)):
    """
    Run OCR on a receipt image and return suggested fields. Nothing is stored.

    Accepts either:
    - multipart/form-data with an ``image`` part
    - a raw image body (e.g. Content-Type: image/jpeg)
    """
    if image:
        content = await _read_image(image)
    else:
        content = _check_size(await request.body())
        if not content:
            raise HTTPException(status_code=422, detail="No image provided (either multipart or raw body)")

    # provider call blocks on the Azure poller
    ocr = await run_in_threadpool(run_receipt_ocr, content)
    extracted = extract_receipt_fields(ocr.full_text, ocr.words, max_chars=settings.max_ocr_text_chars)

    return ScanResponse(
        text=ocr.full_text,
        confidence=extracted.confidence,
        word_count=len(ocr.words),
        suggested=SuggestedFields.from_extracted(extracted),
    )


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_receipt(
    response: Response,
    image: UploadFile = File(None),
    date: str | None = Form(None),
    vendor: str | None = Form(None),
    service_type: str | None = Form(None),
    amount: str | None = Form(None),
    user_id: str = Depends(get_current_user_id),
    store: ReceiptStoreBase = Depends(get_receipt_store),
):
    """
    Upload a receipt image.

    With no date, vendor or amount in the form this is an OCR-only request:
    the suggested fields come back and nothing is stored. Otherwise manual
    values are merged over the OCR suggestions, validated and saved.
    """
    content = await _read_image(image)

    ocr = await run_in_threadpool(run_receipt_ocr, content)
    extracted = extract_receipt_fields(ocr.full_text, ocr.words, max_chars=settings.max_ocr_text_chars)
    suggestion = OcrSuggestion(
        extracted=bool(ocr.full_text),
        confidence=extracted.confidence,
        suggested=SuggestedFields.from_extracted(extracted),
    )

    manual = ManualReceiptFields(date=date, vendor=vendor, service_type=service_type, amount=amount)
    if manual.is_empty():
        response.status_code = 200
        return UploadResponse(
            message="OCR processing complete. Review the suggested fields, then save the receipt.",
            ocr=suggestion,
        )

    fields = prepare_receipt(manual, extracted)
    receipt = store.create_receipt(user_id, {
        **fields,
        "image_filename": image.filename,
        "image_content_type": image.content_type,
        "image_size_bytes": len(content),
        "ocr_text": ocr.full_text or None,
        "ocr_confidence": ocr.overall_confidence if ocr.full_text else None,
        "ocr_processed_at": datetime.now(UTC).isoformat() if ocr.full_text else None,
    })

    logger.info(
        "Receipt stored",
        receipt_id=receipt["id"],
        user_id=user_id,
        amount=receipt["amount"],
        service_type=receipt["service_type"],
        ocr_confidence=receipt["ocr_confidence"]
    )

    return UploadResponse(
        message="Receipt uploaded successfully",
        receipt=ReceiptDetail.model_validate(receipt),
        ocr=suggestion,
    )


@router.get("", response_model=ReceiptListResponse)
async def list_receipts(
    year: int | None = Query(None, ge=1900, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    service_type: ServiceType | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    store: ReceiptStoreBase = Depends(get_receipt_store),
):
    """List the caller's receipts, newest first"""
    receipts, total = store.list_receipts(
        user_id,
        year=year,
        month=month,
        service_type=service_type.value if service_type else None,
        limit=limit,
        offset=offset,
    )
    return ReceiptListResponse(
        receipts=[ReceiptSummary.model_validate(r) for r in receipts],
        pagination=Pagination(total=total, limit=limit, offset=offset),
    )


@router.get("/stats/summary", response_model=SpendingSummary)
async def spending_summary(
    year: int | None = Query(None, ge=1900, le=9999),
    user_id: str = Depends(get_current_user_id),
    store: ReceiptStoreBase = Depends(get_receipt_store),
):
    """Year-to-date spending, monthly average, year-over-year change and tax estimate"""
    return summarize_spending(store, user_id, year=year)


@router.get("/{receipt_id}", response_model=ReceiptDetail)
async def get_receipt(
    receipt_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ReceiptStoreBase = Depends(get_receipt_store),
):
    receipt = store.get_receipt(user_id, receipt_id)
    if not receipt:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return ReceiptDetail.model_validate(receipt)


@router.put("/{receipt_id}", response_model=ReceiptDetail)
async def update_receipt(
    receipt_id: str,
    req: ReceiptUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store: ReceiptStoreBase = Depends(get_receipt_store),
):
    if not store.get_receipt(user_id, receipt_id):
        raise HTTPException(status_code=404, detail="Receipt not found")

    fields = validate_receipt_fields(req.model_dump())
    receipt = store.update_receipt(user_id, receipt_id, fields)
    if not receipt:
        raise HTTPException(status_code=404, detail="Receipt not found")

    logger.info("Receipt updated", receipt_id=receipt_id, user_id=user_id)
    return ReceiptDetail.model_validate(receipt)


@router.delete("/{receipt_id}")
async def delete_receipt(
    receipt_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ReceiptStoreBase = Depends(get_receipt_store),
):
    if not store.delete_receipt(user_id, receipt_id):
        raise HTTPException(status_code=404, detail="Receipt not found")

    logger.info("Receipt deleted", receipt_id=receipt_id, user_id=user_id)
    return {"message": "Receipt deleted successfully"}
