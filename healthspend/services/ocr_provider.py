from loguru import logger
from azure.ai.documentintelligence import DocumentIntelligenceClient
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError, ClientAuthenticationError
from .receipt_types import OcrResult, OcrWord
from .receipt_extractor import overall_confidence
from ..core.config import settings

MOCK_RECEIPT_TEXT = (
    "CVS Pharmacy\n"
    "1200 Main St, Springfield\n"
    "03/14/2025 10:42 AM\n"
    "Rx #4455661 Amoxicillin 500mg\n"
    "Subtotal: $18.50\n"
    "Tax: $1.48\n"
    "Total: $19.98\n"
    "Thank you for shopping with us"
)
MOCK_WORD_CONFIDENCE = 0.92


class OcrProviderError(Exception):
    """The OCR provider could not be reached or rejected the request"""


def _mock_result(image_bytes: bytes) -> OcrResult:
    if not image_bytes:
        return OcrResult.empty()

    words = tuple(OcrWord(text=w, confidence=MOCK_WORD_CONFIDENCE) for w in MOCK_RECEIPT_TEXT.split())
    return OcrResult(
        full_text=MOCK_RECEIPT_TEXT,
        words=words,
        overall_confidence=overall_confidence(MOCK_RECEIPT_TEXT, words),
    )


def recognize_receipt(image_bytes: bytes) -> OcrResult:
    """Run text recognition over a receipt image.

    Raises:
        OcrProviderError: credentials are wrong or the service call failed
    """
    # Check if Azure Document Intelligence is configured
    if not (settings.az_di_endpoint and settings.az_di_api_key):
        logger.warning(
            "Azure Document Intelligence not configured - using MOCK OCR text. "
            "Set AZ_DI_ENDPOINT and AZ_DI_API_KEY to use real recognition."
        )
        return _mock_result(image_bytes)

    logger.info(
        "Using Azure Document Intelligence for receipt OCR",
        endpoint=settings.az_di_endpoint[:50] + "..." if len(settings.az_di_endpoint) > 50 else settings.az_di_endpoint
    )

    try:
        client = DocumentIntelligenceClient(
            endpoint=settings.az_di_endpoint,
            credential=AzureKeyCredential(settings.az_di_api_key)
        )

        logger.info(f"Analyzing image of size {len(image_bytes)} bytes")

        poller = client.begin_analyze_document(
            "prebuilt-read",
            body=image_bytes,
            content_type="application/octet-stream"
        )
        result = poller.result()
    except ClientAuthenticationError as e:
        logger.error(f"Azure DI rejected credentials: {e}")
        raise OcrProviderError(
            "Azure Document Intelligence credentials not accepted. "
            "Check AZ_DI_ENDPOINT and AZ_DI_API_KEY."
        ) from e
    except AzureError as e:
        logger.error(f"Azure DI OCR failed: {e}")
        raise OcrProviderError(f"Failed to process OCR with Azure Document Intelligence: {e}") from e

    full_text = getattr(result, "content", None) or ""
    if not full_text.strip():
        logger.info("No text detected in image")
        return OcrResult.empty()

    words = tuple(
        OcrWord(text=word.content or "", confidence=word.confidence or 0.0)
        for page in (result.pages or [])
        for word in (page.words or [])
    )
    confidence = overall_confidence(full_text, words)

    logger.info(
        "Azure DI OCR complete",
        confidence=confidence,
        word_count=len(words),
        preview=full_text[:200]
    )

    return OcrResult(full_text=full_text, words=words, overall_confidence=confidence)
