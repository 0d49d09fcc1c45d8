from typing import Any, Dict
from fastapi import APIRouter
from ...core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic liveness check; reports whether real OCR is configured."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "environment": settings.app_env,
        "ocr_provider": "azure-document-intelligence" if settings.az_di_endpoint and settings.az_di_api_key else "mock",
        "receipts_backend": settings.receipts_backend,
    }
