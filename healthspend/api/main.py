from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from ..core.logging import setup_logging
from ..core.config import settings
from ..services.receipt_ingestion import ReceiptValidationError
from .routers import health, receipts

logger = setup_logging()
app = FastAPI(title="Health Receipt Scanner")


# Add custom exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ReceiptValidationError)
async def receipt_validation_handler(request: Request, exc: ReceiptValidationError):
    logger.warning("Receipt rejected", path=request.url.path, details=exc.details)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Please check the form fields", "details": exc.details},
    )


# Configure CORS to allow frontend access
# CORS_ORIGINS can be set in .env as comma-separated list
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(receipts.router)
