from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("healthspend-receipts", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Azure Document Intelligence (OCR provider)
    az_di_endpoint: str | None = Field(default=None, alias="AZ_DI_ENDPOINT")
    az_di_api_key: str | None = Field(default=None, alias="AZ_DI_API_KEY")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    # Receipt storage: "memory" or "sqlite"
    receipts_backend: str = Field("memory", alias="RECEIPTS_BACKEND")
    receipts_db_path: str = Field("receipts.db", alias="RECEIPTS_DB_PATH")

    # Upload and OCR limits
    max_upload_bytes: int = Field(10 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    max_ocr_text_chars: int = Field(20000, alias="MAX_OCR_TEXT_CHARS")
    low_confidence_threshold: int = Field(50, alias="LOW_CONFIDENCE_THRESHOLD")

    # Statistics
    estimated_tax_rate: float = Field(0.35, alias="ESTIMATED_TAX_RATE")

    # Identity used when the upstream auth layer sends no X-User-Id header
    default_user_id: str = Field("local-user", alias="DEFAULT_USER_ID")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

settings = Settings()
