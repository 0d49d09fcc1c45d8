from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class ServiceType(str, Enum):
    PRESCRIPTION = "Prescription"
    DOCTOR_VISIT = "Doctor Visit"
    DENTAL = "Dental"
    VISION = "Vision"
    LAB_TESTS = "Lab Tests"
    MENTAL_HEALTH = "Mental Health"
    OTHER = "Other"


class OcrWord(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: float = 0.0  # 0..1, 0 when the provider reports none


class OcrResult(BaseModel):
    """Raw output of the OCR provider for one image"""
    model_config = ConfigDict(frozen=True)

    full_text: str = ""
    words: tuple[OcrWord, ...] = ()
    overall_confidence: int = Field(default=0, ge=0, le=100)

    @classmethod
    def empty(cls) -> "OcrResult":
        return cls(full_text="", words=(), overall_confidence=0)


class ExtractedFields(BaseModel):
    date: str | None = None  # ISO-8601 calendar date
    vendor: str | None = None
    amount: Decimal | None = None  # always 2 fractional digits
    service_type: ServiceType | None = None
    confidence: int = 0  # 0-100
