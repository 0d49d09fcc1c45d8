"""
Rule-based field extraction from receipt OCR text.

Turns the full text recognised on a receipt image into a transaction date,
a vendor name, a total amount and a coarse healthcare service type.

Every field is optional: when the text carries no usable signal for a field
it is left as None, and extraction of the remaining fields carries on.
Nothing in here performs I/O or keeps state between calls, so the same text
always yields the same fields.

Pattern cascades are plain tables evaluated top to bottom. Candidates from
all patterns are collected first, then a single sort picks the winner:

- dates: highest weight, ties keep discovery order (top of the receipt wins)
- amounts: highest weight, ties go to the latest offset (totals print last)
"""

import math
import re
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Iterable, NamedTuple, Optional

from loguru import logger

from .receipt_types import ExtractedFields, ServiceType

# Guard against pathological scans driving regex cost up
MAX_TEXT_CHARS = 20000

# Confidence reported when the provider gives no per-word scores
DEFAULT_CONFIDENCE = 85

MIN_YEAR = 2000
MAX_AMOUNT = Decimal("100000")
CENTS = Decimal("0.01")

DATE_TOP_OFFSET = 500
AMOUNT_CONTEXT_CHARS = 20
VENDOR_SCAN_LINES = 10


class _Candidate(NamedTuple):
    value: Any
    confidence: float
    position: int


# ========== DATES ==========

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def _year(raw: str) -> int:
    year = int(raw)
    if len(raw) == 2:
        year += 2000 if year < 50 else 1900
    return year


def _month_day_year(m: re.Match) -> date:
    return date(_year(m[3]), int(m[1]), int(m[2]))


def _year_month_day(m: re.Match) -> date:
    return date(int(m[1]), int(m[2]), int(m[3]))


def _month_name_day_year(m: re.Match) -> date:
    return date(_year(m[3]), _MONTHS[m[1][:3].lower()], int(m[2]))


def _day_month_year(m: re.Match) -> date:
    return date(_year(m[3]), int(m[2]), int(m[1]))


# (pattern, parser) in priority order
DATE_PATTERNS: tuple[tuple[re.Pattern, Callable[[re.Match], date]], ...] = (
    # 03/14/2025, 3/14/25
    (re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{2,4})\b"), _month_day_year),
    # 2025-03-14
    (re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b"), _year_month_day),
    # Mar 14, 2025 / March 14 2025
    (
        re.compile(
            r"\b(Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?"
            r"|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?"
            r"[\s,.-]+(\d{1,2})[\s,.-]+(\d{2,4})\b",
            re.IGNORECASE,
        ),
        _month_name_day_year,
    ),
    # 14-03-2025
    (re.compile(r"\b(\d{1,2})-(\d{1,2})-(\d{2,4})\b"), _day_month_year),
)


def extract_date(text: str, today: Optional[date] = None) -> Optional[str]:
    """Return the most plausible transaction date as YYYY-MM-DD, or None."""
    max_year = (today or date.today()).year + 1
    candidates: list[_Candidate] = []

    for pattern, parse in DATE_PATTERNS:
        for match in pattern.finditer(text):
            try:
                value = parse(match)
            except (ValueError, KeyError):
                continue
            if not MIN_YEAR <= value.year <= max_year:
                continue
            weight = 1.0 if match.start() < DATE_TOP_OFFSET else 0.5
            candidates.append(_Candidate(value, weight, match.start()))

    if not candidates:
        return None

    # sort is stable: equal weights keep discovery order
    candidates.sort(key=lambda c: c.confidence, reverse=True)
    return candidates[0].value.isoformat()


# ========== AMOUNTS ==========

# Progressively more permissive, highest priority first
AMOUNT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(
        r"\b(?:total|amount|due|paid|balance|subtotal|grand\s+total)[\s:]*\$?\s*(\d{1,3}(?:,\d{3})*\.\d{2})\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:total|amount|due|paid|balance|subtotal)[\s:]*\$?\s*(\d+\.\d{2})\b",
        re.IGNORECASE,
    ),
    re.compile(r"\$\s*(\d{1,3}(?:,\d{3})*\.\d{2})\b"),
    re.compile(r"\$\s*(\d+\.\d{2})\b"),
    # bare numbers must not start inside a comma-grouped number
    re.compile(r"(?<![\d,])\b(\d{1,3}(?:,\d{3})*\.\d{2})\b"),
    re.compile(r"(?<![\d,])\b(\d+\.\d{2})\b"),
)

_TOTAL_CONTEXT = re.compile(r"total|amount|due|paid|balance", re.IGNORECASE)


def _parse_amount(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def extract_amount(text: str) -> Optional[Decimal]:
    """Return the receipt total quantised to cents, or None."""
    candidates: list[_Candidate] = []

    for pattern in AMOUNT_PATTERNS:
        for match in pattern.finditer(text):
            if "." not in match[0]:
                continue
            value = _parse_amount(match[1])
            if value is None or not Decimal(0) < value < MAX_AMOUNT:
                continue
            start = match.start()
            context = text[max(0, start - AMOUNT_CONTEXT_CHARS):start]
            weight = 1.0 if _TOTAL_CONTEXT.search(context) else 0.5
            candidates.append(_Candidate(value, weight, start))

    if not candidates:
        return None

    candidates.sort(key=lambda c: (-c.confidence, -c.position))
    return candidates[0].value.quantize(CENTS, rounding=ROUND_HALF_UP)


# ========== VENDOR ==========

# A line matching any of these is never a vendor name
VENDOR_SKIP_RULES: tuple[re.Pattern, ...] = (
    re.compile(r"^\d"),
    re.compile(r"^\$"),
    re.compile(r"^[0-9\s\-/]+$"),
    re.compile(r"^(?:total|subtotal|tax|amount|date|time)", re.IGNORECASE),
)

VENDOR_FALLBACK_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(
        r"(?:FROM|STORE|MERCHANT|VENDOR|PHARMACY|HOSPITAL|CLINIC)[\s:]+([A-Z][A-Za-z\s&]+?)(?:\n|$)",
        re.IGNORECASE,
    ),
    re.compile(r"^([A-Z][A-Za-z\s&]{2,40})(?:\n|$)", re.MULTILINE),
)


def _is_vendor_line(line: str) -> bool:
    if len(line) < 3 or len(line) > 60:
        return False
    if any(rule.search(line) for rule in VENDOR_SKIP_RULES):
        return False
    return (
        re.match(r"[A-Z]", line) is not None
        and re.search(r"[a-zA-Z]", line) is not None
        and re.fullmatch(r"[A-Z0-9\s]+", line) is None
        and len(line.split()) <= 5
    )


def extract_vendor(text: str) -> Optional[str]:
    """Return the store or provider name, usually printed in the header."""
    lines = [line.strip() for line in re.split(r"[\n\r]", text) if line.strip()]

    for line in lines[:VENDOR_SCAN_LINES]:
        if _is_vendor_line(line):
            return line

    for pattern in VENDOR_FALLBACK_PATTERNS:
        match = pattern.search(text)
        if match and match[1]:
            vendor = match[1].strip()
            if 2 < len(vendor) < 50:
                return vendor

    return None


# ========== SERVICE TYPE ==========

# Order matters: the first matching category wins
SERVICE_TYPE_RULES: tuple[tuple[ServiceType, re.Pattern], ...] = (
    (ServiceType.PRESCRIPTION, re.compile(r"prescription|pharmacy|rx|medication|drug", re.IGNORECASE)),
    (ServiceType.DOCTOR_VISIT, re.compile(r"doctor|physician|clinic|visit|appointment", re.IGNORECASE)),
    (ServiceType.DENTAL, re.compile(r"dental|dentist|teeth|oral", re.IGNORECASE)),
    (ServiceType.VISION, re.compile(r"vision|eye|optometrist|glasses|contact", re.IGNORECASE)),
    (ServiceType.LAB_TESTS, re.compile(r"lab|test|blood|diagnostic", re.IGNORECASE)),
    (ServiceType.MENTAL_HEALTH, re.compile(r"therapy|psychologist|psychiatrist|mental", re.IGNORECASE)),
)


def classify_service_type(text: str) -> Optional[ServiceType]:
    for service_type, pattern in SERVICE_TYPE_RULES:
        if pattern.search(text):
            return service_type
    return None


# ========== CONFIDENCE ==========

def _word_confidence(word: Any) -> float:
    raw = word.get("confidence") if isinstance(word, Mapping) else getattr(word, "confidence", 0)
    try:
        value = float(raw or 0)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def overall_confidence(full_text: str, words: Iterable[Any]) -> int:
    """
    Average positive word confidence scaled to 0-100.

    Falls back to DEFAULT_CONFIDENCE when no word carries a score, and to 0
    when no text was recognised at all.
    """
    if not (full_text or "").strip():
        return 0

    scores = [c for c in (_word_confidence(w) for w in words or ()) if c > 0]
    if not scores:
        return DEFAULT_CONFIDENCE

    # round half up
    return min(100, math.floor(sum(scores) / len(scores) * 100 + 0.5))


def extract_receipt_fields(
    full_text: str,
    words: Iterable[Any] = (),
    *,
    today: Optional[date] = None,
    max_chars: int = MAX_TEXT_CHARS,
) -> ExtractedFields:
    """
    Extract date, vendor, amount and service type from receipt OCR output.

    Args:
        full_text: Complete text recognised on the receipt
        words: Word-level annotations, objects or mappings with a
            ``confidence`` between 0 and 1
        today: Reference date for the plausible-year window (defaults to today)
        max_chars: Only the first ``max_chars`` characters are examined

    Returns:
        ExtractedFields; any field without a signal is None
    """
    text = (full_text or "")[:max_chars]

    fields = ExtractedFields(
        date=extract_date(text, today),
        vendor=extract_vendor(text),
        amount=extract_amount(text),
        service_type=classify_service_type(text),
        confidence=overall_confidence(text, words),
    )

    logger.debug(
        "Receipt fields extracted",
        text_length=len(text),
        date=fields.date,
        vendor=fields.vendor,
        amount=str(fields.amount) if fields.amount is not None else None,
        service_type=fields.service_type.value if fields.service_type else None,
        confidence=fields.confidence,
    )

    return fields
