"""
Yearly spending summary for a user's health receipts.
"""

from datetime import date
from typing import Optional

from loguru import logger
from pydantic import BaseModel

from .storage.receipt_store_base import ReceiptStoreBase
from ..core.config import settings


class SpendingSummary(BaseModel):
    year: int
    ytd_expenses: float
    monthly_average: float
    yoy_change: float  # percent vs previous year, 0 when there is no history
    tax_savings: float  # rough estimate at ESTIMATED_TAX_RATE


def summarize_spending(
    store: ReceiptStoreBase,
    user_id: str,
    year: Optional[int] = None,
    today: Optional[date] = None,
    tax_rate: Optional[float] = None,
) -> SpendingSummary:
    """
    Summarize a user's spending for one calendar year.

    The monthly average of the current year only counts months elapsed so
    far; past years are averaged over all 12 months.
    """
    today = today or date.today()
    year = year or today.year
    tax_rate = tax_rate if tax_rate is not None else settings.estimated_tax_rate

    ytd_total = store.total_for_year(user_id, year)
    last_year_total = store.total_for_year(user_id, year - 1)

    months = today.month if year == today.year else 12
    yoy_change = (
        round((ytd_total - last_year_total) / last_year_total * 100, 1)
        if last_year_total > 0 else 0.0
    )

    summary = SpendingSummary(
        year=year,
        ytd_expenses=ytd_total,
        monthly_average=round(ytd_total / months, 2),
        yoy_change=yoy_change,
        tax_savings=round(ytd_total * tax_rate, 2),
    )

    logger.info("Spending summary computed", user_id=user_id, **summary.model_dump())
    return summary
