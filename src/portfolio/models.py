# src/portfolio/models.py — v1
"""Portfolio domain models read and written by the tool catalog."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

AssetType = Literal["stock", "crypto", "cash", "real_estate", "other"]
FiatCurrency = Literal["USD", "EUR"]


class Holding(BaseModel):
    """Single position in the portfolio."""

    id: str
    type: AssetType
    name: str
    symbol: str | None = None
    units: float
    price_per_unit: float
    # Direct value input for non-unit-priced assets (cash, real estate)
    buy_value: float | None = None
    currency: str = "EUR"
    category_id: str | None = None
    purchase_date: str  # YYYY-MM-DD
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    created_at: str
    updated_at: str
    is_deleted: bool = False


class Category(BaseModel):
    id: str
    name: str
    color: str | None = None
    sort_order: int = 0


class PricePoint(BaseModel):
    id: str
    holding_id: str
    date_iso: str  # YYYY-MM-DD
    price_per_unit: float


class Transaction(BaseModel):
    """Units delta for stock/crypto/other, amount delta for cash/real_estate."""

    id: str
    holding_id: str
    date_iso: str  # YYYY-MM-DD
    delta_units: float
    price_per_unit: float | None = None


class PriceAlertRule(BaseModel):
    type: Literal["price_above", "price_below"]
    price: float
    currency: FiatCurrency | None = None


class PriceAlert(BaseModel):
    id: str
    holding_id: str
    rule: PriceAlertRule
    created_at: str
    last_notified_at: str | None = None


class ReportSection(BaseModel):
    id: str
    title: str
    body_md: str
    bullets: list[str] = Field(default_factory=list)
    order: int = 0


class ResearchReport(BaseModel):
    """Previously generated research report (read-only for the AI layer)."""

    id: str
    subject_type: Literal["holding", "sector"]
    subject_key: str
    subject_name: str
    created_at: datetime
    model_id: str = ""
    status: Literal["generating", "completed", "failed"] = "completed"
    sections: list[ReportSection] = Field(default_factory=list)
