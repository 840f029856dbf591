# src/portfolio/calculations.py — v1
"""Valuation helpers: market value, cost basis, allocations, value series.

Values are computed in each holding's own currency; no FX conversion
happens here.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timezone

from portfolio_ai.portfolio.models import Category, Holding, PricePoint, Transaction

_AMOUNT_TYPES = ("cash", "real_estate")


def calc_cost_basis(holding: Holding) -> float:
    """Explicit buy value if set, else units x price."""
    if holding.buy_value is not None and math.isfinite(holding.buy_value):
        return holding.buy_value
    return (holding.units or 0) * (holding.price_per_unit or 0)


def calc_market_value(holding: Holding) -> float:
    """Current value of a holding.

    Cash and real estate are worth their amount; other assets are
    units x current price.
    """
    if holding.type in _AMOUNT_TYPES:
        return calc_cost_basis(holding)
    return holding.units * holding.price_per_unit


def _allocations(values: dict[str, float]) -> list[dict[str, float | str]]:
    total = sum(values.values())
    return [
        {"name": name, "value": value, "percent": value / total if total else 0}
        for name, value in values.items()
    ]


def compute_allocations_by_type(holdings: list[Holding]) -> list[dict[str, float | str]]:
    by_type: dict[str, float] = defaultdict(float)
    for holding in holdings:
        if holding.is_deleted:
            continue
        by_type[holding.type] += calc_market_value(holding)
    return _allocations(by_type)


def compute_allocations_by_category(
    holdings: list[Holding], categories: list[Category]
) -> list[dict[str, float | str]]:
    names = {c.id: c.name for c in categories}
    by_category: dict[str, float] = defaultdict(float)
    for holding in holdings:
        if holding.is_deleted:
            continue
        name = names.get(holding.category_id or "", "Uncategorized")
        by_category[name] += calc_market_value(holding)
    return _allocations(by_category)


def compute_portfolio_series(
    holdings: list[Holding],
    price_points: list[PricePoint],
    transactions: list[Transaction],
    today: str | None = None,
) -> list[dict[str, float | str]]:
    """Total portfolio value on every date where something changed.

    Units at a past date are reconstructed by undoing later transactions;
    the price is the last known price point on or before that date,
    falling back to the holding's current price.
    """
    active = [h for h in holdings if not h.is_deleted]
    if not active:
        return []

    today = today or datetime.now(timezone.utc).date().isoformat()

    prices: dict[str, list[PricePoint]] = defaultdict(list)
    for point in sorted(price_points, key=lambda p: p.date_iso):
        prices[point.holding_id].append(point)
    txs: dict[str, list[Transaction]] = defaultdict(list)
    for tx in transactions:
        txs[tx.holding_id].append(tx)

    dates = {today}
    dates.update(p.date_iso for p in price_points)
    dates.update(t.date_iso for t in transactions)
    dates.update(h.purchase_date for h in active)

    series: list[dict[str, float | str]] = []
    for date in sorted(d for d in dates if d <= today):
        total = 0.0
        for holding in active:
            if holding.purchase_date > date:
                continue
            later = sum(t.delta_units for t in txs[holding.id] if t.date_iso > date)
            if holding.type in _AMOUNT_TYPES:
                total += calc_cost_basis(holding) - later
                continue
            price = holding.price_per_unit
            for point in prices[holding.id]:
                if point.date_iso > date:
                    break
                price = point.price_per_unit
            total += max(holding.units - later, 0) * price
        series.append({"date": date, "total": total})
    return series
