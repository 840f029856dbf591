# src/portfolio/memory_repository.py — v1
"""In-memory PortfolioRepository, seedable from a JSON export file.

Used by the CLI and by tests. Writes are kept in process memory only.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from portfolio_ai.portfolio.models import (
    Category,
    Holding,
    PriceAlert,
    PriceAlertRule,
    PricePoint,
    ResearchReport,
    Transaction,
)
from portfolio_ai.portfolio.repository import HoldingNotFoundError, PortfolioRepository

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryPortfolioRepository(PortfolioRepository):
    """Dictionary-backed repository."""

    def __init__(
        self,
        holdings: list[Holding] | None = None,
        categories: list[Category] | None = None,
        price_points: list[PricePoint] | None = None,
        transactions: list[Transaction] | None = None,
        research_reports: list[ResearchReport] | None = None,
    ) -> None:
        self._holdings: dict[str, Holding] = {h.id: h for h in holdings or []}
        self._categories = list(categories or [])
        self._price_points = list(price_points or [])
        self._transactions = list(transactions or [])
        self._reports = list(research_reports or [])
        self._alerts: list[PriceAlert] = []

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryPortfolioRepository:
        """Build from an export bundle with snake_case keys."""
        return cls(
            holdings=[Holding(**h) for h in data.get("holdings", [])],
            categories=[Category(**c) for c in data.get("categories", [])],
            price_points=[PricePoint(**p) for p in data.get("price_points", [])],
            transactions=[Transaction(**t) for t in data.get("transactions", [])],
            research_reports=[ResearchReport(**r) for r in data.get("research_reports", [])],
        )

    @classmethod
    def from_file(cls, path: Path) -> InMemoryPortfolioRepository:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        repo = cls.from_dict(data)
        logger.info("Loaded portfolio from %s: %d holdings", path, len(repo._holdings))
        return repo

    async def get_holdings(self, include_deleted: bool = False) -> list[Holding]:
        return [
            h.model_copy() for h in self._holdings.values()
            if include_deleted or not h.is_deleted
        ]

    async def get_categories(self) -> list[Category]:
        return sorted(self._categories, key=lambda c: c.sort_order)

    async def get_price_history(self, holding_id: str) -> list[PricePoint]:
        points = [p for p in self._price_points if p.holding_id == holding_id]
        return sorted(points, key=lambda p: p.date_iso)

    async def get_all_price_points(self) -> list[PricePoint]:
        return list(self._price_points)

    async def get_transactions(self, holding_id: str) -> list[Transaction]:
        txs = [t for t in self._transactions if t.holding_id == holding_id]
        return sorted(txs, key=lambda t: t.date_iso)

    async def get_all_transactions(self) -> list[Transaction]:
        return list(self._transactions)

    async def append_holding_note(self, holding_id: str, text: str) -> Holding:
        holding = self._holdings.get(holding_id)
        if holding is None:
            raise HoldingNotFoundError(f"Holding {holding_id} not found")
        notes = f"{holding.notes}\n{text}" if holding.notes else text
        updated = holding.model_copy(update={"notes": notes, "updated_at": _now_iso()})
        self._holdings[holding_id] = updated
        return updated.model_copy()

    async def create_price_alert(self, holding_id: str, rule: PriceAlertRule) -> PriceAlert:
        if holding_id not in self._holdings:
            raise HoldingNotFoundError(f"Holding {holding_id} not found")
        alert = PriceAlert(
            id=f"alert-{uuid.uuid4().hex[:12]}",
            holding_id=holding_id,
            rule=rule,
            created_at=_now_iso(),
        )
        self._alerts.append(alert)
        return alert

    async def get_price_alerts(self, holding_id: str | None = None) -> list[PriceAlert]:
        return [a for a in self._alerts if holding_id is None or a.holding_id == holding_id]

    async def get_research_reports(
        self, subject_key: str | None = None, limit: int | None = None
    ) -> list[ResearchReport]:
        reports = [
            r for r in self._reports
            if subject_key is None or r.subject_key == subject_key
        ]
        reports.sort(key=lambda r: r.created_at, reverse=True)
        return reports[:limit] if limit is not None else reports
