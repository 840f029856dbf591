# src/tracking/usage_ledger.py — v1
"""Monthly AI spend ledger.

One USD total per calendar month (``YYYY-MM``, UTC). Totals only ever
grow; resetting them is out of this module's hands.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


def month_key(now: datetime | None = None) -> str:
    """Ledger bucket for a moment in time."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m")


class BaseUsageLedger(ABC):
    """Monotonic monthly USD accumulator."""

    @abstractmethod
    async def monthly_total(self, month: str | None = None) -> float:
        """Spend recorded for a month (default: current month)."""

    @abstractmethod
    async def _store(self, month: str, total: float) -> None:
        ...

    async def add(self, amount_usd: float, month: str | None = None) -> float:
        """Add spend to a month and return the new total.

        Raises:
            ValueError: If amount is negative.
        """
        if amount_usd < 0:
            raise ValueError(f"Ledger amounts must be >= 0, got {amount_usd}")
        month = month or month_key()
        total = await self.monthly_total(month) + amount_usd
        await self._store(month, total)
        return total


class InMemoryUsageLedger(BaseUsageLedger):
    """Process-local ledger."""

    def __init__(self, totals: dict[str, float] | None = None) -> None:
        self._totals: dict[str, float] = dict(totals or {})

    async def monthly_total(self, month: str | None = None) -> float:
        return self._totals.get(month or month_key(), 0.0)

    async def _store(self, month: str, total: float) -> None:
        self._totals[month] = total


class JsonUsageLedger(BaseUsageLedger):
    """Ledger persisted as a ``{"YYYY-MM": usd}`` JSON object."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()

    def _read(self) -> dict[str, float]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable usage ledger %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Usage ledger %s is not a JSON object, ignoring it", self._path)
            return {}
        totals: dict[str, float] = {}
        for month, value in data.items():
            try:
                totals[str(month)] = float(value)
            except (TypeError, ValueError):
                logger.warning("Skipping bad ledger value for %s: %r", month, value)
        return totals

    async def monthly_total(self, month: str | None = None) -> float:
        return self._read().get(month or month_key(), 0.0)

    async def _store(self, month: str, total: float) -> None:
        data = self._read()
        data[month] = total
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
