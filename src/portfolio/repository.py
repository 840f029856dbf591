# src/portfolio/repository.py — v1
"""Abstract portfolio persistence and research collaborators.

The AI layer consumes storage only through these narrow interfaces;
the storage engine behind them is not its concern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from portfolio_ai.portfolio.models import (
    Category,
    Holding,
    PriceAlert,
    PriceAlertRule,
    PricePoint,
    ResearchReport,
    Transaction,
)


class HoldingNotFoundError(LookupError):
    """Raised by repositories when a holding id does not exist."""


class PortfolioRepository(ABC):
    """Read/write access to portfolio state."""

    @abstractmethod
    async def get_holdings(self, include_deleted: bool = False) -> list[Holding]:
        """Return holdings, soft-deleted ones only when requested."""

    @abstractmethod
    async def get_categories(self) -> list[Category]:
        """Return all categories."""

    @abstractmethod
    async def get_price_history(self, holding_id: str) -> list[PricePoint]:
        """Return price points for a holding, oldest first."""

    @abstractmethod
    async def get_all_price_points(self) -> list[PricePoint]:
        """Return price points for every holding."""

    @abstractmethod
    async def get_transactions(self, holding_id: str) -> list[Transaction]:
        """Return transactions for a holding, oldest first."""

    @abstractmethod
    async def get_all_transactions(self) -> list[Transaction]:
        """Return transactions for every holding."""

    @abstractmethod
    async def append_holding_note(self, holding_id: str, text: str) -> Holding:
        """Append a line to a holding's notes and return the updated holding.

        Raises:
            HoldingNotFoundError: If the holding does not exist.
        """

    @abstractmethod
    async def create_price_alert(self, holding_id: str, rule: PriceAlertRule) -> PriceAlert:
        """Persist a price alert for a holding."""

    @abstractmethod
    async def get_research_reports(
        self, subject_key: str | None = None, limit: int | None = None
    ) -> list[ResearchReport]:
        """Return research reports, newest first."""


class BaseResearchLauncher(ABC):
    """Starts background research report generation."""

    @abstractmethod
    async def start(
        self,
        subject_type: str,
        subject_id: str,
        subject_name: str,
        symbol: str | None = None,
    ) -> str:
        """Start a research job and return its job id."""
