# src/tools/portfolio_tools.py — v1
"""Portfolio tool catalog: snapshot, holdings, history, what-if, rebalance,
notes, alerts, research.

Tool arguments and results use camelCase keys because they travel to the
model as JSON. Every result lists the collaborator calls that produced it
in ``data_provenance``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from portfolio_ai.portfolio.calculations import (
    calc_cost_basis,
    calc_market_value,
    compute_allocations_by_category,
    compute_allocations_by_type,
    compute_portfolio_series,
)
from portfolio_ai.portfolio.models import (
    AssetType,
    FiatCurrency,
    Holding,
    PriceAlertRule,
    PricePoint,
    Transaction,
)
from portfolio_ai.portfolio.repository import BaseResearchLauncher, PortfolioRepository
from portfolio_ai.tools.models import ToolExecutionResult, ToolFailure, ToolSuccess
from portfolio_ai.tools.registry import ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

RANGE_DAYS: dict[str, int] = {"1w": 7, "1m": 30, "3m": 90, "6m": 180, "1y": 365}

_AMOUNT_TYPES = ("cash", "real_estate")
_SEARCH_REPORT_LIMIT = 50
_SNIPPET_CHARS = 160


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Argument models ---


class _Args(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class NoArgs(_Args):
    pass


class HoldingsFilter(_Args):
    type: AssetType | None = None
    category_id: str | None = Field(default=None, alias="categoryId", min_length=1)
    search: str | None = Field(
        default=None, min_length=1,
        description="Case-insensitive match against holding name or symbol.",
    )
    include_deleted: bool = Field(default=False, alias="includeDeleted")


class GetHoldingsArgs(_Args):
    filter: HoldingsFilter | None = None


class HoldingRef(_Args):
    holding_id: str = Field(alias="holdingId", min_length=1)


class PriceHistoryArgs(HoldingRef):
    range: Literal["1w", "1m", "3m", "6m", "1y", "max"] | None = None


class SimulateTradeArgs(HoldingRef):
    action: Literal["buy", "sell"]
    units: float | None = Field(default=None, gt=0, description="Units to trade.")
    value: float | None = Field(
        default=None, gt=0, description="Trade value in the holding currency."
    )
    price: float | None = Field(
        default=None, gt=0, description="Execution price; defaults to the current price."
    )

    @model_validator(mode="after")
    def exactly_one_size(self) -> SimulateTradeArgs:
        if (self.units is None) == (self.value is None):
            raise ValueError("provide exactly one of units or value")
        return self


class RebalancePolicy(_Args):
    method: Literal["equal", "custom"]
    targets: dict[str, float] | None = Field(
        default=None, description="Target weight per holding id (custom method)."
    )

    @model_validator(mode="after")
    def targets_for_custom(self) -> RebalancePolicy:
        if self.method == "custom" and not self.targets:
            raise ValueError("custom method requires targets")
        if self.targets and any(w < 0 for w in self.targets.values()):
            raise ValueError("target weights must be >= 0")
        return self


class SuggestRebalanceArgs(_Args):
    policy: RebalancePolicy
    filter: HoldingsFilter | None = None
    min_trade_value: float = Field(default=1.0, alias="minTradeValue", ge=0)


class AddNoteArgs(HoldingRef):
    text: str = Field(min_length=1, max_length=2000)


class AlertRuleArgs(_Args):
    type: Literal["price_above", "price_below"]
    price: float = Field(gt=0)
    currency: FiatCurrency | None = None


class CreateAlertArgs(HoldingRef):
    rule: AlertRuleArgs


class ResearchArgs(_Args):
    subject_type: Literal["holding", "sector"] = Field(default="holding", alias="subjectType")
    subject_id: str = Field(alias="subjectId", min_length=1)
    subject_name: str | None = Field(default=None, alias="subjectName", min_length=1)


class SearchResearchArgs(_Args):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=20)
    subject_key: str | None = Field(default=None, alias="subjectKey", min_length=1)


# --- Row builders ---


def _pnl(market_value: float, cost_basis: float) -> tuple[float, float | None]:
    value = market_value - cost_basis
    return value, (value / cost_basis if cost_basis else None)


def _holding_ref(holding: Holding) -> dict[str, Any]:
    return {
        "id": holding.id,
        "name": holding.name,
        "symbol": holding.symbol,
        "type": holding.type,
        "currency": holding.currency,
    }


def _price_row(point: PricePoint) -> dict[str, Any]:
    return {"date": point.date_iso, "pricePerUnit": point.price_per_unit}


def _transaction_row(tx: Transaction) -> dict[str, Any]:
    return {"date": tx.date_iso, "deltaUnits": tx.delta_units, "pricePerUnit": tx.price_per_unit}


def _matches(holding: Holding, flt: HoldingsFilter | None) -> bool:
    if flt is None:
        return not holding.is_deleted
    if not flt.include_deleted and holding.is_deleted:
        return False
    if flt.type and holding.type != flt.type:
        return False
    if flt.category_id and holding.category_id != flt.category_id:
        return False
    if flt.search:
        haystack = f"{holding.name} {holding.symbol or ''}".lower()
        if flt.search.lower() not in haystack:
            return False
    return True


def _search_terms(query: str) -> list[str]:
    return [t for t in re.findall(r"\w+", query.lower()) if len(t) >= 2]


def _snippet(text: str, term: str) -> str:
    idx = text.lower().find(term)
    if idx < 0:
        return text[:_SNIPPET_CHARS].strip()
    start = max(idx - _SNIPPET_CHARS // 3, 0)
    chunk = text[start:start + _SNIPPET_CHARS].strip()
    prefix = "..." if start > 0 else ""
    suffix = "..." if start + _SNIPPET_CHARS < len(text) else ""
    return f"{prefix}{chunk}{suffix}"


class PortfolioToolkit:
    """Executors for the portfolio tool catalog.

    Args:
        repository: Portfolio persistence collaborator.
        research_launcher: Optional research job launcher; without it
            run_research_report fails cleanly.
        clock: Source of "now" (UTC), injectable for tests.
    """

    def __init__(
        self,
        repository: PortfolioRepository,
        research_launcher: BaseResearchLauncher | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._repo = repository
        self._research = research_launcher
        self._clock = clock or _utcnow

    def definitions(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                "get_portfolio_snapshot",
                "Return a high-level snapshot of the current portfolio including totals, "
                "allocations by type/category, and the historical value series.",
                NoArgs, self.portfolio_snapshot,
            ),
            ToolDefinition(
                "get_holdings",
                "Return the holdings list with computed market value, cost basis, and "
                "portfolio weight. Filter by type, category, or search term if provided.",
                GetHoldingsArgs, self.holdings,
            ),
            ToolDefinition(
                "get_holding_details",
                "Return detailed metrics, latest pricing, and recent transactions for a "
                "single holding.",
                HoldingRef, self.holding_details,
            ),
            ToolDefinition(
                "get_price_history",
                "Return the historical price points and transactions for a holding, "
                "optionally restricted to a time range.",
                PriceHistoryArgs, self.price_history,
            ),
            ToolDefinition(
                "simulate_trade",
                "Simulate buying or selling part of a holding and return the before/after "
                "position and portfolio weight. Nothing is saved.",
                SimulateTradeArgs, self.simulate_trade,
            ),
            ToolDefinition(
                "suggest_rebalance",
                "Suggest buy/sell trades to reach equal or custom target weights. Positions "
                "whose trade would be smaller than minTradeValue are marked hold.",
                SuggestRebalanceArgs, self.suggest_rebalance,
            ),
            ToolDefinition(
                "add_holding_note",
                "Append a timestamped note to a holding.",
                AddNoteArgs, self.add_note,
            ),
            ToolDefinition(
                "create_price_alert",
                "Create a price alert that fires when a holding's price goes above or "
                "below a threshold.",
                CreateAlertArgs, self.create_price_alert,
            ),
            ToolDefinition(
                "run_research_report",
                "Start generating a research report for a holding or sector. Returns a "
                "job id; the report is produced in the background.",
                ResearchArgs, self.run_research_report,
            ),
            ToolDefinition(
                "search_research",
                "Keyword search across sections of previously generated research reports.",
                SearchResearchArgs, self.search_research,
            ),
        ]

    # --- Read tools ---

    async def portfolio_snapshot(self, args: NoArgs) -> ToolExecutionResult:
        holdings = await self._repo.get_holdings(include_deleted=False)
        categories = await self._repo.get_categories()
        price_points = await self._repo.get_all_price_points()
        transactions = await self._repo.get_all_transactions()

        active = [h for h in holdings if not h.is_deleted]
        by_type = compute_allocations_by_type(active)
        by_category = compute_allocations_by_category(active, categories)
        series = compute_portfolio_series(
            active, price_points, transactions,
            today=self._clock().date().isoformat(),
        )

        total_value = sum(float(a["value"]) for a in by_type)
        total_cost = sum(calc_cost_basis(h) for h in active)
        pnl_value, pnl_percent = _pnl(total_value, total_cost)
        stamps = [h.updated_at or h.created_at for h in active]

        return ToolSuccess(
            data={
                "holdingsCount": len(active),
                "totalMarketValue": total_value,
                "totalCostBasis": total_cost,
                "unrealizedPnlValue": pnl_value,
                "unrealizedPnlPercent": pnl_percent,
                "allocationsByType": by_type,
                "allocationsByCategory": by_category,
                "portfolioSeries": series,
                "lastUpdatedAt": max(stamps) if stamps else None,
            },
            data_provenance=[
                "repository:getHoldings",
                "repository:getCategories",
                "repository:getAllPricePoints",
                "repository:getAllTransactions",
                "calculations:computeAllocationsByType",
                "calculations:computeAllocationsByCategory",
                "calculations:computePortfolioSeries",
            ],
        )

    async def holdings(self, args: GetHoldingsArgs) -> ToolExecutionResult:
        include_deleted = bool(args.filter and args.filter.include_deleted)
        holdings = await self._repo.get_holdings(include_deleted=include_deleted)
        selected = [h for h in holdings if _matches(h, args.filter)]
        total = sum(calc_market_value(h) for h in selected)

        rows = []
        for h in selected:
            market_value = calc_market_value(h)
            cost_basis = calc_cost_basis(h)
            pnl_value, pnl_percent = _pnl(market_value, cost_basis)
            rows.append({
                **_holding_ref(h),
                "units": h.units,
                "pricePerUnit": h.price_per_unit,
                "categoryId": h.category_id,
                "purchaseDate": h.purchase_date,
                "tags": h.tags,
                "notes": h.notes,
                "createdAt": h.created_at,
                "updatedAt": h.updated_at,
                "deleted": h.is_deleted,
                "marketValue": market_value,
                "costBasis": cost_basis,
                "unrealizedPnlValue": pnl_value,
                "unrealizedPnlPercent": pnl_percent,
                "portfolioWeight": market_value / total if total else 0,
            })
        rows.sort(key=lambda r: r["marketValue"], reverse=True)

        return ToolSuccess(
            data=rows,
            data_provenance=["repository:getHoldings", "calculations:calcMarketValue"],
        )

    async def _find_holding(self, holding_id: str) -> Holding | None:
        holdings = await self._repo.get_holdings(include_deleted=True)
        return next((h for h in holdings if h.id == holding_id), None)

    async def holding_details(self, args: HoldingRef) -> ToolExecutionResult:
        holding = await self._find_holding(args.holding_id)
        if holding is None:
            return ToolFailure(
                error=f"Holding {args.holding_id} not found",
                data_provenance=["repository:getHoldings"],
            )

        categories = await self._repo.get_categories()
        history = await self._repo.get_price_history(holding.id)
        transactions = await self._repo.get_transactions(holding.id)

        category_name = next(
            (c.name for c in categories if c.id == holding.category_id), None
        )
        market_value = calc_market_value(holding)
        cost_basis = calc_cost_basis(holding)
        pnl_value, pnl_percent = _pnl(market_value, cost_basis)
        last_price = history[-1].price_per_unit if history else holding.price_per_unit
        previous_price = history[-2].price_per_unit if len(history) > 1 else last_price
        day_change = last_price - previous_price

        return ToolSuccess(
            data={
                "holding": {
                    **_holding_ref(holding),
                    "categoryId": holding.category_id,
                    "categoryName": category_name,
                    "tags": holding.tags,
                    "notes": holding.notes,
                    "purchaseDate": holding.purchase_date,
                    "createdAt": holding.created_at,
                    "updatedAt": holding.updated_at,
                    "deleted": holding.is_deleted,
                },
                "metrics": {
                    "units": holding.units,
                    "pricePerUnit": holding.price_per_unit,
                    "lastPrice": last_price,
                    "previousPrice": previous_price,
                    "dayChangeValue": day_change,
                    "dayChangePercent": day_change / previous_price if previous_price else None,
                    "marketValue": market_value,
                    "costBasis": cost_basis,
                    "unrealizedPnlValue": pnl_value,
                    "unrealizedPnlPercent": pnl_percent,
                },
                "recentTransactions": [_transaction_row(t) for t in transactions[-10:]],
                "pricePointsSample": [_price_row(p) for p in history[-30:]],
            },
            data_provenance=[
                "repository:getHoldings",
                "repository:getCategories",
                "repository:getPriceHistory",
                "repository:getTransactions",
                "calculations:calcMarketValue",
            ],
        )

    async def price_history(self, args: PriceHistoryArgs) -> ToolExecutionResult:
        holding = await self._find_holding(args.holding_id)
        if holding is None:
            return ToolFailure(
                error=f"Holding {args.holding_id} not found",
                data_provenance=["repository:getHoldings"],
            )

        points = await self._repo.get_price_history(holding.id)
        transactions = await self._repo.get_transactions(holding.id)

        if args.range and args.range != "max":
            cutoff = (self._clock() - timedelta(days=RANGE_DAYS[args.range])).date().isoformat()
            points = [p for p in points if p.date_iso >= cutoff]
            transactions = [t for t in transactions if t.date_iso >= cutoff]

        return ToolSuccess(
            data={
                "holding": _holding_ref(holding),
                "range": args.range or "max",
                "pricePoints": [_price_row(p) for p in points],
                "transactions": [_transaction_row(t) for t in transactions],
            },
            data_provenance=[
                "repository:getPriceHistory",
                "repository:getTransactions",
                "repository:getHoldings",
            ],
        )

    # --- What-if tools (never persist) ---

    async def simulate_trade(self, args: SimulateTradeArgs) -> ToolExecutionResult:
        provenance = ["repository:getHoldings"]
        holdings = await self._repo.get_holdings(include_deleted=False)
        holding = next((h for h in holdings if h.id == args.holding_id), None)
        if holding is None:
            return ToolFailure(
                error=f"Holding {args.holding_id} not found", data_provenance=provenance
            )

        amount_based = holding.type in _AMOUNT_TYPES
        price = 1.0 if amount_based else (args.price or holding.price_per_unit)
        if price <= 0:
            return ToolFailure(
                error=f"Holding {holding.id} has no usable price; pass price explicitly",
                data_provenance=provenance,
            )

        if args.units is not None:
            units = args.units
            value = units * price
        else:
            value = float(args.value or 0)
            units = value / price

        held = calc_cost_basis(holding) if amount_based else holding.units
        if args.action == "sell" and units > held + 1e-9:
            return ToolFailure(
                error=f"Cannot sell {units:g} of {holding.name}; only {held:g} held",
                data_provenance=provenance,
            )

        total_before = sum(calc_market_value(h) for h in holdings)
        value_before = calc_market_value(holding)
        cost_before = calc_cost_basis(holding)
        sign = 1 if args.action == "buy" else -1

        realized: float | None = None
        if amount_based:
            units_after = held + sign * units
            value_after = units_after
            cost_after = units_after
        else:
            units_after = holding.units + sign * units
            value_after = units_after * holding.price_per_unit
            if args.action == "buy":
                cost_after = cost_before + value
            else:
                avg_cost = cost_before / holding.units if holding.units else 0.0
                cost_after = avg_cost * units_after
                realized = value - avg_cost * units
        total_after = total_before - value_before + value_after

        def _state(units_: float, value_: float, cost_: float, total_: float) -> dict[str, Any]:
            return {
                "units": units_,
                "marketValue": value_,
                "costBasis": cost_,
                "portfolioWeight": value_ / total_ if total_ else 0,
                "portfolioTotal": total_,
            }

        return ToolSuccess(
            data={
                "holding": _holding_ref(holding),
                "trade": {"action": args.action, "units": units, "price": price, "value": value},
                "before": _state(held, value_before, cost_before, total_before),
                "after": _state(units_after, value_after, cost_after, total_after),
                "cashFlow": -value if args.action == "buy" else value,
                "realizedPnlValue": realized,
                "persisted": False,
            },
            data_provenance=provenance + [
                "calculations:calcMarketValue",
                "calculations:calcCostBasis",
                "simulation:applyTradeDelta",
            ],
        )

    async def suggest_rebalance(self, args: SuggestRebalanceArgs) -> ToolExecutionResult:
        provenance = ["repository:getHoldings", "calculations:calcMarketValue"]
        holdings = await self._repo.get_holdings(include_deleted=False)
        selected = [h for h in holdings if not h.is_deleted and _matches(h, args.filter)]
        if not selected:
            return ToolFailure(error="No holdings to rebalance", data_provenance=provenance)

        values = {h.id: calc_market_value(h) for h in selected}
        total = sum(values.values())
        if total <= 0:
            return ToolFailure(
                error="Portfolio value is zero; nothing to rebalance",
                data_provenance=provenance,
            )

        if args.policy.method == "equal":
            weights = {h.id: 1 / len(selected) for h in selected}
        else:
            targets = args.policy.targets or {}
            unknown = sorted(set(targets) - set(values))
            if unknown:
                return ToolFailure(
                    error=f"Unknown holding in targets: {', '.join(unknown)}",
                    data_provenance=provenance,
                )
            weight_sum = sum(targets.values())
            if weight_sum <= 0:
                return ToolFailure(
                    error="Target weights must sum to more than zero",
                    data_provenance=provenance,
                )
            # Holdings missing from targets are sold down to zero
            weights = {h.id: targets.get(h.id, 0.0) / weight_sum for h in selected}

        trades = []
        total_buy = total_sell = 0.0
        holds = 0
        for h in selected:
            current = values[h.id]
            target_value = total * weights[h.id]
            delta = round(target_value - current, 2)
            if abs(delta) < args.min_trade_value:
                action = "hold"
                holds += 1
            elif delta > 0:
                action = "buy"
                total_buy += delta
            else:
                action = "sell"
                total_sell += -delta

            units_delta = None
            if h.type not in _AMOUNT_TYPES and h.price_per_unit > 0:
                units_delta = round(delta / h.price_per_unit, 6)

            trades.append({
                "holdingId": h.id,
                "name": h.name,
                "symbol": h.symbol,
                "currentValue": current,
                "currentWeight": current / total,
                "targetWeight": weights[h.id],
                "targetValue": round(target_value, 2),
                "deltaValue": delta,
                "unitsDelta": units_delta,
                "action": action,
            })

        return ToolSuccess(
            data={
                "method": args.policy.method,
                "portfolioTotal": total,
                "minTradeValue": args.min_trade_value,
                "trades": trades,
                "summary": {
                    "totalBuy": round(total_buy, 2),
                    "totalSell": round(total_sell, 2),
                    "netCashFlow": round(total_sell - total_buy, 2),
                    "tradeCount": len(trades) - holds,
                    "holdCount": holds,
                },
            },
            data_provenance=provenance + ["rebalance:targetWeights"],
        )

    # --- Write tools ---

    async def add_note(self, args: AddNoteArgs) -> ToolExecutionResult:
        holding = await self._find_holding(args.holding_id)
        if holding is None or holding.is_deleted:
            return ToolFailure(
                error=f"Holding {args.holding_id} not found",
                data_provenance=["repository:getHoldings"],
            )
        stamp = self._clock().isoformat(timespec="seconds")
        note = f"[{stamp}] {args.text.strip()}"
        updated = await self._repo.append_holding_note(holding.id, note)
        logger.info("Appended note to holding %s", holding.id)
        return ToolSuccess(
            data={"holdingId": updated.id, "note": note, "notes": updated.notes},
            data_provenance=["repository:getHoldings", "repository:appendHoldingNote"],
        )

    async def create_price_alert(self, args: CreateAlertArgs) -> ToolExecutionResult:
        holding = await self._find_holding(args.holding_id)
        if holding is None or holding.is_deleted:
            return ToolFailure(
                error=f"Holding {args.holding_id} not found",
                data_provenance=["repository:getHoldings"],
            )
        rule = PriceAlertRule(**args.rule.model_dump())
        alert = await self._repo.create_price_alert(holding.id, rule)
        logger.info("Created %s alert %s for holding %s", rule.type, alert.id, holding.id)
        return ToolSuccess(
            data={
                "alertId": alert.id,
                "holdingId": alert.holding_id,
                "holdingName": holding.name,
                "rule": alert.rule.model_dump(),
                "createdAt": alert.created_at,
            },
            data_provenance=["repository:getHoldings", "repository:createPriceAlert"],
        )

    async def run_research_report(self, args: ResearchArgs) -> ToolExecutionResult:
        if self._research is None:
            return ToolFailure(error="Research reports are not available in this session")

        provenance: list[str] = []
        symbol: str | None = None
        name = args.subject_name
        if args.subject_type == "holding":
            provenance.append("repository:getHoldings")
            holding = await self._find_holding(args.subject_id)
            if holding is None or holding.is_deleted:
                return ToolFailure(
                    error=f"Holding {args.subject_id} not found", data_provenance=provenance
                )
            name = name or holding.name
            symbol = holding.symbol
        name = name or args.subject_id

        job_id = await self._research.start(
            subject_type=args.subject_type,
            subject_id=args.subject_id,
            subject_name=name,
            symbol=symbol,
        )
        logger.info("Started research job %s for %s %s", job_id, args.subject_type, args.subject_id)
        return ToolSuccess(
            data={
                "jobId": job_id,
                "status": "started",
                "subjectType": args.subject_type,
                "subjectId": args.subject_id,
                "subjectName": name,
            },
            data_provenance=provenance + ["research:start"],
        )

    async def search_research(self, args: SearchResearchArgs) -> ToolExecutionResult:
        terms = _search_terms(args.query)
        if not terms:
            return ToolFailure(error="Query must contain at least one searchable word")

        reports = await self._repo.get_research_reports(
            subject_key=args.subject_key, limit=_SEARCH_REPORT_LIMIT
        )

        matches = []
        for report in reports:
            if report.status != "completed":
                continue
            for section in report.sections:
                title = section.title.lower()
                body = "\n".join([section.body_md, *section.bullets])
                body_lower = body.lower()
                hits = [t for t in terms if t in title or t in body_lower]
                if not hits:
                    continue
                score = sum(3 * title.count(t) + body_lower.count(t) for t in hits)
                matches.append({
                    "reportId": report.id,
                    "subjectKey": report.subject_key,
                    "subjectName": report.subject_name,
                    "sectionId": section.id,
                    "sectionTitle": section.title,
                    "snippet": _snippet(body, hits[0]),
                    "matchedTerms": len(hits),
                    "score": score,
                    "createdAt": report.created_at.isoformat(),
                })

        matches.sort(key=lambda m: (m["matchedTerms"], m["score"], m["createdAt"]), reverse=True)
        return ToolSuccess(
            data={
                "query": args.query,
                "totalMatches": len(matches),
                "matches": matches[:args.limit],
            },
            data_provenance=["repository:getResearchReports", "research:keywordSearch"],
        )


def build_portfolio_registry(
    repository: PortfolioRepository,
    research_launcher: BaseResearchLauncher | None = None,
    clock: Clock | None = None,
) -> ToolRegistry:
    """Registry holding the full portfolio tool catalog."""
    toolkit = PortfolioToolkit(repository, research_launcher, clock)
    return ToolRegistry(toolkit.definitions())
