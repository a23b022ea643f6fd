from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping

import empyrical
import pandas as pd

from mf_dashboard.config import UNITS_EPSILON
from mf_dashboard.portfolio.analytics import FundPosition
from mf_dashboard.portfolio.fifo import LedgerRun, run_ledger
from mf_dashboard.portfolio.gains import (
    PortfolioCapitalGains,
    aggregate_capital_gains,
    classify,
    resolve_category,
)
from mf_dashboard.portfolio.models import (
    CapitalGains,
    CashFlow,
    CashFlowType,
    FolioSummary,
    Fund,
    PortfolioValuationPoint,
)
from mf_dashboard.portfolio.xirr import XirrResult, cash_flow_xirr


@dataclass(frozen=True)
class FundMetrics:
    key: str
    scheme: str
    category: str
    total_invested: float
    total_withdrawn: float
    realized_gain: float
    realized_gain_pct: float
    unrealized_gain: float
    unrealized_gain_pct: float
    remaining_cost: float
    current_value: float
    total_units_remaining: float
    average_remaining_cost_per_unit: float
    average_holding_days: float
    capital_gains: CapitalGains
    ledger: LedgerRun

    @property
    def folio_summaries(self) -> dict[str, FolioSummary]:
        return self.ledger.folios

    @property
    def overall_gain(self) -> float:
        return self.current_value - self.total_invested + self.total_withdrawn

    @property
    def is_active(self) -> bool:
        return self.current_value > 0


def calculate_fund_metrics(fund: Fund, today: date | None = None) -> FundMetrics:
    """Run the FIFO ledger for a fund and derive its gains and holding stats."""
    today = today or date.today()
    category = resolve_category(fund.metadata, fund.fund_type)
    ledger = run_ledger(fund.transactions, fund.valuation, today)

    units = ledger.remaining_units
    is_open = units > UNITS_EPSILON
    remaining_cost = ledger.remaining_cost if is_open else 0.0
    current_value = sum(f.current_value for f in ledger.folios.values()) if is_open else 0.0

    invested = ledger.invested
    realized = ledger.realized_gain
    invested_for_realized = invested - remaining_cost
    unrealized = current_value - remaining_cost

    holding = 0.0
    if is_open:
        holding = sum(
            lot.units * (today - lot.purchase_date).days for lot in ledger.open_lots
        ) / units

    return FundMetrics(
        key=fund.key,
        scheme=fund.scheme_display or fund.scheme,
        category=category,
        total_invested=invested,
        total_withdrawn=ledger.withdrawn,
        realized_gain=realized,
        realized_gain_pct=realized / invested_for_realized * 100 if invested_for_realized > 0 else 0.0,
        unrealized_gain=unrealized,
        unrealized_gain_pct=unrealized / remaining_cost * 100 if remaining_cost > 0 else 0.0,
        remaining_cost=remaining_cost,
        current_value=current_value,
        total_units_remaining=units if is_open else 0.0,
        average_remaining_cost_per_unit=remaining_cost / units if is_open else 0.0,
        average_holding_days=holding,
        capital_gains=classify(ledger.consumptions, category),
        ledger=ledger,
    )


def _valuation_flow(value: float, today: date) -> CashFlow:
    return CashFlow(CashFlowType.VALUATION, value, today)


def fund_xirr(
    metrics: FundMetrics,
    folios: Iterable[str] | None = None,
    today: date | None = None,
) -> XirrResult | None:
    """XIRR for a fund, or a subset of its folios, valued as of today."""
    today = today or date.today()
    wanted = set(folios) if folios is not None else None
    flows: list[CashFlow] = []
    current = 0.0
    for summary in metrics.folio_summaries.values():
        if wanted is not None and summary.folio not in wanted:
            continue
        flows.extend(summary.cash_flows)
        current += summary.current_value
    # The valuation pseudo-flow exists only for the solver
    if current > 0:
        flows.append(_valuation_flow(current, today))
    return cash_flow_xirr(flows)


@dataclass
class PortfolioSummary:
    total_invested: float = 0.0
    total_withdrawn: float = 0.0
    current_value: float = 0.0
    realized_gain: float = 0.0
    unrealized_gain: float = 0.0
    cost_price: float = 0.0
    all_time_xirr: XirrResult | None = None
    active_xirr: XirrResult | None = None
    capital_gains: PortfolioCapitalGains = field(default_factory=PortfolioCapitalGains)

    @property
    def overall_gain(self) -> float:
        return self.current_value - self.total_invested + self.total_withdrawn


def calculate_summary(
    fund_metrics: Iterable[FundMetrics],
    today: date | None = None,
) -> PortfolioSummary:
    """Portfolio totals, all-time/active XIRR and capital gains across funds."""
    today = today or date.today()
    fund_metrics = list(fund_metrics)
    summary = PortfolioSummary()

    all_flows: list[CashFlow] = []
    active_flows: list[CashFlow] = []
    for m in fund_metrics:
        summary.total_invested += m.total_invested
        summary.total_withdrawn += m.total_withdrawn
        summary.current_value += m.current_value
        summary.realized_gain += m.realized_gain
        summary.unrealized_gain += m.unrealized_gain
        summary.cost_price += m.remaining_cost
        for folio in m.folio_summaries.values():
            all_flows.extend(folio.cash_flows)
            if m.is_active:
                active_flows.extend(folio.cash_flows)

    summary.capital_gains = aggregate_capital_gains(
        ((m.category, m.capital_gains) for m in fund_metrics), today
    )

    if summary.current_value > 0:
        valuation = _valuation_flow(summary.current_value, today)
        all_flows.append(valuation)
        active_flows.append(valuation)

    summary.all_time_xirr = cash_flow_xirr(sorted(all_flows, key=lambda f: f.flow_date))
    summary.active_xirr = cash_flow_xirr(sorted(active_flows, key=lambda f: f.flow_date))
    return summary


def weighted_holding_days(fund_metrics: Iterable[FundMetrics]) -> float:
    """Average holding period across funds, weighted by current value."""
    total_days = 0.0
    total_value = 0.0
    for m in fund_metrics:
        total_days += m.current_value * m.average_holding_days
        total_value += m.current_value
    if total_value == 0:
        return 0.0
    return round(total_days / total_value, 1)


def fund_positions(
    funds: Mapping[str, Fund], metrics: Mapping[str, FundMetrics]
) -> list[FundPosition]:
    """Join funds with their metrics into aggregator inputs."""
    positions = []
    for key, m in metrics.items():
        fund = funds[key]
        positions.append(FundPosition(
            scheme=fund.scheme,
            current_value=m.current_value,
            category=m.category,
            amc=fund.amc,
            metadata=fund.metadata,
        ))
    return positions


# -- Series statistics ----------------------------------------------------------


def total_return(current_value: float, total_cost_basis: float) -> float | None:
    if total_cost_basis == 0:
        return None
    return (current_value - total_cost_basis) / total_cost_basis


def flow_adjusted_returns(points: list[PortfolioValuationPoint]) -> pd.Series:
    """Daily returns with the day's net invested cost change treated as a cash flow.

        r_t = V_t / (V_{t-1} + CF_t) - 1,  CF_t = cost_t - cost_{t-1}
    """
    if len(points) < 2:
        return pd.Series(dtype=float)
    index = pd.to_datetime([p.valuation_date for p in points])
    values = pd.Series([p.value for p in points], index=index, dtype=float)
    costs = pd.Series([p.cost for p in points], index=index, dtype=float)

    base = values.shift(1) + costs.diff()
    returns = values / base - 1
    returns[base <= 0] = 0.0
    return returns.dropna()


def time_weighted_return(points: list[PortfolioValuationPoint]) -> float | None:
    """Annualised time-weighted return of a portfolio valuation series."""
    returns = flow_adjusted_returns(points)
    if returns.empty:
        return None
    total = (1 + returns).prod() - 1
    n_days = (points[-1].valuation_date - points[0].valuation_date).days
    if n_days <= 0:
        return float(total)
    return float((1 + total) ** (365.25 / n_days) - 1)


def max_drawdown(points: list[PortfolioValuationPoint]) -> float | None:
    returns = flow_adjusted_returns(points)
    if returns.empty:
        return None
    return float(empyrical.max_drawdown(returns))


def annual_volatility(points: list[PortfolioValuationPoint]) -> float | None:
    returns = flow_adjusted_returns(points)
    if returns.empty:
        return None
    return float(empyrical.annual_volatility(returns))


def sharpe_ratio(points: list[PortfolioValuationPoint], risk_free_rate: float = 0.0) -> float | None:
    returns = flow_adjusted_returns(points)
    if returns.empty:
        return None
    return float(empyrical.sharpe_ratio(returns, risk_free=risk_free_rate))
