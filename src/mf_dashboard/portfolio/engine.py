from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping

from mf_dashboard.config import Settings
from mf_dashboard.jobs import ValuationJob, ValuationResult
from mf_dashboard.names import TitleNormalizer
from mf_dashboard.portfolio.analytics import PortfolioAggregator, PortfolioAnalytics
from mf_dashboard.portfolio.benchmarks import BenchmarkReturns, aggregate_benchmark_returns
from mf_dashboard.portfolio.funds import build_funds
from mf_dashboard.portfolio.metrics import (
    FundMetrics,
    PortfolioSummary,
    calculate_fund_metrics,
    calculate_summary,
    fund_positions,
)
from mf_dashboard.portfolio.models import Fund, FundMetadata


@dataclass
class PortfolioReport:
    funds: dict[str, Fund]
    metrics: dict[str, FundMetrics]
    summary: PortfolioSummary
    analytics: PortfolioAnalytics
    benchmarks: dict[str, BenchmarkReturns]
    valuation: ValuationResult | None


def analyze_portfolio(
    statement: Mapping,
    stats: Mapping[str, FundMetadata | dict] | None = None,
    today: date | None = None,
    settings: Settings | None = None,
    with_valuation: bool = True,
) -> PortfolioReport:
    """Parsed statement -> funds -> FIFO metrics -> summary, analytics and daily series."""
    settings = settings or Settings()
    today = today or date.today()

    funds = build_funds(statement, stats)
    metrics = {key: calculate_fund_metrics(fund, today) for key, fund in funds.items()}
    summary = calculate_summary(metrics.values(), today)

    aggregator = PortfolioAggregator(top_n=settings.top_n, titles=TitleNormalizer())
    analytics = aggregator.aggregate(fund_positions(funds, metrics))

    valuation = None
    if with_valuation:
        valuation = ValuationJob(funds, settings.valuation_chunk_size, today).run()

    return PortfolioReport(
        funds=funds,
        metrics=metrics,
        summary=summary,
        analytics=analytics,
        benchmarks=aggregate_benchmark_returns(funds.values()),
        valuation=valuation,
    )
