from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from mf_dashboard.config import (
    ASSET_BUCKETS,
    CASH_EQUIVALENTS,
    MARKET_CAP_BUCKETS,
    OTHERS_LABEL,
    RETURN_HORIZONS,
    UNCLASSIFIED_SECTOR,
    UNKNOWN_AMC,
)
from mf_dashboard.names import TitleNormalizer
from mf_dashboard.portfolio.models import FundMetadata, Holding, coerce_float


@dataclass(frozen=True)
class FundPosition:
    """What the aggregator needs to know about one fund right now."""
    scheme: str
    current_value: float
    category: str = "hybrid"
    amc: str = ""
    metadata: FundMetadata | None = None


@dataclass
class HoldingExposure:
    percentage: float = 0.0
    nature: str = "Unknown"
    sector: str = "Unknown"
    instrument: str = "Unknown"


@dataclass
class PortfolioAnalytics:
    total_value: float = 0.0
    asset_allocation: dict[str, float] = field(
        default_factory=lambda: {k: 0.0 for k in ASSET_BUCKETS}
    )
    market_cap: dict[str, float] = field(
        default_factory=lambda: {k: 0.0 for k in MARKET_CAP_BUCKETS}
    )
    sector: dict[str, float] = field(default_factory=dict)
    amc: dict[str, float] = field(default_factory=dict)
    holdings: dict[str, HoldingExposure] = field(default_factory=dict)
    weighted_returns: dict[str, float | None] = field(
        default_factory=lambda: {k: None for k in RETURN_HORIZONS}
    )


def _round_map(values: dict[str, float], digits: int = 2) -> dict[str, float]:
    return {k: round(v, digits) for k, v in values.items()}


def _renormalize(values: dict[str, float]) -> dict[str, float]:
    total = sum(values.values())
    if total <= 0:
        return values
    return {k: v / total * 100 for k, v in values.items()}


def top_with_others(values: dict[str, float], n: int) -> dict[str, float]:
    """Largest n entries, with everything else summed under 'Others'."""
    ranked = sorted(values.items(), key=lambda kv: kv[1], reverse=True)
    out = dict(ranked[:n])
    others = sum(v for _, v in ranked[n:])
    if others > 0:
        out[OTHERS_LABEL] = out.get(OTHERS_LABEL, 0.0) + others
    return out


def top_holdings(
    holdings: dict[str, HoldingExposure], n: int
) -> tuple[list[tuple[str, HoldingExposure]], float]:
    """Largest n holdings and the summed percentage of the rest."""
    ranked = sorted(holdings.items(), key=lambda kv: kv[1].percentage, reverse=True)
    others = sum(h.percentage for _, h in ranked[n:])
    return ranked[:n], round(others, 6)


def _commodity_bucket(position: FundPosition) -> str:
    sub_category = ((position.metadata and position.metadata.sub_category) or "").lower()
    name = position.scheme.lower()
    if "gold" in sub_category or "gold" in name:
        return "gold"
    if "silver" in sub_category or "silver" in name:
        return "silver"
    return "debt"


def _asset_bucket(key: str, position: FundPosition) -> str:
    key = key.strip().lower()
    if "equity" in key:
        return "equity"
    if "debt" in key:
        return "debt"
    if "commodit" in key or "gold" in key or "silver" in key:
        return _commodity_bucket(position)
    # cash, real estate and anything unlabelled sit with debt
    return "debt"


class PortfolioAggregator:
    """Rolls per-fund metrics into portfolio-wide, value-weighted breakdowns."""

    def __init__(self, top_n: int = 10, titles: TitleNormalizer | None = None) -> None:
        self._top_n = top_n
        self._titles = titles if titles is not None else TitleNormalizer()

    def aggregate(self, positions: Iterable[FundPosition]) -> PortfolioAnalytics:
        result = PortfolioAnalytics()
        held = [p for p in positions if coerce_float(p.current_value) > 0]
        result.total_value = sum(p.current_value for p in held)
        if result.total_value <= 0:
            return result

        return_sums = {h: 0.0 for h in RETURN_HORIZONS}
        return_weights = {h: 0.0 for h in RETURN_HORIZONS}

        for position in held:
            weight = position.current_value / result.total_value
            self._add_asset_allocation(result, position, weight)
            self._add_market_cap(result, position, weight)
            self._add_sector(result, position, weight)
            self._add_amc(result, position, weight)
            self._add_holdings(result, position, weight)

            stats = position.metadata and position.metadata.return_stats
            if stats:
                for horizon in RETURN_HORIZONS:
                    r = stats.fund_return(horizon)
                    if r is not None:
                        return_sums[horizon] += r * weight
                        return_weights[horizon] += weight

        result.asset_allocation = _round_map(_renormalize(result.asset_allocation))
        result.market_cap = _round_map(_renormalize(result.market_cap))
        result.sector = _round_map(top_with_others(result.sector, self._top_n))
        result.amc = _round_map(top_with_others(result.amc, self._top_n))
        for exposure in result.holdings.values():
            exposure.percentage = round(exposure.percentage, 6)
        result.weighted_returns = {
            h: round(return_sums[h] / return_weights[h], 2) if return_weights[h] > 0 else None
            for h in RETURN_HORIZONS
        }
        return result

    def _add_asset_allocation(self, result, position: FundPosition, weight: float) -> None:
        ps = position.metadata and position.metadata.portfolio_stats
        breakdown = {
            k: coerce_float(v) for k, v in (ps.asset_allocation if ps else {}).items()
        }
        breakdown = {k: v for k, v in breakdown.items() if v > 0}
        total = sum(breakdown.values())

        if total > 0:
            for key, pct in breakdown.items():
                bucket = _asset_bucket(key, position)
                result.asset_allocation[bucket] += pct / total * weight * 100
            return

        commodity = _commodity_bucket(position)
        if commodity != "debt":
            bucket = commodity
        elif position.category == "equity":
            bucket = "equity"
        else:
            bucket = "debt"
        result.asset_allocation[bucket] += weight * 100

    def _add_market_cap(self, result, position: FundPosition, weight: float) -> None:
        ps = position.metadata and position.metadata.portfolio_stats
        split = None
        if ps and ps.has_cap_split:
            split = (ps.large_cap or 0.0, ps.mid_cap or 0.0, ps.small_cap or 0.0)
        elif ps and ps.market_cap_per:
            mcp = ps.market_cap_per
            split = (mcp.large, mcp.mid, mcp.small)

        if split is not None:
            total = sum(split) or 100
            for bucket, pct in zip(MARKET_CAP_BUCKETS, split):
                result.market_cap[bucket] += pct / total * weight * 100
            return

        name = position.scheme.lower()
        if "small" in name:
            result.market_cap["small"] += weight * 100
        elif "mid" in name:
            result.market_cap["mid"] += weight * 100
        else:
            result.market_cap["large"] += weight * 100

    def _add_sector(self, result, position: FundPosition, weight: float) -> None:
        ps = position.metadata and position.metadata.portfolio_stats
        if ps and ps.equity_sector_per:
            for sector, pct in ps.equity_sector_per.items():
                name = sector.strip()
                result.sector[name] = result.sector.get(name, 0.0) + coerce_float(pct) * weight
        else:
            result.sector[UNCLASSIFIED_SECTOR] = (
                result.sector.get(UNCLASSIFIED_SECTOR, 0.0) + weight * 100
            )

    def _add_amc(self, result, position: FundPosition, weight: float) -> None:
        raw = (position.metadata and position.metadata.amc) or position.amc or UNKNOWN_AMC
        name = UNKNOWN_AMC if raw == UNKNOWN_AMC else self._titles.standardize(raw)
        result.amc[name] = result.amc.get(name, 0.0) + weight * 100

    def _add_holdings(self, result, position: FundPosition, weight: float) -> None:
        holdings: tuple[Holding, ...] = position.metadata.holdings if position.metadata else ()
        if not holdings:
            return

        fund_total = sum(h.corpus_per for h in holdings)
        for h in holdings:
            if h.corpus_per <= 0:
                continue
            exposure = result.holdings.get(h.company_name)
            if exposure is None:
                exposure = HoldingExposure(
                    nature=h.nature_name, sector=h.sector_name, instrument=h.instrument_name
                )
                result.holdings[h.company_name] = exposure
            exposure.percentage += h.corpus_per * weight

        if 0 < fund_total < 100:
            cash = result.holdings.get(CASH_EQUIVALENTS)
            if cash is None:
                cash = HoldingExposure(nature="Debt", sector="Cash", instrument=CASH_EQUIVALENTS)
                result.holdings[CASH_EQUIVALENTS] = cash
            cash.percentage += (100 - fund_total) * weight
