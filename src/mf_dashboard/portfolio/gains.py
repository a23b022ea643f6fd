from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

import pandas as pd

from mf_dashboard.config import (
    CATEGORIES,
    DEBT_TYPES,
    EQUITY_HOLDING_DAYS,
    EQUITY_TYPES,
    HYBRID_TYPES,
    OTHER_HOLDING_DAYS,
)
from mf_dashboard.dates import financial_year
from mf_dashboard.portfolio.models import (
    CapitalGains,
    FundMetadata,
    GainsBucket,
    LotConsumption,
)


def resolve_category(metadata: FundMetadata | None, fund_type: str = "") -> str:
    """Tax category of a fund: 'equity', 'debt' or 'hybrid'.

    Extended metadata wins when it carries a category; otherwise the
    statement's fund type is matched by substring.
    """
    if metadata is not None and metadata.category:
        cat = metadata.category.strip().lower()
        if cat in EQUITY_TYPES:
            return "equity"
        if cat in DEBT_TYPES:
            return "debt"
        if cat in HYBRID_TYPES:
            second = (metadata.second_category or "").lower()
            return "debt" if "debt" in second else "hybrid"
        return "hybrid"

    fund_type = (fund_type or "").lower()
    if "equity" in fund_type:
        return "equity"
    if "debt" in fund_type or "income" in fund_type:
        return "debt"
    return "hybrid"


def holding_threshold(category: str) -> int:
    return EQUITY_HOLDING_DAYS if category == "equity" else OTHER_HOLDING_DAYS


def is_short_term(holding_days: int, category: str) -> bool:
    return holding_days < holding_threshold(category)


def classify(consumptions: Iterable[LotConsumption], category: str) -> CapitalGains:
    """Bucket lot consumptions into STCG/LTCG, all-time and per financial year."""
    gains = CapitalGains()
    for event in consumptions:
        bucket = GainsBucket()
        if is_short_term(event.holding_days, category):
            bucket.stcg = event.gain
            bucket.stcg_redeemed = event.proceeds
        else:
            bucket.ltcg = event.gain
            bucket.ltcg_redeemed = event.proceeds
        gains.total.add(bucket)
        gains.by_year.setdefault(event.financial_year, GainsBucket()).add(bucket)
    return gains


def _category_buckets() -> dict[str, GainsBucket]:
    return {cat: GainsBucket() for cat in CATEGORIES}


@dataclass
class PortfolioCapitalGains:
    all_time: dict[str, GainsBucket] = field(default_factory=_category_buckets)
    current_year: dict[str, GainsBucket] = field(default_factory=_category_buckets)
    by_year: dict[str, dict[str, GainsBucket]] = field(default_factory=dict)

    def add_fund(self, category: str, gains: CapitalGains, current_fy: str) -> None:
        self.all_time[category].add(gains.total)
        for fy, bucket in gains.by_year.items():
            self.by_year.setdefault(fy, _category_buckets())[category].add(bucket)
            if fy == current_fy:
                self.current_year[category].add(bucket)

    def years(self) -> list[str]:
        """Financial years with activity, newest first."""
        return sorted(self.by_year, reverse=True)


def aggregate_capital_gains(
    fund_gains: Iterable[tuple[str, CapitalGains]],
    today: date | None = None,
) -> PortfolioCapitalGains:
    current_fy = financial_year(today or date.today())
    result = PortfolioCapitalGains()
    for category, gains in fund_gains:
        result.add_fund(category, gains, current_fy)
    return result


@dataclass(frozen=True)
class CapitalGainsRow:
    scheme: str
    folio: str
    category: str
    qty: float
    purchase_date: date
    purchase_nav: float
    redemption_date: date
    redemption_nav: float
    purchase_value: float
    redemption_value: float
    stcg: float
    ltcg: float
    holding_days: int
    fy: str


def capital_gains_rows(
    fund_events: Iterable[tuple[str, str, Iterable[LotConsumption]]],
) -> list[CapitalGainsRow]:
    """Per-slice report rows for (scheme, category, consumptions) triples.

    Rows come from the same consumption log that feeds `classify`, so the
    report and the totals can't disagree. Newest redemptions first.
    """
    rows = []
    for scheme, category, events in fund_events:
        for event in events:
            short = is_short_term(event.holding_days, category)
            rows.append(CapitalGainsRow(
                scheme=scheme,
                folio=event.folio,
                category=category.capitalize(),
                qty=event.units,
                purchase_date=event.purchase_date,
                purchase_nav=event.purchase_nav,
                redemption_date=event.sale_date,
                redemption_nav=event.sale_nav,
                purchase_value=event.cost,
                redemption_value=event.proceeds,
                stcg=event.gain if short else 0.0,
                ltcg=0.0 if short else event.gain,
                holding_days=event.holding_days,
                fy=event.financial_year,
            ))
    rows.sort(key=lambda r: r.redemption_date, reverse=True)
    return rows


def capital_gains_frame(rows: list[CapitalGainsRow], fy: str | None = None) -> pd.DataFrame:
    """Tabular form of the gains rows, optionally restricted to one FY."""
    columns = list(CapitalGainsRow.__dataclass_fields__)
    selected = [r for r in rows if fy is None or r.fy == fy]
    if not selected:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([r.__dict__ for r in selected], columns=columns)
