from __future__ import annotations

from collections import deque
from datetime import date
from typing import Iterable, Mapping

import pandas as pd

from mf_dashboard.config import UNITS_EPSILON
from mf_dashboard.dates import iter_days, period_start
from mf_dashboard.portfolio.fifo import consume_fifo
from mf_dashboard.portfolio.models import (
    DailyValuationPoint,
    NavPoint,
    PortfolioValuationPoint,
    Transaction,
    TxType,
    UnitBatch,
    coerce_float,
)

_VALUATION_COLUMNS = ["date", "units", "nav", "value", "cost"]
_PORTFOLIO_COLUMNS = ["date", "value", "cost", "unrealized_gain", "unrealized_gain_pct", "funds"]


def _build_nav_map(
    nav_history: Iterable[NavPoint],
    latest_nav: float | None,
    latest_nav_date: date | None,
    today: date,
) -> dict[date, float]:
    nav_map = {p.nav_date: p.nav for p in nav_history if p.nav and p.nav > 0}
    # The latest NAV is authoritative for its date unless today already has one
    if latest_nav and latest_nav > 0 and today not in nav_map:
        nav_map[latest_nav_date or today] = latest_nav
    return nav_map


def _apply_transaction(lots: deque[UnitBatch], tx: Transaction) -> None:
    units = coerce_float(tx.units)
    if tx.tx_type is TxType.PURCHASE:
        if units > 0:
            nav = coerce_float(tx.nav)
            lots.append(UnitBatch(units, nav if nav > 0 else 0.0, tx.trade_date))
    elif tx.tx_type is TxType.REDEMPTION:
        consume_fifo(lots, abs(units))


def build_daily_valuation(
    transactions: list[Transaction],
    nav_history: Iterable[NavPoint],
    latest_nav: float | None = None,
    latest_nav_date: date | None = None,
    today: date | None = None,
) -> list[DailyValuationPoint]:
    """Rebuild one fund's daily value and cost from its first transaction to today.

    Each day's transactions are replayed through a FIFO lot queue (all folios
    together), then the day is valued at that day's NAV or the last NAV seen
    before it. Days with no known NAV or no units are skipped, not zero-filled.
    """
    nav_history = list(nav_history)
    if not nav_history or not transactions:
        return []

    today = today or date.today()
    nav_map = _build_nav_map(nav_history, latest_nav, latest_nav_date, today)
    if not nav_map:
        return []

    tx_by_date: dict[date, list[Transaction]] = {}
    for tx in transactions:
        tx_by_date.setdefault(tx.trade_date, []).append(tx)
    first_date = min(tx_by_date)

    # NAVs dated before the first transaction still seed the carry-forward
    earlier = [d for d in nav_map if d < first_date]
    last_nav = nav_map[max(earlier)] if earlier else None

    lots: deque[UnitBatch] = deque()
    points: list[DailyValuationPoint] = []
    for day in iter_days(first_date, today):
        for tx in tx_by_date.get(day, ()):
            _apply_transaction(lots, tx)

        nav = nav_map.get(day) or last_nav
        if nav:
            last_nav = nav

        units = sum(lot.units for lot in lots)
        if nav and units > UNITS_EPSILON:
            cost = sum(lot.cost for lot in lots)
            points.append(DailyValuationPoint(
                valuation_date=day,
                units=round(units, 4),
                nav=nav,
                value=round(units * nav, 2),
                cost=round(cost, 2),
            ))
    return points


def valuation_frame(points: list[DailyValuationPoint]) -> pd.DataFrame:
    """Daily valuation points as a DataFrame indexed by date."""
    if not points:
        return pd.DataFrame(columns=_VALUATION_COLUMNS[1:])
    df = pd.DataFrame(
        [(p.valuation_date, p.units, p.nav, p.value, p.cost) for p in points],
        columns=_VALUATION_COLUMNS,
    )
    df["date"] = pd.to_datetime(df["date"])
    return df.set_index("date")


def aggregate_daily_valuations(
    per_fund: Mapping[str, list[DailyValuationPoint]],
) -> list[PortfolioValuationPoint]:
    """Sum fund series into one portfolio series over the union of their dates.

    A fund without a point on a date is left out of that date's sum (it is
    not treated as zero), so `funds` reports how many funds contributed.
    """
    frames = []
    for key, points in per_fund.items():
        if not points:
            continue
        df = pd.DataFrame(
            [(p.valuation_date, p.value, p.cost) for p in points],
            columns=["date", "value", "cost"],
        )
        df["fund"] = key
        frames.append(df)
    if not frames:
        return []

    combined = pd.concat(frames, ignore_index=True)
    grouped = combined.groupby("date").agg(
        value=("value", "sum"),
        cost=("cost", "sum"),
        funds=("fund", "nunique"),
    ).sort_index()

    result = []
    for day, row in grouped.iterrows():
        value = float(row["value"])
        cost = float(row["cost"])
        if value <= 0:
            continue
        gain = value - cost
        result.append(PortfolioValuationPoint(
            valuation_date=day,
            value=round(value, 2),
            cost=round(cost, 2),
            unrealized_gain=round(gain, 2),
            unrealized_gain_pct=round(gain / cost * 100, 2) if cost > 0 else 0.0,
            funds=int(row["funds"]),
        ))
    return result


def portfolio_frame(points: list[PortfolioValuationPoint]) -> pd.DataFrame:
    if not points:
        return pd.DataFrame(columns=_PORTFOLIO_COLUMNS[1:])
    df = pd.DataFrame(
        [
            (p.valuation_date, p.value, p.cost, p.unrealized_gain, p.unrealized_gain_pct, p.funds)
            for p in points
        ],
        columns=_PORTFOLIO_COLUMNS,
    )
    df["date"] = pd.to_datetime(df["date"])
    return df.set_index("date")


def filter_period(points: list, period: str, today: date | None = None) -> list:
    """Keep the points of a series that fall inside a chart period ending today."""
    today = today or date.today()
    start = period_start(period, today)
    if start is None:
        return list(points)
    return [p for p in points if start <= p.valuation_date <= today]
