from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import date

from mf_dashboard.dates import financial_year, parse_date


def coerce_float(value, default: float = 0.0) -> float:
    """Read a numeric field from external data; None, NaN and junk become default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def _optional_float(value) -> float | None:
    if value is None:
        return None
    result = coerce_float(value, default=math.nan)
    return None if math.isnan(result) else result


class TxType(enum.Enum):
    PURCHASE = "PURCHASE"
    REDEMPTION = "REDEMPTION"


class CashFlowType(enum.Enum):
    BUY = "Buy"
    SELL = "Sell"
    VALUATION = "Valuation"


@dataclass(frozen=True)
class Transaction:
    tx_type: TxType
    trade_date: date
    units: float
    nav: float
    folio: str = "default"


@dataclass(frozen=True)
class NavPoint:
    nav_date: date
    nav: float


@dataclass
class UnitBatch:
    """An open tax lot. `units` shrinks as redemptions consume it."""
    units: float
    cost_nav: float
    purchase_date: date

    @property
    def cost(self) -> float:
        return self.units * self.cost_nav


@dataclass(frozen=True)
class LotConsumption:
    """One FIFO slice: part (or all) of a lot sold by a redemption."""
    folio: str
    units: float
    purchase_date: date
    purchase_nav: float
    sale_date: date
    sale_nav: float
    holding_days: int

    @property
    def cost(self) -> float:
        return self.units * self.purchase_nav

    @property
    def proceeds(self) -> float:
        return self.units * self.sale_nav

    @property
    def gain(self) -> float:
        return self.proceeds - self.cost

    @property
    def financial_year(self) -> str:
        return financial_year(self.sale_date)


@dataclass(frozen=True)
class CashFlow:
    flow_type: CashFlowType
    amount: float
    flow_date: date
    nav: float | None = None
    units: float | None = None


@dataclass(frozen=True)
class FolioSummary:
    folio: str
    invested: float
    withdrawn: float
    realized_gain: float
    total_units_purchased: float
    total_units_redeemed: float
    remaining_units: float
    remaining_cost: float
    current_value: float
    unrealized_gain: float
    unrealized_gain_pct: float
    average_holding_days: float
    cash_flows: tuple[CashFlow, ...] = ()


@dataclass
class GainsBucket:
    stcg: float = 0.0
    ltcg: float = 0.0
    stcg_redeemed: float = 0.0
    ltcg_redeemed: float = 0.0

    def add(self, other: GainsBucket) -> None:
        self.stcg += other.stcg
        self.ltcg += other.ltcg
        self.stcg_redeemed += other.stcg_redeemed
        self.ltcg_redeemed += other.ltcg_redeemed

    @property
    def total(self) -> float:
        return self.stcg + self.ltcg

    @property
    def redeemed(self) -> float:
        return self.stcg_redeemed + self.ltcg_redeemed


@dataclass
class CapitalGains:
    """A fund's realised gains, all-time and keyed by financial year."""
    total: GainsBucket = field(default_factory=GainsBucket)
    by_year: dict[str, GainsBucket] = field(default_factory=dict)


@dataclass(frozen=True)
class DailyValuationPoint:
    valuation_date: date
    units: float
    nav: float
    value: float
    cost: float


@dataclass(frozen=True)
class PortfolioValuationPoint:
    valuation_date: date
    value: float
    cost: float
    unrealized_gain: float
    unrealized_gain_pct: float
    funds: int


# -- Extended per-ISIN metadata ------------------------------------------------


@dataclass(frozen=True)
class Holding:
    company_name: str = "Unknown"
    corpus_per: float = 0.0
    nature_name: str = "Unknown"
    sector_name: str = "Unknown"
    instrument_name: str = "Unknown"

    @classmethod
    def from_dict(cls, raw: dict) -> Holding:
        return cls(
            company_name=raw.get("company_name") or "Unknown",
            corpus_per=coerce_float(raw.get("corpus_per")),
            nature_name=raw.get("nature_name") or "Unknown",
            sector_name=raw.get("sector_name") or "Unknown",
            instrument_name=raw.get("instrument_name") or "Unknown",
        )


@dataclass(frozen=True)
class ReturnStats:
    return1y: float | None = None
    return3y: float | None = None
    return5y: float | None = None
    cat_return1y: float | None = None
    cat_return3y: float | None = None
    cat_return5y: float | None = None
    index_return1y: float | None = None
    index_return3y: float | None = None
    index_return5y: float | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> ReturnStats:
        return cls(**{
            name: _optional_float(raw.get(name))
            for name in cls.__dataclass_fields__
        })

    def fund_return(self, horizon: str) -> float | None:
        """Fund return for '1y'/'3y'/'5y', falling back to the category average."""
        own = getattr(self, f"return{horizon}")
        if own is not None:
            return own
        return getattr(self, f"cat_return{horizon}")

    def index_return(self, horizon: str) -> float | None:
        return getattr(self, f"index_return{horizon}")


@dataclass(frozen=True)
class MarketCapSplit:
    large: float = 0.0
    mid: float = 0.0
    small: float = 0.0


@dataclass(frozen=True)
class PortfolioStats:
    asset_allocation: dict[str, float] = field(default_factory=dict)
    large_cap: float | None = None
    mid_cap: float | None = None
    small_cap: float | None = None
    market_cap_per: MarketCapSplit | None = None
    equity_sector_per: dict[str, float] = field(default_factory=dict)

    @property
    def has_cap_split(self) -> bool:
        return any(v is not None for v in (self.large_cap, self.mid_cap, self.small_cap))

    @classmethod
    def from_dict(cls, raw: dict) -> PortfolioStats:
        mcp = raw.get("market_cap_per")
        return cls(
            asset_allocation={
                str(k): v for k, v in (raw.get("asset_allocation") or {}).items()
            },
            large_cap=_optional_float(raw.get("large_cap")),
            mid_cap=_optional_float(raw.get("mid_cap")),
            small_cap=_optional_float(raw.get("small_cap")),
            market_cap_per=MarketCapSplit(
                large=coerce_float(mcp.get("large")),
                mid=coerce_float(mcp.get("mid")),
                small=coerce_float(mcp.get("small")),
            ) if mcp else None,
            equity_sector_per={
                str(k): v for k, v in (raw.get("equity_sector_per") or {}).items()
                if v is not None
            },
        )


@dataclass(frozen=True)
class FundMetadata:
    """Optional per-ISIN statistics from the external stats source.

    Every field is optional; absent data falls back to the defaults here and
    callers use category/name heuristics instead.
    """
    category: str | None = None
    sub_category: str | None = None
    second_category: str | None = None
    amc: str | None = None
    latest_nav: float | None = None
    latest_nav_date: date | None = None
    nav_history: tuple[NavPoint, ...] = ()
    benchmark: str | None = None
    holdings: tuple[Holding, ...] = ()
    return_stats: ReturnStats | None = None
    portfolio_stats: PortfolioStats | None = None

    @classmethod
    def from_dict(cls, raw: dict | None) -> FundMetadata | None:
        if not raw:
            return None

        history = []
        for entry in raw.get("nav_history") or []:
            nav_date = parse_date(entry.get("date"))
            nav = coerce_float(entry.get("nav"))
            if nav_date is not None and nav > 0:
                history.append(NavPoint(nav_date, nav))
        history.sort(key=lambda p: p.nav_date)

        latest_nav = _optional_float(raw.get("latest_nav"))
        return cls(
            category=raw.get("category") or None,
            sub_category=raw.get("sub_category") or None,
            second_category=raw.get("second_category") or None,
            amc=(raw.get("amc") or "").strip() or None,
            latest_nav=latest_nav if latest_nav and latest_nav > 0 else None,
            latest_nav_date=parse_date(raw.get("latest_nav_date")),
            nav_history=tuple(history),
            benchmark=raw.get("benchmark") or None,
            holdings=tuple(Holding.from_dict(h) for h in raw.get("holdings") or []),
            return_stats=(
                ReturnStats.from_dict(raw["return_stats"])
                if raw.get("return_stats") else None
            ),
            portfolio_stats=(
                PortfolioStats.from_dict(raw["portfolio_stats"])
                if raw.get("portfolio_stats") else None
            ),
        )


@dataclass(frozen=True)
class FundValuation:
    valuation_date: date | None = None
    nav: float = 0.0
    value: float = 0.0
    cost: float = 0.0


@dataclass
class Fund:
    """Aggregate root for one scheme across all of its folios."""
    key: str
    scheme: str
    transactions: list[Transaction] = field(default_factory=list)
    scheme_display: str = ""
    isin: str | None = None
    amc: str = ""
    fund_type: str = ""
    folios: list[str] = field(default_factory=list)
    metadata: FundMetadata | None = None
    valuation: FundValuation = field(default_factory=FundValuation)

    @property
    def net_units(self) -> float:
        total = 0.0
        for tx in self.transactions:
            units = abs(coerce_float(tx.units))
            total += units if tx.tx_type is TxType.PURCHASE else -units
        return total
