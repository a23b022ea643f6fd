from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import date

from mf_dashboard.config import LOT_EPSILON, UNITS_EPSILON
from mf_dashboard.dates import holding_days
from mf_dashboard.portfolio.models import (
    CashFlow,
    CashFlowType,
    FolioSummary,
    FundValuation,
    LotConsumption,
    Transaction,
    TxType,
    UnitBatch,
    coerce_float,
)

logger = logging.getLogger(__name__)


def consume_fifo(lots: deque[UnitBatch], units: float) -> tuple[list[tuple[UnitBatch, float]], float]:
    """Remove `units` from the front of the lot queue.

    Returns the (lot, units_taken) slices in consumption order and the
    number of units that could not be matched because the queue ran dry.
    Lots within LOT_EPSILON of the remaining amount are taken whole.
    """
    slices: list[tuple[UnitBatch, float]] = []
    remaining = units
    while remaining > LOT_EPSILON and lots:
        lot = lots[0]
        if lot.units <= remaining + LOT_EPSILON:
            taken = lot.units
            remaining -= lot.units
            lots.popleft()
        else:
            taken = remaining
            lot.units -= remaining
            remaining = 0.0
        slices.append((lot, taken))
    return slices, max(remaining, 0.0)


@dataclass
class FolioState:
    folio: str
    lots: deque[UnitBatch] = field(default_factory=deque)
    invested: float = 0.0
    withdrawn: float = 0.0
    realized_gain: float = 0.0
    units_purchased: float = 0.0
    units_redeemed: float = 0.0
    cash_flows: list[CashFlow] = field(default_factory=list)
    consumptions: list[LotConsumption] = field(default_factory=list)

    @property
    def remaining_units(self) -> float:
        return sum(lot.units for lot in self.lots)

    @property
    def remaining_cost(self) -> float:
        return sum(lot.cost for lot in self.lots)


def process_purchase(state: FolioState, tx: Transaction) -> None:
    units = coerce_float(tx.units)
    nav = coerce_float(tx.nav)
    if units <= 0:
        return

    state.units_purchased += units
    if nav > 0:
        amount = units * nav
        state.invested += amount
        state.cash_flows.append(CashFlow(CashFlowType.BUY, -amount, tx.trade_date, nav, units))
    # Invalid NAV still books the units, at zero cost
    state.lots.append(UnitBatch(units, nav if nav > 0 else 0.0, tx.trade_date))


def process_redemption(state: FolioState, tx: Transaction) -> None:
    units_to_sell = abs(coerce_float(tx.units))
    sale_nav = coerce_float(tx.nav)
    if units_to_sell <= 0:
        return

    state.units_redeemed += units_to_sell
    sale_amount = units_to_sell * max(sale_nav, 0.0)
    state.withdrawn += sale_amount
    if sale_amount > 0:
        state.cash_flows.append(
            CashFlow(CashFlowType.SELL, sale_amount, tx.trade_date, sale_nav, units_to_sell)
        )

    slices, short = consume_fifo(state.lots, units_to_sell)
    for lot, taken in slices:
        event = LotConsumption(
            folio=state.folio,
            units=taken,
            purchase_date=lot.purchase_date,
            purchase_nav=lot.cost_nav,
            sale_date=tx.trade_date,
            sale_nav=max(sale_nav, 0.0),
            holding_days=holding_days(lot.purchase_date, tx.trade_date),
        )
        state.consumptions.append(event)
        state.realized_gain += event.gain

    if short > LOT_EPSILON:
        logger.warning(
            "Insufficient units for REDEMPTION: folio %s on %s, short %.4f units",
            state.folio, tx.trade_date, short,
        )


_TX_HANDLERS = {
    TxType.PURCHASE: process_purchase,
    TxType.REDEMPTION: process_redemption,
}


def run_folio(folio: str, transactions: list[Transaction]) -> FolioState:
    """Replay one folio's transactions oldest-first through a fresh lot queue."""
    state = FolioState(folio)
    # sorted() is stable, so same-day transactions keep statement order
    for tx in sorted(transactions, key=lambda t: t.trade_date):
        handler = _TX_HANDLERS.get(tx.tx_type)
        if handler:
            handler(state, tx)
    return state


def _average_holding_days(lots, units: float, today: date) -> float:
    if units <= UNITS_EPSILON:
        return 0.0
    weighted = sum(lot.units * holding_days(lot.purchase_date, today) for lot in lots)
    return weighted / units


def summarize_folio(
    state: FolioState,
    valuation: FundValuation,
    fund_units: float,
    today: date,
) -> FolioSummary:
    units = state.remaining_units
    cost = state.remaining_cost
    is_open = units > UNITS_EPSILON

    current_value = 0.0
    if is_open:
        if valuation.nav > 0:
            current_value = valuation.nav * units
        elif valuation.value > 0 and fund_units > 0:
            current_value = units / fund_units * valuation.value

    unrealized = current_value - cost
    return FolioSummary(
        folio=state.folio,
        invested=state.invested,
        withdrawn=state.withdrawn,
        realized_gain=state.realized_gain,
        total_units_purchased=state.units_purchased,
        total_units_redeemed=state.units_redeemed,
        remaining_units=units if is_open else 0.0,
        remaining_cost=cost if is_open else 0.0,
        current_value=current_value,
        unrealized_gain=unrealized,
        unrealized_gain_pct=unrealized / cost * 100 if cost > 0 else 0.0,
        average_holding_days=_average_holding_days(state.lots, units, today),
        cash_flows=tuple(state.cash_flows),
    )


@dataclass(frozen=True)
class LedgerRun:
    """Everything one FIFO pass over a fund produces."""
    folios: dict[str, FolioSummary]
    consumptions: tuple[LotConsumption, ...]
    open_lots: tuple[UnitBatch, ...]

    @property
    def invested(self) -> float:
        return sum(f.invested for f in self.folios.values())

    @property
    def withdrawn(self) -> float:
        return sum(f.withdrawn for f in self.folios.values())

    @property
    def realized_gain(self) -> float:
        return sum(f.realized_gain for f in self.folios.values())

    @property
    def remaining_units(self) -> float:
        return sum(lot.units for lot in self.open_lots)

    @property
    def remaining_cost(self) -> float:
        return sum(lot.cost for lot in self.open_lots)


def run_ledger(
    transactions: list[Transaction],
    valuation: FundValuation | None = None,
    today: date | None = None,
) -> LedgerRun:
    """Group a fund's transactions by folio and replay each through FIFO.

    Rebuilt from scratch on every call; nothing is patched incrementally.
    """
    valuation = valuation or FundValuation()
    today = today or date.today()

    by_folio: dict[str, list[Transaction]] = {}
    for tx in transactions:
        by_folio.setdefault(tx.folio or "default", []).append(tx)

    states = {folio: run_folio(folio, txs) for folio, txs in by_folio.items()}
    fund_units = sum(s.remaining_units for s in states.values())

    folios: dict[str, FolioSummary] = {}
    consumptions: list[LotConsumption] = []
    open_lots: list[UnitBatch] = []
    for folio, state in states.items():
        folios[folio] = summarize_folio(state, valuation, fund_units, today)
        consumptions.extend(state.consumptions)
        if state.remaining_units > UNITS_EPSILON:
            open_lots.extend(
                UnitBatch(lot.units, lot.cost_nav, lot.purchase_date) for lot in state.lots
            )

    return LedgerRun(folios, tuple(consumptions), tuple(open_lots))
