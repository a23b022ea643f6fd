"""Money-weighted annualised return over irregular cash flows.

Solves sum(amount_i / (1 + r) ** (days_i / 365)) = 0 with days measured from
the earliest flow. Newton-Raphson runs first; if it doesn't converge the root
is bracketed and bisected. Rates are returned as percentages.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from mf_dashboard.portfolio.models import CashFlow

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
PRECISION = 1e-6
MIN_DERIVATIVE = 1e-10
RATE_FLOOR = -0.99
RATE_CEILING = 10.0
BRACKET_HIGH = 5.0
BRACKET_PROBES = 50


@dataclass(frozen=True)
class XirrResult:
    rate: float          # percent
    converged: bool
    method: str          # "newton" | "bisection" | "fallback"


def _year_fractions(dates: Sequence[date]) -> list[float]:
    first = min(dates)
    return [(d - first).days / 365 for d in dates]


def npv(rate: float, years: Sequence[float], amounts: Sequence[float]) -> float:
    return sum(a / (1 + rate) ** t for t, a in zip(years, amounts))


def npv_derivative(rate: float, years: Sequence[float], amounts: Sequence[float]) -> float:
    return sum(-t * a / ((1 + rate) ** t * (1 + rate)) for t, a in zip(years, amounts))


def _clamp(rate: float) -> float:
    return min(max(rate, RATE_FLOOR), RATE_CEILING)


def _newton(years, amounts, guess: float) -> tuple[float, bool]:
    rate = guess
    for i in range(MAX_ITERATIONS):
        value = npv(rate, years, amounts)
        if abs(value) < PRECISION:
            return rate, True
        slope = npv_derivative(rate, years, amounts)
        if abs(slope) < MIN_DERIVATIVE:
            break
        step = value / slope
        rate = _clamp(rate - step)
        if i > 0 and abs(step) < PRECISION:
            break
    return rate, False


def _bisect(years, amounts, rate: float) -> tuple[float, bool]:
    low, high = RATE_FLOOR, BRACKET_HIGH
    npv_low = npv(low, years, amounts)
    npv_high = npv(high, years, amounts)

    if npv_low * npv_high > 0:
        for _ in range(BRACKET_PROBES):
            if abs(npv_low) < abs(npv_high):
                low = max(low - (high - low), RATE_FLOOR)
                npv_low = npv(low, years, amounts)
            else:
                high = min(high + (high - low), RATE_CEILING)
                npv_high = npv(high, years, amounts)
            if npv_low * npv_high < 0:
                break

    if npv_low * npv_high >= 0:
        return rate, False

    for _ in range(MAX_ITERATIONS):
        rate = (low + high) / 2
        npv_mid = npv(rate, years, amounts)
        if abs(npv_mid) < PRECISION:
            return rate, True
        if npv_mid * npv_low < 0:
            high = rate
        else:
            low, npv_low = rate, npv_mid
        if abs(high - low) < PRECISION:
            return rate, True
    return rate, False


def solve_xirr(
    dates: Sequence[date],
    amounts: Sequence[float],
    guess: float = 0.10,
) -> XirrResult | None:
    """Solve for the XIRR of (date, amount) pairs; outflows negative.

    Returns None when there are fewer than two flows or the flows don't
    include both signs. A non-converged result is still returned as a best
    estimate with `converged=False`.
    """
    if len(dates) != len(amounts):
        raise ValueError("dates and amounts must have the same length")
    if len(amounts) < 2:
        return None
    if not any(a < 0 for a in amounts) or not any(a > 0 for a in amounts):
        return None

    years = _year_fractions(dates)

    rate, ok = _newton(years, amounts, guess)
    if ok:
        return XirrResult(rate * 100, True, "newton")

    rate, ok = _bisect(years, amounts, rate)
    if ok:
        return XirrResult(rate * 100, True, "bisection")

    logger.debug("XIRR did not converge over %d flows, best estimate %.6f", len(amounts), rate)
    return XirrResult(rate * 100, False, "fallback")


def compute_xirr(dates: Sequence[date], amounts: Sequence[float]) -> float | None:
    """XIRR as a percentage, or None when it can't be computed."""
    result = solve_xirr(dates, amounts)
    return result.rate if result else None


def cash_flow_xirr(flows: Iterable[CashFlow], guess: float = 0.10) -> XirrResult | None:
    flows = list(flows)
    return solve_xirr([f.flow_date for f in flows], [f.amount for f in flows], guess)
