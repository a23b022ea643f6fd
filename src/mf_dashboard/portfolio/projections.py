from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Projection:
    years: int
    future_value: float
    total_invested: float
    gains: float
    gains_pct: float


def calculate_projections(
    current_value: float,
    monthly_inflow: float,
    cagr: float = 12.0,
    stepup: float = 0.0,
    years: tuple[int, ...] = (5, 10, 15, 20),
) -> list[Projection]:
    """Future value of the current corpus plus a monthly SIP.

    `cagr` and `stepup` are annual percentages; the SIP grows by `stepup`
    once a year. Contributions are made at the start of each month.
    """
    monthly_rate = cagr / 100 / 12
    annual_stepup = stepup / 100

    def _annuity(n_months: int) -> float:
        if monthly_rate == 0:
            return float(n_months)
        return ((1 + monthly_rate) ** n_months - 1) / monthly_rate * (1 + monthly_rate)

    results = []
    for horizon in years:
        months = horizon * 12
        fv_lump = current_value * (1 + monthly_rate) ** months

        if stepup == 0:
            fv_sip = monthly_inflow * _annuity(months)
            sip_invested = monthly_inflow * months
        else:
            fv_sip = 0.0
            sip_invested = 0.0
            sip = monthly_inflow
            for y in range(horizon):
                # each year's contributions then compound for the remaining years
                fv_year = sip * _annuity(12)
                fv_sip += fv_year * (1 + monthly_rate) ** ((horizon - y - 1) * 12)
                sip_invested += sip * 12
                sip *= 1 + annual_stepup

        future_value = fv_lump + fv_sip
        invested = current_value + sip_invested
        gains = future_value - invested
        results.append(Projection(
            years=horizon,
            future_value=round(future_value),
            total_invested=round(invested),
            gains=round(gains),
            gains_pct=round(gains / invested * 100, 2) if invested > 0 else 0.0,
        ))
    return results
