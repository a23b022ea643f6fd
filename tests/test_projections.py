import pytest

from mf_dashboard.portfolio.projections import calculate_projections


def test_lump_sum_only():
    (five,) = calculate_projections(100000, 0, cagr=12, years=(5,))
    assert five.future_value == round(100000 * 1.01 ** 60)
    assert five.total_invested == 100000
    assert five.gains == five.future_value - 100000


def test_monthly_sip_start_of_month():
    (one,) = calculate_projections(0, 1000, cagr=12, years=(1,))
    expected = 1000 * ((1.01 ** 12 - 1) / 0.01) * 1.01
    assert one.future_value == round(expected)
    assert one.total_invested == 12000


def test_stepup_first_year_matches_flat_sip():
    flat = calculate_projections(0, 1000, years=(1,))
    stepped = calculate_projections(0, 1000, stepup=10, years=(1,))
    assert stepped == flat


def test_stepup_grows_contributions():
    (two,) = calculate_projections(0, 1000, stepup=10, years=(2,))
    assert two.total_invested == 12000 + 13200
    (flat,) = calculate_projections(0, 1000, years=(2,))
    assert two.future_value > flat.future_value


def test_zero_rate_returns_principal():
    (ten,) = calculate_projections(5000, 100, cagr=0, years=(10,))
    assert ten.future_value == 5000 + 100 * 120
    assert ten.gains == 0
    assert ten.gains_pct == 0.0


def test_default_horizons():
    assert [p.years for p in calculate_projections(1000, 100)] == [5, 10, 15, 20]


def test_nothing_invested():
    (p,) = calculate_projections(0, 0, years=(5,))
    assert p.future_value == 0
    assert p.gains_pct == 0.0


@pytest.mark.parametrize("horizon", [5, 10, 20])
def test_longer_horizons_grow(horizon):
    results = calculate_projections(1000, 100, years=(horizon, horizon + 1))
    assert results[1].future_value > results[0].future_value
