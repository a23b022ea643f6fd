import pytest

from mf_dashboard.portfolio.benchmarks import (
    aggregate_benchmark_returns,
    fund_benchmark_returns,
    normalize_benchmark_name,
)
from mf_dashboard.portfolio.models import Fund, FundMetadata, ReturnStats


def _fund(scheme, benchmark, **returns):
    meta = FundMetadata(benchmark=benchmark, return_stats=ReturnStats(**returns))
    return Fund(key=scheme.lower(), scheme=scheme, metadata=meta)


@pytest.mark.parametrize("a, b", [
    ("NIFTY 500 TRI", "Nifty 500 Index TRI"),
    ("NIFTY 500 TRI", "nifty  500 tri"),
    ("BSE Sensex TRI", "Sensex Total Return Index TRI"),
    ("Nifty Midcap 150 TRI", "NIFTY 150 Midcap TRI"),
])
def test_equivalent_names_share_a_key(a, b):
    assert normalize_benchmark_name(a) == normalize_benchmark_name(b)


def test_tri_and_price_index_differ():
    assert normalize_benchmark_name("NIFTY 50 TRI") != normalize_benchmark_name("NIFTY 50")


def test_normalize_empty():
    assert normalize_benchmark_name(None) == ""
    assert normalize_benchmark_name("") == ""


def test_aggregate_first_reporter_wins_per_horizon():
    funds = [
        _fund("A Fund", "NIFTY 500 TRI", index_return1y=25.0),
        _fund("B Fund", "Nifty 500 Index TRI", index_return1y=99.0, index_return3y=15.456),
    ]
    result = aggregate_benchmark_returns(funds)

    assert list(result) == ["500 TRI"]
    entry = result["500 TRI"]
    assert entry.returns == {"1y": 25.0, "3y": 15.46, "5y": None}
    assert entry.schemes == ["A Fund", "B Fund"]


def test_aggregate_drops_benchmarks_without_returns():
    funds = [
        _fund("A Fund", "NIFTY 50 TRI", return1y=12.0),
        Fund(key="b", scheme="B Fund"),
    ]
    assert aggregate_benchmark_returns(funds) == {}


def test_fund_benchmark_returns_lookup():
    a = _fund("A Fund", "NIFTY 500 TRI", index_return1y=25.0)
    summary = aggregate_benchmark_returns([a])
    other = _fund("C Fund", "nifty 500 index tri")

    assert fund_benchmark_returns(other, summary) == {"1y": 25.0, "3y": None, "5y": None}
    assert fund_benchmark_returns(Fund(key="x", scheme="X"), summary) is None
    assert fund_benchmark_returns(_fund("D Fund", "NIFTY 50 TRI"), summary) is None
