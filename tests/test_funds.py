from datetime import date

import pytest

from mf_dashboard.portfolio.funds import build_funds
from mf_dashboard.portfolio.models import FundMetadata, TxType

HDFC = "hdfc flexi cap fund - direct plan - growth"
ICICI = "icici prudential corporate bond fund - growth"


def test_groups_schemes_across_folios(statement, stats):
    funds = build_funds(statement, stats)
    assert set(funds) == {HDFC, ICICI}

    hdfc = funds[HDFC]
    assert hdfc.folios == ["111/22", "333/44"]
    assert hdfc.scheme_display == "HDFC Flexi Cap Fund"
    assert hdfc.fund_type == "EQUITY"
    assert [t.folio for t in hdfc.transactions] == ["111/22", "111/22", "111/22", "333/44"]


def test_transaction_types_mapped(statement, stats):
    txs = build_funds(statement, stats)[HDFC].transactions
    assert [t.tx_type for t in txs] == [
        TxType.PURCHASE, TxType.PURCHASE, TxType.REDEMPTION, TxType.PURCHASE,
    ]
    assert txs[0].trade_date == date(2023, 1, 1)
    assert txs[2].units == -150.0


def test_non_fund_schemes_skipped(statement, stats):
    funds = build_funds(statement, stats)
    assert not any("nps" in key for key in funds)


def test_metadata_attached_by_isin(statement, stats):
    funds = build_funds(statement, stats)
    assert funds[HDFC].metadata.category == "Equity"
    assert len(funds[HDFC].metadata.nav_history) == 4
    assert funds[ICICI].metadata is None


def test_metadata_objects_accepted(statement, stats):
    parsed = {isin: FundMetadata.from_dict(raw) for isin, raw in stats.items()}
    funds = build_funds(statement, parsed)
    assert funds[HDFC].metadata is parsed["INF179K01UT0"]


def test_amc_resolution_order(statement, stats):
    funds = build_funds(statement, stats)
    assert funds[HDFC].amc == "HDFC MUTUAL FUND"
    assert funds[ICICI].amc == "ICICI Prudential Mutual Fund"

    without_stats = build_funds(statement)
    assert without_stats[HDFC].amc == "HDFC Mutual Fund"


def test_amc_unknown_when_missing():
    statement = {"folios": [{"folio": "1", "schemes": [{
        "scheme": "Mystery Fund",
        "transactions": [{"date": "01-01-2024", "type": "PURCHASE", "units": 1, "nav": 10}],
    }]}]}
    assert build_funds(statement)["mystery fund"].amc == "Unknown AMC"


def test_valuation_prefers_latest_nav(statement, stats):
    hdfc = build_funds(statement, stats)[HDFC]
    assert hdfc.net_units == pytest.approx(100.0)
    assert hdfc.valuation.nav == 22.0
    assert hdfc.valuation.value == pytest.approx(2200.0)
    assert hdfc.valuation.valuation_date == date(2024, 6, 28)


def test_valuation_falls_back_to_statement(statement):
    funds = build_funds(statement)
    hdfc = funds[HDFC]
    assert hdfc.valuation.nav == 21.0
    assert hdfc.valuation.value == pytest.approx(1050.0)
    assert funds[ICICI].valuation.value == pytest.approx(2850.0)


def test_unknown_types_and_bad_dates_dropped():
    statement = {"folios": [{"folio": "1", "schemes": [{
        "scheme": "Test Fund",
        "transactions": [
            {"date": "01-01-2024", "type": "PURCHASE", "units": 10, "nav": 10},
            {"date": "02-01-2024", "type": "SEGREGATION", "units": 1, "nav": 0},
            {"date": "garbage", "type": "PURCHASE", "units": 5, "nav": 10},
            {"date": "03-01-2024", "type": "STT_TAX"},
            {"date": "04-01-2024", "type": "SWITCH_OUT", "units": -2, "nav": 11},
        ],
    }]}]}
    txs = build_funds(statement)["test fund"].transactions
    assert [t.tx_type for t in txs] == [TxType.PURCHASE, TxType.REDEMPTION]


def test_scheme_without_transactions_skipped():
    statement = {"folios": [{"folio": "1", "schemes": [{"scheme": "Empty Fund", "transactions": []}]}]}
    assert build_funds(statement) == {}
    assert build_funds({}) == {}
