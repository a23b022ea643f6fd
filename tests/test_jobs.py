import logging
from datetime import date

import pytest

from mf_dashboard.jobs import ValuationJob, fund_daily_valuation
from mf_dashboard.portfolio.funds import build_funds
from mf_dashboard.portfolio.models import Fund, FundMetadata, NavPoint, Transaction, TxType

HDFC = "hdfc flexi cap fund - direct plan - growth"
ICICI = "icici prudential corporate bond fund - growth"


@pytest.fixture
def funds(statement, stats):
    return build_funds(statement, stats)


def _broken_fund():
    # a transaction without a date can't be placed on the calendar
    return Fund(
        key="broken",
        scheme="Broken Fund",
        transactions=[
            Transaction(TxType.PURCHASE, None, 1.0, 10.0),
            Transaction(TxType.PURCHASE, date(2024, 1, 1), 1.0, 10.0),
        ],
        metadata=FundMetadata(nav_history=(NavPoint(date(2024, 1, 1), 10.0),)),
    )


def test_fund_daily_valuation(funds, today):
    points = fund_daily_valuation(funds[HDFC], today)
    assert points[0].valuation_date == date(2023, 1, 1)
    assert points[-1].valuation_date == today
    assert points[-1].value == pytest.approx(2200.0)
    assert points[-1].cost == pytest.approx(1750.0)
    assert fund_daily_valuation(funds[ICICI], today) == []


def test_run_combines_all_funds(funds, today):
    result = ValuationJob(funds, chunk_size=5, today=today).run()
    assert set(result.per_fund) == {HDFC, ICICI}
    assert result.portfolio[-1].valuation_date == today
    assert result.portfolio[-1].value == pytest.approx(2200.0)
    assert result.portfolio[-1].funds == 1


def test_run_chunks_reports_progress(funds, today):
    job = ValuationJob(funds, chunk_size=1, today=today)
    assert list(job.run_chunks()) == [(1, 2), (2, 2)]
    assert job.progress == (2, 2)
    assert job.result is not None


def test_cancel_between_chunks(funds, today):
    job = ValuationJob(funds, chunk_size=1, today=today)
    steps = job.run_chunks()
    assert next(steps) == (1, 2)
    job.cancel()
    assert list(steps) == []
    assert job.cancelled
    assert job.result is None


def test_failed_fund_is_logged_and_skipped(funds, today, caplog):
    funds = {**funds, "broken": _broken_fund()}
    job = ValuationJob(funds, chunk_size=2, today=today)
    with caplog.at_level(logging.ERROR):
        result = job.run()

    assert job.failed == ["broken"]
    assert "broken" not in result.per_fund
    assert "Daily valuation failed for broken" in caplog.text
    assert result.portfolio


def test_start_and_join(funds, today):
    job = ValuationJob(funds, chunk_size=1, today=today)
    job.start()
    assert job.join(timeout=30)
    assert job.result is not None
    assert job.result.portfolio[-1].value == pytest.approx(2200.0)


def test_empty_job():
    job = ValuationJob({}, chunk_size=3)
    result = job.run()
    assert result.per_fund == {}
    assert result.portfolio == []
    assert job.progress == (0, 0)


def test_rerun_starts_clean(funds, today):
    job = ValuationJob({**funds, "broken": _broken_fund()}, chunk_size=2, today=today)
    job.run()
    job.start()
    assert job.join(timeout=30)
    assert job.failed == ["broken"]
    assert set(job.result.per_fund) == {HDFC, ICICI}

    job.run()
    assert job.failed == ["broken"]
