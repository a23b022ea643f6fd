from datetime import date

import pytest

TODAY = date(2024, 6, 30)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def statement():
    """Parsed statement: one equity fund over two folios and a debt fund."""
    return {
        "folios": [
            {
                "folio": "111/22",
                "amc": "HDFC Mutual Fund",
                "schemes": [
                    {
                        "scheme": "HDFC Flexi Cap Fund - Direct Plan - Growth",
                        "isin": "INF179K01UT0",
                        "type": "EQUITY",
                        "transactions": [
                            {"date": "01-Jan-2023", "type": "PURCHASE", "units": 100, "nav": 10},
                            {"date": "01-Jan-2023", "type": "STAMP_DUTY_TAX", "units": None, "nav": None},
                            {"date": "01-Jun-2023", "type": "PURCHASE_SIP", "units": 100, "nav": 15},
                            {"date": "01-Feb-2024", "type": "REDEMPTION", "units": -150, "nav": 20},
                        ],
                        "valuation": {"date": "2024-06-28", "nav": 21, "value": 1050, "cost": 750},
                    },
                    {
                        "scheme": "NPS Tier I",
                        "transactions": [
                            {"date": "01-Jan-2023", "type": "PURCHASE", "units": 10, "nav": 10},
                        ],
                    },
                ],
            },
            {
                "folio": "333/44",
                "schemes": [
                    {
                        "scheme": "HDFC Flexi Cap Fund - Direct Plan - Growth",
                        "isin": "INF179K01UT0",
                        "type": "EQUITY",
                        "transactions": [
                            {"date": "15-Mar-2024", "type": "SWITCH_IN", "units": 50, "nav": 20},
                        ],
                    },
                    {
                        "scheme": "ICICI Prudential Corporate Bond Fund - Growth",
                        "isin": "INF109K01AB1",
                        "amc": "ICICI Prudential Mutual Fund",
                        "type": "DEBT",
                        "transactions": [
                            {"date": "10-Apr-2022", "type": "PURCHASE", "units": 200, "nav": 25},
                            {"date": "10-May-2024", "type": "REDEMPTION", "units": -100, "nav": 28},
                        ],
                        "valuation": {"date": "2024-06-28", "nav": 28.5, "value": 2850, "cost": 2500},
                    },
                ],
            },
        ],
    }


@pytest.fixture
def stats():
    """Extended per-ISIN metadata for the equity fund only."""
    return {
        "INF179K01UT0": {
            "category": "Equity",
            "sub_category": "Flexi Cap Fund",
            "amc": "HDFC MUTUAL FUND",
            "latest_nav": 22.0,
            "latest_nav_date": "2024-06-28",
            "benchmark": "NIFTY 500 TRI",
            "nav_history": [
                {"date": "01-01-2023", "nav": 10},
                {"date": "01-06-2023", "nav": 15},
                {"date": "01-02-2024", "nav": 20},
                {"date": "15-03-2024", "nav": 20},
            ],
            "return_stats": {"return1y": 30.0, "return3y": 18.0, "index_return1y": 25.0},
            "portfolio_stats": {
                "asset_allocation": {"Equity": 95.0, "Cash": 5.0},
                "large_cap": 70.0,
                "mid_cap": 20.0,
                "small_cap": 10.0,
                "equity_sector_per": {"Financial": 30.0, "Technology": 20.0},
            },
            "holdings": [
                {"company_name": "HDFC Bank Ltd.", "corpus_per": 9.5, "sector_name": "Financial"},
                {"company_name": "Infosys Ltd.", "corpus_per": 6.0, "sector_name": "Technology"},
            ],
        },
    }
