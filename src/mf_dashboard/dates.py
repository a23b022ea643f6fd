from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from datetime import date, datetime, timedelta

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from mf_dashboard.config import PERIOD_MONTHS

logger = logging.getLogger(__name__)

_DMY_NUMERIC = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{2,4})$")


def financial_year(d: date | None) -> str:
    """Indian financial year label for a date, e.g. 2024-02-01 -> 'FY 2023-24'.

    The year starts on April 1.
    """
    if d is None:
        raise ValueError("financial_year requires a date")
    start_year = d.year if d.month >= 4 else d.year - 1
    return f"FY {start_year}-{(start_year + 1) % 100:02d}"


def holding_days(purchase_date: date, sale_date: date) -> int:
    return (sale_date - purchase_date).days


def parse_date(value) -> date | None:
    """Parse statement and NAV-history dates.

    Accepts date/datetime objects, ISO strings, '01-Jan-2024', '01-01-2024'
    and '01/01/24'. Numeric forms are day-first. Returns None when the value
    can't be read as a date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    m = _DMY_NUMERIC.match(text)
    if m:
        day, month, year = (int(g) for g in m.groups())
        if year < 100:
            year = 2000 + year if year < 50 else 1900 + year
        try:
            return date(year, month, day)
        except ValueError:
            logger.debug("Invalid day/month in date %r", text)
            return None

    try:
        # ISO strings are year-first; everything else in a statement is day-first
        dayfirst = not re.match(r"^\d{4}[-/.]", text)
        return date_parser.parse(text, dayfirst=dayfirst).date()
    except (ValueError, OverflowError):
        logger.debug("Unparseable date %r", text)
        return None


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every calendar day from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def period_start(period: str, today: date) -> date | None:
    """First date inside a chart period ending today. 'All' has no bound."""
    if period == "All":
        return None
    months = PERIOD_MONTHS.get(period, 12)
    return today - relativedelta(months=months)
