from __future__ import annotations

import logging
from typing import Mapping

from mf_dashboard.config import (
    EXCLUDED_TX_TYPES,
    FUND_NAME_KEYWORDS,
    STATEMENT_TX_MAP,
    UNKNOWN_AMC,
)
from mf_dashboard.dates import parse_date
from mf_dashboard.names import sanitize_scheme_name
from mf_dashboard.portfolio.models import (
    Fund,
    FundMetadata,
    FundValuation,
    Transaction,
    TxType,
    coerce_float,
)

logger = logging.getLogger(__name__)


def _is_fund(scheme_name: str) -> bool:
    lowered = scheme_name.lower()
    return any(k in lowered for k in FUND_NAME_KEYWORDS)


def _parse_transactions(raw_txs: list[dict], folio: str) -> list[Transaction]:
    """Map a scheme's statement rows onto PURCHASE/REDEMPTION transactions."""
    transactions = []
    for raw in raw_txs:
        raw_type = (raw.get("type") or "").upper()
        if raw_type in EXCLUDED_TX_TYPES:
            continue
        mapped = STATEMENT_TX_MAP.get(raw_type)
        if mapped is None:
            logger.debug("Skipping %s transaction in folio %s", raw_type or "untyped", folio)
            continue
        trade_date = parse_date(raw.get("date"))
        if trade_date is None:
            logger.debug("Skipping transaction with bad date %r in folio %s", raw.get("date"), folio)
            continue
        transactions.append(Transaction(
            tx_type=TxType(mapped),
            trade_date=trade_date,
            units=coerce_float(raw.get("units")),
            nav=coerce_float(raw.get("nav")),
            folio=folio,
        ))
    return transactions


def _resolve_valuation(fund: Fund, statement_valuations: list[dict]) -> FundValuation:
    """Value a fund at the latest NAV when known, else from the statement."""
    latest_nav = fund.metadata.latest_nav if fund.metadata else None
    units = fund.net_units
    if latest_nav and units > 0:
        return FundValuation(
            valuation_date=fund.metadata.latest_nav_date,
            nav=latest_nav,
            value=latest_nav * units,
        )

    if statement_valuations:
        latest = max(
            statement_valuations,
            key=lambda v: parse_date(v.get("date")) or parse_date("1900-01-01"),
        )
        return FundValuation(
            valuation_date=parse_date(latest.get("date")),
            nav=coerce_float(latest.get("nav")),
            value=sum(coerce_float(v.get("value")) for v in statement_valuations),
            cost=sum(coerce_float(v.get("cost")) for v in statement_valuations),
        )

    return FundValuation()


def build_funds(
    statement: Mapping,
    stats: Mapping[str, FundMetadata | dict] | None = None,
) -> dict[str, Fund]:
    """Group a parsed statement's folios and schemes into Fund records.

    `statement` is the upstream parser's output: {"folios": [{"folio", "amc",
    "schemes": [{"scheme", "isin", "amc", "type", "transactions", "valuation"}]}]}.
    `stats` maps ISIN to extended metadata, as FundMetadata or its raw dict.
    Funds are keyed by lower-cased scheme name, so the same scheme held in
    several folios becomes one fund.
    """
    stats = stats or {}
    funds: dict[str, Fund] = {}
    valuations: dict[str, list[dict]] = {}

    for folio in statement.get("folios") or []:
        folio_no = str(folio.get("folio") or "default")
        for scheme in folio.get("schemes") or []:
            name = (scheme.get("scheme") or "").strip()
            if not name or not _is_fund(name):
                logger.debug("Skipping non-fund scheme %r", name)
                continue
            raw_txs = scheme.get("transactions") or []
            if not raw_txs:
                continue

            isin = scheme.get("isin")
            metadata = stats.get(isin) if isin else None
            if isinstance(metadata, dict):
                metadata = FundMetadata.from_dict(metadata)

            key = name.lower()
            fund = funds.get(key)
            if fund is None:
                amc = (
                    (metadata.amc if metadata else None)
                    or (scheme.get("amc") or "").strip()
                    or (folio.get("amc") or "").strip()
                    or UNKNOWN_AMC
                )
                fund = Fund(
                    key=key,
                    scheme=name,
                    scheme_display=sanitize_scheme_name(name),
                    isin=isin,
                    amc=amc,
                    fund_type=scheme.get("type") or "",
                    metadata=metadata,
                )
                funds[key] = fund

            if folio_no not in fund.folios:
                fund.folios.append(folio_no)
            fund.transactions.extend(_parse_transactions(raw_txs, folio_no))
            if scheme.get("valuation"):
                valuations.setdefault(key, []).append(scheme["valuation"])

    for key, fund in funds.items():
        fund.valuation = _resolve_valuation(fund, valuations.get(key, []))
    return funds
