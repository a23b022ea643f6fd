from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from mf_dashboard.config import RETURN_HORIZONS
from mf_dashboard.portfolio.models import Fund


def normalize_benchmark_name(name: str | None) -> str:
    """Canonical key so 'NIFTY 500 TRI' and 'Nifty 500 Index TRI' match."""
    if not name:
        return ""
    name = re.sub(r"\s+", " ", name.strip())
    name = re.sub(r"tri$", "TRI", name, flags=re.IGNORECASE)
    name = re.sub(r"^(NIFTY|BSE)\s*", "", name, flags=re.IGNORECASE)
    name = re.sub(r"\b(INDEX|TOTAL|RETURN|RETURNS)\b", "", name, flags=re.IGNORECASE).strip()

    parts = name.split()
    has_tri = any(p.upper() == "TRI" for p in parts)
    words = sorted((p for p in parts if p.upper() != "TRI"), key=str.lower)
    if has_tri:
        words.append("TRI")
    return " ".join(words).upper()


@dataclass
class BenchmarkReturns:
    returns: dict[str, float | None] = field(
        default_factory=lambda: {h: None for h in RETURN_HORIZONS}
    )
    schemes: list[str] = field(default_factory=list)


def aggregate_benchmark_returns(funds: Iterable[Fund]) -> dict[str, BenchmarkReturns]:
    """Index returns per normalised benchmark; the first fund to report a horizon wins."""
    result: dict[str, BenchmarkReturns] = {}
    for fund in funds:
        meta = fund.metadata
        if meta is None or not meta.benchmark or meta.return_stats is None:
            continue
        key = normalize_benchmark_name(meta.benchmark)
        entry = result.setdefault(key, BenchmarkReturns())
        if fund.scheme not in entry.schemes:
            entry.schemes.append(fund.scheme)
        for horizon in RETURN_HORIZONS:
            r = meta.return_stats.index_return(horizon)
            if r is not None and entry.returns[horizon] is None:
                entry.returns[horizon] = round(r, 2)

    return {
        key: entry for key, entry in result.items()
        if any(v is not None for v in entry.returns.values())
    }


def fund_benchmark_returns(
    fund: Fund, summary: dict[str, BenchmarkReturns]
) -> dict[str, float | None] | None:
    if fund.metadata is None or not fund.metadata.benchmark:
        return None
    entry = summary.get(normalize_benchmark_name(fund.metadata.benchmark))
    return dict(entry.returns) if entry else None
