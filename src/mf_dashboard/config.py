from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# -- Capital gains ---------------------------------------------------------------

EQUITY_HOLDING_DAYS = 365
OTHER_HOLDING_DAYS = 730

CATEGORIES: tuple[str, ...] = ("equity", "debt", "hybrid")

EQUITY_TYPES: frozenset[str] = frozenset({"equity", "elss"})
DEBT_TYPES: frozenset[str] = frozenset({"debt", "income", "liquid", "gilt"})
HYBRID_TYPES: frozenset[str] = frozenset({"hybrid", "balanced", "commodities"})


# -- Lot tolerances --------------------------------------------------------------

# A head lot is treated as fully consumed within this many units
LOT_EPSILON = 1e-4
# Below this a holding is considered closed
UNITS_EPSILON = 1e-3


# -- Statement normalisation -----------------------------------------------------

EXCLUDED_TX_TYPES: frozenset[str] = frozenset(
    {"STAMP_DUTY_TAX", "STT_TAX", "MISC", "OTHER"}
)

STATEMENT_TX_MAP: dict[str, str] = {
    "PURCHASE": "PURCHASE",
    "PURCHASE_SIP": "PURCHASE",
    "SWITCH_IN": "PURCHASE",
    "DIVIDEND_REINVEST": "PURCHASE",
    "REDEMPTION": "REDEMPTION",
    "SWITCH_OUT": "REDEMPTION",
}

# Schemes whose name contains none of these are not mutual funds (e.g. NPS tiers)
FUND_NAME_KEYWORDS: tuple[str, ...] = ("fund", "fof", "etf")


# -- Portfolio analytics ---------------------------------------------------------

ASSET_BUCKETS: tuple[str, ...] = ("equity", "debt", "gold", "silver")
MARKET_CAP_BUCKETS: tuple[str, ...] = ("large", "mid", "small")
RETURN_HORIZONS: tuple[str, ...] = ("1y", "3y", "5y")

OTHERS_LABEL = "Others"
UNCLASSIFIED_SECTOR = "Unclassified"
UNKNOWN_AMC = "Unknown AMC"
CASH_EQUIVALENTS = "Cash Equivalents"

# Chart periods in months; "All" means no lower bound
PERIOD_MONTHS: dict[str, int] = {
    "1M": 1,
    "3M": 3,
    "6M": 6,
    "1Y": 12,
    "2Y": 24,
    "3Y": 36,
    "4Y": 48,
    "5Y": 60,
    "7Y": 84,
    "10Y": 120,
}


def _load_env_file() -> dict[str, str]:
    """Read key=value pairs from .env at project root."""
    env_path = _PROJECT_ROOT / ".env"
    if not env_path.exists():
        return {}
    result = {}
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        result[key.strip()] = value.strip()
    return result


def _env(name: str, default: str) -> str:
    """Return a setting from the environment, then .env, then the default."""
    value = os.environ.get(name)
    if value:
        return value
    return _load_env_file().get(name, default)


@dataclass(frozen=True)
class Settings:
    valuation_chunk_size: int = field(default_factory=lambda: int(_env(
        "MF_VALUATION_CHUNK_SIZE", "5"
    )))
    top_n: int = field(default_factory=lambda: int(_env("MF_TOP_N", "10")))
