from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping

from mf_dashboard.config import Settings
from mf_dashboard.portfolio.models import DailyValuationPoint, Fund, PortfolioValuationPoint
from mf_dashboard.portfolio.snapshots import aggregate_daily_valuations, build_daily_valuation

logger = logging.getLogger(__name__)


@dataclass
class ValuationResult:
    per_fund: dict[str, list[DailyValuationPoint]] = field(default_factory=dict)
    portfolio: list[PortfolioValuationPoint] = field(default_factory=list)


def fund_daily_valuation(fund: Fund, today: date | None = None) -> list[DailyValuationPoint]:
    meta = fund.metadata
    if meta is None:
        return []
    return build_daily_valuation(
        fund.transactions,
        meta.nav_history,
        latest_nav=meta.latest_nav,
        latest_nav_date=meta.latest_nav_date,
        today=today,
    )


class ValuationJob:
    """Rebuilds every fund's daily valuation a few funds at a time.

    Funds are independent, so each chunk is self-contained; the portfolio
    series is combined once, after the last chunk. `cancel()` takes effect
    between chunks.
    """

    def __init__(
        self,
        funds: Mapping[str, Fund],
        chunk_size: int | None = None,
        today: date | None = None,
    ) -> None:
        self._funds = list(funds.items())
        self._chunk_size = max(1, chunk_size or Settings().valuation_chunk_size)
        self._today = today
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._done_event = threading.Event()
        self._per_fund: dict[str, list[DailyValuationPoint]] = {}
        self._result: ValuationResult | None = None
        self.failed: list[str] = []
        self.progress: tuple[int, int] = (0, len(self._funds))

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    @property
    def result(self) -> ValuationResult | None:
        """Combined output once every chunk has run; None if cancelled or unfinished."""
        return self._result

    def _reset(self) -> None:
        self._per_fund = {}
        self._result = None
        self.failed = []
        self.progress = (0, len(self._funds))

    def run_chunks(self) -> Iterator[tuple[int, int]]:
        """Process one chunk per step, yielding (funds_done, total) after each.

        Each run starts from a clean slate.
        """
        self._reset()
        total = len(self._funds)
        for start in range(0, total, self._chunk_size):
            if self._stop_event.is_set():
                logger.info("ValuationJob cancelled after %d/%d funds", start, total)
                return
            for key, fund in self._funds[start:start + self._chunk_size]:
                try:
                    self._per_fund[key] = fund_daily_valuation(fund, self._today)
                except Exception:
                    logger.exception("Daily valuation failed for %s", key)
                    self.failed.append(key)
            self.progress = (min(start + self._chunk_size, total), total)
            yield self.progress

        self._result = ValuationResult(
            per_fund=dict(self._per_fund),
            portfolio=aggregate_daily_valuations(self._per_fund),
        )
        logger.info(
            "ValuationJob finished: %d funds, %d portfolio points",
            total, len(self._result.portfolio),
        )

    def run(self) -> ValuationResult | None:
        for _ in self.run_chunks():
            pass
        return self._result

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._done_event.clear()
        self._reset()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        logger.info("ValuationJob started (%d funds, chunk=%d)", len(self._funds), self._chunk_size)

    def cancel(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the background run; True once it has stopped."""
        return self._done_event.wait(timeout=timeout)

    def _run(self) -> None:
        try:
            self.run()
        except Exception:
            logger.exception("ValuationJob run failed")
        finally:
            self._done_event.set()
