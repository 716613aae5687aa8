from __future__ import annotations

import logging
from typing import Iterator

from db.repositories import RateSnapshotRepository
from domain.cross_rates import DerivedMatrix, derive
from domain.currencies import Presentation, Symbol
from domain.historical import TimeSeriesPoint, reconstruct_series

from .quote_fetcher import FetchError, QuoteFetcher

logger = logging.getLogger(__name__)


class RatesUnavailableError(RuntimeError):
    pass


class RateService:
    def __init__(
        self,
        store: RateSnapshotRepository,
        fetcher: QuoteFetcher | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher

    def latest_matrix(self, presentation: Presentation) -> DerivedMatrix:
        quote = self.store.read_latest()
        if quote is None:
            if self.fetcher is None:
                raise RatesUnavailableError("no rates stored yet")
            logger.info("No stored rates yet, fetching live %s rates", presentation.anchor_hint)
            try:
                quote = self.fetcher.fetch(presentation.anchor_hint)
            except FetchError as exc:
                raise RatesUnavailableError("no rates stored yet and live fetch failed") from exc
        return derive(quote, presentation)

    def historical_series(
        self,
        base: Symbol,
        target: Symbol,
        start: int,
        end: int | None = None,
    ) -> Iterator[TimeSeriesPoint]:
        rows = self.store.read_range(base, target, start, end)
        return reconstruct_series(rows)


__all__ = ["RateService", "RatesUnavailableError"]
