from __future__ import annotations

import logging
import threading
import time
from time import perf_counter
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from db.repositories import RateSnapshotRepository, StoreError
from domain.currencies import AnchorHint

from .quote_fetcher import FetchError, QuoteFetcher

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class FetchScheduler:
    """Background thread that fetches USD-anchored rates and stores one row per tick.

    Ticks run one after another on a single thread, so writes never overlap.
    A failed tick is logged and the next one runs on schedule.
    """

    def __init__(
        self,
        *,
        fetcher: QuoteFetcher,
        session_factory: sessionmaker[Session],
        interval_seconds: float = 60.0,
        retention_days: int | None = None,
        run_immediately: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if retention_days is not None and retention_days <= 0:
            raise ValueError("retention_days must be > 0")

        self.fetcher = fetcher
        self.interval_seconds = interval_seconds
        self.retention_days = retention_days
        self.run_immediately = run_immediately
        self._session_factory = session_factory
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> bool:
        started = perf_counter()
        logger.info("Fetching rates from upstream")
        try:
            quote = self.fetcher.fetch(AnchorHint.FIAT)
        except FetchError as exc:
            logger.warning("Fetching rates failed (status %s): %s; retrying next tick", exc.status_code, exc)
            return False

        timestamp = int(self._clock())
        with self._session_factory() as session:
            repository = RateSnapshotRepository(session)
            try:
                inserted = repository.write_tick(timestamp, quote)
            except StoreError:
                logger.exception("Storing rates tick %d failed", timestamp)
                return False

            if not inserted:
                logger.info("Rates tick %d already stored, nothing written", timestamp)
            if self.retention_days is not None:
                self._prune(repository, timestamp - self.retention_days * SECONDS_PER_DAY)

        logger.info("Rates tick %d done in %.2fs", timestamp, perf_counter() - started)
        return True

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="rates-fetch-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        logger.info("Rates scheduler shutdown requested")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        logger.info("Rates scheduler started, fetching every %.0fs", self.interval_seconds)
        if self.run_immediately:
            self._safe_tick()
        while not self._stop_event.wait(self.interval_seconds):
            self._safe_tick()
        logger.info("Rates scheduler stopped")

    def _safe_tick(self) -> None:
        try:
            self.tick()
        except Exception:
            logger.exception("Unexpected error in rates tick")

    @staticmethod
    def _prune(repository: RateSnapshotRepository, cutoff: int) -> None:
        try:
            pruned = repository.prune_before(cutoff)
        except StoreError:
            logger.exception("Pruning rates before %d failed", cutoff)
            return
        if pruned:
            logger.info("Pruned %d rates rows older than %d", pruned, cutoff)


__all__ = ["FetchScheduler"]
