from __future__ import annotations

import logging
import threading

import pytest
from sqlalchemy.orm import Session, sessionmaker

from db.repositories import RateSnapshotRepository, StoreError
from domain.currencies import AnchorHint, Symbol
from domain.quotes import QuoteSet
from services.quote_fetcher import FetchError
from services.scheduler import SECONDS_PER_DAY, FetchScheduler
from tests.helpers.quotes import StubQuoteFetcher, make_quote


class _Clock:
    def __init__(self, *values: float) -> None:
        self.values = list(values)

    def __call__(self) -> float:
        return self.values.pop(0)


def _latest(factory: sessionmaker[Session]) -> QuoteSet | None:
    with factory() as session:
        return RateSnapshotRepository(session).read_latest()


def test_tick_fetches_usd_rates_and_stores_one_row(test_session_factory: sessionmaker[Session]) -> None:
    fetcher = StubQuoteFetcher(make_quote(SGD=1.35))
    scheduler = FetchScheduler(fetcher=fetcher, session_factory=test_session_factory, clock=_Clock(1_000.7))

    assert scheduler.tick() is True

    assert fetcher.calls == [AnchorHint.FIAT]
    with test_session_factory() as session:
        rows = RateSnapshotRepository(session).read_range(Symbol.USD, Symbol.SGD, 0, 2_000)
    assert [(row.timestamp, row.target_value) for row in rows] == [(1_000, 1.35)]


def test_failed_fetch_writes_nothing_and_keeps_previous_row(
    test_session_factory: sessionmaker[Session], caplog: pytest.LogCaptureFixture
) -> None:
    previous = make_quote(SGD=1.30)
    fetcher = StubQuoteFetcher(previous, FetchError("Coinbase request failed", status_code=None))
    scheduler = FetchScheduler(fetcher=fetcher, session_factory=test_session_factory, clock=_Clock(100, 160))
    assert scheduler.tick() is True

    with caplog.at_level(logging.WARNING, logger="services.scheduler"):
        assert scheduler.tick() is False

    assert _latest(test_session_factory) == previous
    assert "Fetching rates failed" in caplog.text


def test_store_failure_is_contained(
    test_session_factory: sessionmaker[Session], monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def _broken_write(self: RateSnapshotRepository, timestamp: int, quote: QuoteSet) -> bool:
        raise StoreError("disk full")

    monkeypatch.setattr(RateSnapshotRepository, "write_tick", _broken_write)
    scheduler = FetchScheduler(
        fetcher=StubQuoteFetcher(make_quote()), session_factory=test_session_factory, clock=_Clock(100)
    )

    with caplog.at_level(logging.ERROR, logger="services.scheduler"):
        assert scheduler.tick() is False

    assert "Storing rates tick 100 failed" in caplog.text


def test_duplicate_tick_timestamp_is_a_no_op(test_session_factory: sessionmaker[Session]) -> None:
    fetcher = StubQuoteFetcher(make_quote(SGD=1.0), make_quote(SGD=2.0))
    scheduler = FetchScheduler(fetcher=fetcher, session_factory=test_session_factory, clock=_Clock(100, 100))

    assert scheduler.tick() is True
    assert scheduler.tick() is True

    latest = _latest(test_session_factory)
    assert latest is not None and latest.rate(Symbol.SGD) == 1.0


def test_tick_prunes_rows_outside_retention(test_session_factory: sessionmaker[Session]) -> None:
    now = 10 * SECONDS_PER_DAY
    with test_session_factory() as session:
        repo = RateSnapshotRepository(session)
        repo.write_tick(now - 3 * SECONDS_PER_DAY, make_quote())
        repo.write_tick(now - SECONDS_PER_DAY, make_quote())

    scheduler = FetchScheduler(
        fetcher=StubQuoteFetcher(make_quote()),
        session_factory=test_session_factory,
        retention_days=2,
        clock=_Clock(now),
    )
    assert scheduler.tick() is True

    with test_session_factory() as session:
        rows = RateSnapshotRepository(session).read_range(Symbol.USD, Symbol.EUR, 0, now)
    assert [row.timestamp for row in rows] == [now - SECONDS_PER_DAY, now]


def test_scheduler_validates_arguments(test_session_factory: sessionmaker[Session]) -> None:
    fetcher = StubQuoteFetcher(make_quote())
    with pytest.raises(ValueError):
        FetchScheduler(fetcher=fetcher, session_factory=test_session_factory, interval_seconds=0)
    with pytest.raises(ValueError):
        FetchScheduler(fetcher=fetcher, session_factory=test_session_factory, retention_days=0)


class _SignallingFetcher(StubQuoteFetcher):
    def __init__(self, quote: QuoteSet, wanted_calls: int) -> None:
        super().__init__(quote)
        self.wanted_calls = wanted_calls
        self.done = threading.Event()

    def fetch(self, anchor_hint: AnchorHint | None = None) -> QuoteSet:
        quote = super().fetch(anchor_hint)
        if len(self.calls) >= self.wanted_calls:
            self.done.set()
        return quote


def test_background_thread_runs_ticks_until_stopped(test_session_factory: sessionmaker[Session]) -> None:
    fetcher = _SignallingFetcher(make_quote(), wanted_calls=2)
    timestamps = iter(range(1_000, 2_000))
    scheduler = FetchScheduler(
        fetcher=fetcher,
        session_factory=test_session_factory,
        interval_seconds=0.01,
        clock=lambda: float(next(timestamps)),
    )

    scheduler.start()
    try:
        assert fetcher.done.wait(timeout=5)
        assert scheduler.is_running
    finally:
        scheduler.stop()

    assert not scheduler.is_running
    assert _latest(test_session_factory) is not None


def test_unexpected_tick_error_does_not_kill_the_thread(test_session_factory: sessionmaker[Session]) -> None:
    class _Flaky(_SignallingFetcher):
        def fetch(self, anchor_hint: AnchorHint | None = None) -> QuoteSet:
            quote = super().fetch(anchor_hint)
            if len(self.calls) == 1:
                raise RuntimeError("boom")
            return quote

    fetcher = _Flaky(make_quote(), wanted_calls=2)
    timestamps = iter(range(1_000, 2_000))
    scheduler = FetchScheduler(
        fetcher=fetcher,
        session_factory=test_session_factory,
        interval_seconds=0.01,
        clock=lambda: float(next(timestamps)),
    )

    scheduler.start()
    try:
        assert fetcher.done.wait(timeout=5)
    finally:
        scheduler.stop()
