from __future__ import annotations

import logging
import time

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import models
from domain.currencies import ALL_SYMBOLS, STORAGE_ANCHOR, Symbol
from domain.historical import RangeRow
from domain.quotes import DegenerateRateError, QuoteSet

logger = logging.getLogger(__name__)


class StoreError(Exception):
    pass


class RateSnapshotRepository:
    """Append-only history of USD-anchored ticks, keyed by Unix timestamp."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def write_tick(self, timestamp: int, quote: QuoteSet) -> bool:
        """Store one tick. Returns False when a row for ``timestamp`` already exists."""
        try:
            stored = quote.rebased(STORAGE_ANCHOR)
        except DegenerateRateError as exc:
            raise StoreError(f"cannot store a {quote.anchor}-anchored quote set as {STORAGE_ANCHOR}: {exc}") from exc

        values: dict[str, float | int] = {"id": int(timestamp)}
        for symbol in ALL_SYMBOLS:
            values[symbol.value] = stored.rate(symbol)

        stmt = insert(models.RateOrm).values(values).on_conflict_do_nothing(index_elements=["id"])
        try:
            result = self._session.execute(stmt)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StoreError(f"failed to write rates tick {timestamp}") from exc
        return bool(result.rowcount)  # type: ignore[attr-defined]

    def read_latest(self) -> QuoteSet | None:
        stmt = select(models.RateOrm).order_by(models.RateOrm.id.desc()).limit(1)
        try:
            row = self._session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise StoreError("failed to read latest rates") from exc
        if row is None:
            return None
        return self._to_domain(row)

    def read_range(self, base: Symbol, target: Symbol, start: int, end: int | None = None) -> list[RangeRow]:
        """Rows with ``start <= timestamp <= end``, oldest first. ``end`` defaults to now."""
        if end is None:
            end = int(time.time())
        if start > end:
            return []

        # Only allow-listed symbols reach column selection; bounds are bound parameters.
        base_column = models.RateOrm.column_for(base).label("base_value")
        target_column = models.RateOrm.column_for(target).label("target_value")
        stmt = (
            select(models.RateOrm.id, base_column, target_column)
            .where(models.RateOrm.id >= start, models.RateOrm.id <= end)
            .order_by(models.RateOrm.id.asc())
        )
        try:
            result = self._session.execute(stmt).all()
        except (SQLAlchemyError, OverflowError) as exc:
            raise StoreError(f"failed to read {base}/{target} rates between {start} and {end}") from exc

        rows: list[RangeRow] = []
        for timestamp, base_value, target_value in result:
            if base_value is None or target_value is None:
                logger.warning("Rates row %d has no %s or %s value, skipping", timestamp, base, target)
                continue
            rows.append(RangeRow(timestamp=timestamp, base_value=base_value, target_value=target_value))
        return rows

    def prune_before(self, cutoff: int) -> int:
        stmt = delete(models.RateOrm).where(models.RateOrm.id < cutoff)
        try:
            result = self._session.execute(stmt)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StoreError(f"failed to prune rates before {cutoff}") from exc
        return result.rowcount  # type: ignore[attr-defined,no-any-return]

    @staticmethod
    def _to_domain(row: models.RateOrm) -> QuoteSet:
        rates: dict[Symbol, float] = {}
        for symbol in ALL_SYMBOLS:
            value = getattr(row, symbol.value)
            if value is None and symbol == STORAGE_ANCHOR:
                value = 1.0
            if value is None:
                raise StoreError(f"rates row {row.id} has no {symbol} value")
            rates[symbol] = value
        try:
            return QuoteSet(anchor=STORAGE_ANCHOR, rates=rates)
        except ValueError as exc:
            raise StoreError(f"rates row {row.id} is not a valid quote set: {exc}") from exc


__all__ = ["RateSnapshotRepository", "StoreError"]
