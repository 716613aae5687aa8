from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from utils.formatting import format_rate

from .quotes import DegenerateRateError, ratio

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RangeRow:
    """Base and target values of one stored tick, both relative to the storage anchor."""

    timestamp: int
    base_value: float
    target_value: float


@dataclass(frozen=True)
class TimeSeriesPoint:
    timestamp: int
    value: float | None
    error: str | None = None

    @property
    def is_degenerate(self) -> bool:
        return self.value is None

    @property
    def display(self) -> str | None:
        if self.value is None:
            return None
        return format_rate(self.value)


def reconstruct_series(rows: Iterable[RangeRow]) -> Iterator[TimeSeriesPoint]:
    for row in rows:
        try:
            value = ratio(row.target_value, row.base_value)
        except DegenerateRateError as exc:
            logger.warning("Degenerate ratio at %d: %s", row.timestamp, exc)
            yield TimeSeriesPoint(timestamp=row.timestamp, value=None, error=str(exc))
            continue
        yield TimeSeriesPoint(timestamp=row.timestamp, value=value)


__all__ = ["RangeRow", "TimeSeriesPoint", "reconstruct_series"]
