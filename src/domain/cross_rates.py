from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from utils.formatting import format_rate

from .currencies import Presentation, Symbol
from .quotes import DegenerateRateError, QuoteSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateCell:
    row: Symbol
    column: Symbol
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


@dataclass(frozen=True)
class DerivedMatrix:
    presentation: Presentation
    cells: Mapping[Symbol, Mapping[Symbol, RateCell]]

    @property
    def rows(self) -> tuple[Symbol, ...]:
        return self.presentation.rows

    @property
    def columns(self) -> tuple[Symbol, ...]:
        return self.presentation.columns

    def cell(self, row: Symbol, column: Symbol) -> RateCell:
        return self.cells[Symbol(row)][Symbol(column)]

    def degenerate_cells(self) -> list[RateCell]:
        return [cell for row in self.cells.values() for cell in row.values() if cell.is_degenerate]

    def to_payload(self) -> dict[str, dict[str, str | None]]:
        return {
            str(row): {str(column): self.cells[row][column].display for column in self.columns} for row in self.rows
        }


def cross_rate(quote: QuoteSet, row: Symbol, column: Symbol) -> float:
    """Amount of ``column`` bought by one unit of ``row``.

    Both rates are relative to the same anchor, so it cancels out of
    ``column/anchor / row/anchor`` whichever symbol the anchor is.
    """
    row_rate = quote.rate(row)
    if row_rate == 0:
        raise DegenerateRateError(
            f"{row} rate is zero in a {quote.anchor}-anchored quote set", numerator=column, denominator=row
        )
    return quote.rate(column) / row_rate


def derive(quote: QuoteSet, presentation: Presentation) -> DerivedMatrix:
    presentation = Presentation(presentation)
    cells: dict[Symbol, dict[Symbol, RateCell]] = {}
    for row in presentation.rows:
        row_cells: dict[Symbol, RateCell] = {}
        for column in presentation.columns:
            try:
                row_cells[column] = RateCell(row=row, column=column, value=cross_rate(quote, row, column))
            except DegenerateRateError as exc:
                logger.warning("Cannot derive %s/%s: %s", column, row, exc)
                row_cells[column] = RateCell(row=row, column=column, value=None, error=str(exc))
        cells[row] = row_cells
    return DerivedMatrix(presentation=presentation, cells=cells)


__all__ = ["DerivedMatrix", "RateCell", "cross_rate", "derive"]
