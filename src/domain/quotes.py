from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .currencies import ALL_SYMBOLS, Symbol


class DegenerateRateError(ArithmeticError):
    """Raised when a rate division would use a zero denominator."""

    def __init__(self, message: str, *, numerator: Symbol | None = None, denominator: Symbol | None = None) -> None:
        super().__init__(message)
        self.numerator = numerator
        self.denominator = denominator


def ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        raise DegenerateRateError(f"cannot divide {numerator!r} by a zero rate")
    return numerator / denominator


@dataclass(frozen=True)
class QuoteSet:
    """Point-in-time rates of every supported symbol relative to one anchor.

    ``rates[symbol]`` is the amount of ``symbol`` one unit of ``anchor`` buys,
    so ``rates[anchor]`` is always 1. A zero rate is accepted here and flagged
    later by whatever has to divide by it.
    """

    anchor: Symbol
    rates: Mapping[Symbol, float]

    def __post_init__(self) -> None:
        anchor = Symbol(self.anchor)
        normalized: dict[Symbol, float] = {}
        for key, raw in self.rates.items():
            symbol = Symbol(key)
            value = float(raw)
            if not math.isfinite(value) or value < 0:
                msg = f"rate for {symbol} must be a finite non-negative number, got {raw!r}"
                raise ValueError(msg)
            normalized[symbol] = value

        missing = [symbol for symbol in ALL_SYMBOLS if symbol not in normalized]
        if missing:
            msg = f"quote set is missing rates for {', '.join(missing)}"
            raise ValueError(msg)
        if normalized[anchor] != 1.0:
            msg = f"anchor {anchor} must have rate 1.0, got {normalized[anchor]!r}"
            raise ValueError(msg)

        object.__setattr__(self, "anchor", anchor)
        object.__setattr__(self, "rates", MappingProxyType({symbol: normalized[symbol] for symbol in ALL_SYMBOLS}))

    def rate(self, symbol: Symbol) -> float:
        return self.rates[Symbol(symbol)]

    def rebased(self, anchor: Symbol) -> QuoteSet:
        anchor = Symbol(anchor)
        if anchor == self.anchor:
            return self

        pivot = self.rates[anchor]
        if pivot == 0:
            raise DegenerateRateError(
                f"cannot rebase quote set on {anchor}: its rate is zero", denominator=anchor
            )
        rates = {symbol: value / pivot for symbol, value in self.rates.items()}
        rates[anchor] = 1.0
        return QuoteSet(anchor=anchor, rates=rates)


__all__ = ["DegenerateRateError", "QuoteSet", "ratio"]
