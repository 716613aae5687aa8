from __future__ import annotations

from domain.currencies import AnchorHint, Symbol
from domain.quotes import QuoteSet
from services.quote_fetcher import FetchError


def make_quote(anchor: Symbol = Symbol.USD, **rates: float) -> QuoteSet:
    """QuoteSet with every rate at 1.0 unless overridden by keyword, e.g. ``make_quote(SGD=1.35)``."""
    values = {symbol: 1.0 for symbol in Symbol}
    for code, value in rates.items():
        values[Symbol(code)] = value
    return QuoteSet(anchor=anchor, rates=values)


class StubQuoteFetcher:
    def __init__(self, *results: QuoteSet | FetchError) -> None:
        self.results = list(results)
        self.calls: list[AnchorHint | None] = []

    def fetch(self, anchor_hint: AnchorHint | None = None) -> QuoteSet:
        self.calls.append(anchor_hint)
        result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
        if isinstance(result, FetchError):
            raise result
        return result
