from __future__ import annotations

from typing import Any, Protocol

from domain.currencies import AnchorHint
from domain.quotes import QuoteSet


class FetchError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class QuoteFetcher(Protocol):
    def fetch(self, anchor_hint: AnchorHint | None = None) -> QuoteSet: ...


__all__ = ["FetchError", "QuoteFetcher"]
