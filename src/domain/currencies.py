from __future__ import annotations

from enum import StrEnum


class Symbol(StrEnum):
    USD = "USD"
    SGD = "SGD"
    EUR = "EUR"
    BTC = "BTC"
    DOGE = "DOGE"
    ETH = "ETH"


FIAT_SYMBOLS: tuple[Symbol, ...] = (Symbol.USD, Symbol.SGD, Symbol.EUR)
CRYPTO_SYMBOLS: tuple[Symbol, ...] = (Symbol.BTC, Symbol.DOGE, Symbol.ETH)
ALL_SYMBOLS: tuple[Symbol, ...] = (*FIAT_SYMBOLS, *CRYPTO_SYMBOLS)

STORAGE_ANCHOR = Symbol.USD


class AnchorHint(StrEnum):
    FIAT = "fiat"
    CRYPTO = "crypto"

    @property
    def anchor(self) -> Symbol:
        if self is AnchorHint.CRYPTO:
            return Symbol.BTC
        return Symbol.USD


class Presentation(StrEnum):
    """Which symbol partition is laid out as rows of a derived matrix."""

    FIAT_AS_BASE = "fiat-as-base"
    CRYPTO_AS_BASE = "crypto-as-base"

    @property
    def rows(self) -> tuple[Symbol, ...]:
        if self is Presentation.CRYPTO_AS_BASE:
            return CRYPTO_SYMBOLS
        return FIAT_SYMBOLS

    @property
    def columns(self) -> tuple[Symbol, ...]:
        if self is Presentation.CRYPTO_AS_BASE:
            return FIAT_SYMBOLS
        return CRYPTO_SYMBOLS

    @property
    def anchor_hint(self) -> AnchorHint:
        if self is Presentation.CRYPTO_AS_BASE:
            return AnchorHint.CRYPTO
        return AnchorHint.FIAT


def resolve_anchor(hint: AnchorHint | None) -> Symbol:
    if hint is None:
        return Symbol.USD
    return hint.anchor


__all__ = [
    "ALL_SYMBOLS",
    "CRYPTO_SYMBOLS",
    "FIAT_SYMBOLS",
    "STORAGE_ANCHOR",
    "AnchorHint",
    "Presentation",
    "Symbol",
    "resolve_anchor",
]
