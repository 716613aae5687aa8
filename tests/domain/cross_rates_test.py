from __future__ import annotations

import pytest

from domain.cross_rates import cross_rate, derive
from domain.currencies import CRYPTO_SYMBOLS, FIAT_SYMBOLS, Presentation, Symbol
from domain.quotes import DegenerateRateError
from tests.helpers.quotes import make_quote


def _usd_quote():  # type: ignore[no-untyped-def]
    return make_quote(SGD=1.35, EUR=0.92, BTC=0.000016, DOGE=6.25, ETH=0.0003)


@pytest.mark.parametrize("presentation", list(Presentation))
def test_trivial_quote_set_derives_unit_cells(presentation: Presentation) -> None:
    matrix = derive(make_quote(), presentation)

    payload = matrix.to_payload()
    assert all(value == "1.000000" for row in payload.values() for value in row.values())
    assert len(payload) == 3
    assert all(len(row) == 3 for row in payload.values())


def test_fiat_as_base_layout() -> None:
    matrix = derive(_usd_quote(), Presentation.FIAT_AS_BASE)

    payload = matrix.to_payload()
    assert list(payload) == ["USD", "SGD", "EUR"]
    assert list(payload["USD"]) == ["BTC", "DOGE", "ETH"]
    assert matrix.rows == FIAT_SYMBOLS
    assert matrix.columns == CRYPTO_SYMBOLS


def test_crypto_as_base_layout() -> None:
    matrix = derive(_usd_quote(), Presentation.CRYPTO_AS_BASE)

    payload = matrix.to_payload()
    assert list(payload) == ["BTC", "DOGE", "ETH"]
    assert list(payload["ETH"]) == ["USD", "SGD", "EUR"]


def test_anchor_row_takes_rates_directly() -> None:
    matrix = derive(_usd_quote(), Presentation.FIAT_AS_BASE)

    assert matrix.cell(Symbol.USD, Symbol.DOGE).display == "6.250000"
    assert matrix.cell(Symbol.USD, Symbol.BTC).display == "0.000016"


def test_non_anchor_rows_divide_by_row_rate() -> None:
    matrix = derive(_usd_quote(), Presentation.FIAT_AS_BASE)

    assert matrix.cell(Symbol.SGD, Symbol.DOGE).value == pytest.approx(6.25 / 1.35)
    assert matrix.cell(Symbol.EUR, Symbol.ETH).display == f"{0.0003 / 0.92:.6f}"


def test_cross_rates_do_not_depend_on_anchor() -> None:
    usd_quote = _usd_quote()
    btc_quote = usd_quote.rebased(Symbol.BTC)

    for presentation in Presentation:
        usd_matrix = derive(usd_quote, presentation)
        btc_matrix = derive(btc_quote, presentation)
        for row in presentation.rows:
            for column in presentation.columns:
                assert btc_matrix.cell(row, column).value == pytest.approx(usd_matrix.cell(row, column).value)


def test_presentations_are_reciprocal() -> None:
    quote = _usd_quote()
    fiat = derive(quote, Presentation.FIAT_AS_BASE)
    crypto = derive(quote, Presentation.CRYPTO_AS_BASE)

    for fiat_symbol in FIAT_SYMBOLS:
        for crypto_symbol in CRYPTO_SYMBOLS:
            forward = fiat.cell(fiat_symbol, crypto_symbol).value
            backward = crypto.cell(crypto_symbol, fiat_symbol).value
            assert forward is not None and backward is not None
            assert forward == pytest.approx(1 / backward)


def test_derive_is_idempotent() -> None:
    quote = _usd_quote()

    assert derive(quote, Presentation.CRYPTO_AS_BASE) == derive(quote, Presentation.CRYPTO_AS_BASE)


def test_cross_rate_raises_on_zero_row_rate() -> None:
    quote = make_quote(EUR=0.0)

    with pytest.raises(DegenerateRateError):
        cross_rate(quote, Symbol.EUR, Symbol.BTC)


def test_zero_row_rate_flags_only_affected_cells() -> None:
    quote = make_quote(SGD=1.35, DOGE=0.0)

    matrix = derive(quote, Presentation.CRYPTO_AS_BASE)

    payload = matrix.to_payload()
    assert payload["DOGE"] == {"USD": None, "SGD": None, "EUR": None}
    assert payload["BTC"]["SGD"] == "1.350000"
    degenerate = matrix.degenerate_cells()
    assert {(cell.row, cell.column) for cell in degenerate} == {
        (Symbol.DOGE, Symbol.USD),
        (Symbol.DOGE, Symbol.SGD),
        (Symbol.DOGE, Symbol.EUR),
    }
    assert all(cell.error for cell in degenerate)


def test_zero_column_rate_is_a_valid_zero_cell() -> None:
    matrix = derive(make_quote(DOGE=0.0), Presentation.FIAT_AS_BASE)

    assert matrix.cell(Symbol.SGD, Symbol.DOGE).display == "0.000000"
    assert not matrix.degenerate_cells()
