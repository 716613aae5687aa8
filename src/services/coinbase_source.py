from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from config import AppSettings
from domain.currencies import ALL_SYMBOLS, AnchorHint, Symbol, resolve_anchor
from domain.quotes import QuoteSet

from .quote_fetcher import FetchError, QuoteFetcher

logger = logging.getLogger(__name__)

# API docs: https://docs.cdp.coinbase.com/coinbase-app/docs/api-exchange-rates
DEFAULT_EXCHANGE_URL = "https://api.coinbase.com/v2/exchange-rates"


class CoinbaseAPIError(FetchError):
    pass


@dataclass(frozen=True)
class ExchangeRates:
    currency: str
    rates: dict[str, float]


class _CoinbaseClient:
    def __init__(
        self,
        base_url: str = DEFAULT_EXCHANGE_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 2,
        retry_backoff_seconds: float = 0.5,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

        retries = Retry(
            total=retry_attempts,
            backoff_factor=retry_backoff_seconds,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def get_exchange_rates(self, *, currency: str) -> ExchangeRates:
        payload = self._request("GET", params={"currency": currency})

        data = payload.get("data")
        if not isinstance(data, dict):
            raise CoinbaseAPIError("Coinbase payload missing data object", payload=payload)

        currency_raw = data.get("currency")
        rates_raw = data.get("rates")
        if not currency_raw or not isinstance(rates_raw, dict):
            raise CoinbaseAPIError("Coinbase payload missing currency or rates", payload=payload)

        parsed_rates: dict[str, float] = {}
        for code_raw, rate in rates_raw.items():
            parsed = self._to_float(rate)
            if parsed is None:
                raise CoinbaseAPIError(f"Coinbase rate for {code_raw} is not numeric", payload=payload)
            parsed_rates[str(code_raw).upper()] = parsed

        return ExchangeRates(currency=str(currency_raw).upper(), rates=parsed_rates)

    def _request(self, method: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = self._session.request(method, self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            message, payload = self._extract_error(resp)
            raise CoinbaseAPIError(message, status_code=status_code, payload=payload) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise CoinbaseAPIError("Coinbase request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise CoinbaseAPIError("Coinbase returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise CoinbaseAPIError("Coinbase returned unexpected payload type", payload=payload_raw)

        return payload_raw

    @staticmethod
    def _to_float(value: Any) -> float | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(str(value))
        except ValueError:
            return None

    @staticmethod
    def _extract_error(response: Response | None) -> tuple[str, Any | None]:
        message = "Coinbase request failed"
        payload: Any | None = None
        if response is None:
            return message, payload

        try:
            payload = response.json()
            errors = payload.get("errors") if isinstance(payload, dict) else None
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                message = errors[0].get("message") or message
        except ValueError:
            payload = response.text
        return message, payload


class CoinbaseQuoteFetcher(QuoteFetcher):
    def __init__(self, *, client: _CoinbaseClient | None = None) -> None:
        self.client = client or _CoinbaseClient()

    @classmethod
    def from_settings(cls, settings: AppSettings) -> CoinbaseQuoteFetcher:
        client = _CoinbaseClient(
            base_url=settings.exchange_api_url,
            timeout=settings.request_timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )
        return cls(client=client)

    def fetch(self, anchor_hint: AnchorHint | None = None) -> QuoteSet:
        requested = resolve_anchor(anchor_hint)
        snapshot = self.client.get_exchange_rates(currency=requested.value)

        try:
            anchor = Symbol(snapshot.currency)
        except ValueError as exc:
            raise FetchError(f"Unsupported anchor currency {snapshot.currency!r}", payload=snapshot) from exc
        if anchor != requested:
            logger.info("Requested %s-anchored rates, Coinbase answered with %s", requested, anchor)

        rates: dict[Symbol, float] = {}
        for symbol in ALL_SYMBOLS:
            value = snapshot.rates.get(symbol.value)
            if value is None:
                if symbol != anchor:
                    raise FetchError(f"Coinbase rates missing {symbol}", payload=snapshot)
                value = 1.0
            rates[symbol] = value

        try:
            return QuoteSet(anchor=anchor, rates=rates)
        except ValueError as exc:
            raise FetchError(f"Coinbase returned an invalid quote set: {exc}", payload=snapshot) from exc


__all__ = ["CoinbaseAPIError", "CoinbaseQuoteFetcher", "ExchangeRates"]
