from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List

import requests

from services.errors import (
    ApiError,
    NetworkError,
    NotFound,
    RateLimited,
    Unauthorized,
    UnknownError,
)
from services.models import Instrument
from utils.cache import TTLCache

logger = logging.getLogger(__name__)

MAX_GROWTH_RATE = 25.0
EARNINGS_RETENTION = 0.5


def _normalize_symbol(symbol: str) -> str:
    return str(symbol or '').strip().upper()


def _num(v: Any) -> float:
    try:
        return float(v) if v is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def estimate_lpa(price: float, pl: float) -> float:
    """Earnings per share implied by price and P/L."""
    if not pl or pl <= 0:
        return 0.0
    return price / pl


def estimate_growth_rate(roe: float) -> float:
    # growth = ROE * retention (50%), capped
    if not roe or roe <= 0:
        return 0.0
    return min(roe * EARNINGS_RETENTION, MAX_GROWTH_RATE)


def to_instrument(stock: Dict[str, Any]) -> Instrument:
    """Map one provider result into an Instrument."""
    symbol = _normalize_symbol(stock.get("symbol"))
    price = _num(stock.get("price") or stock.get("regularMarketPrice"))
    prev = stock.get("priceClose") or stock.get("regularMarketPreviousClose")
    pl = _num(stock.get("pl") or stock.get("peRatio"))
    roe = _num(stock.get("roe"))
    return Instrument(
        id=symbol,
        name=stock.get("name") or stock.get("longName") or stock.get("shortName") or symbol,
        symbol=symbol,
        current_price=price,
        previous_price=_num(prev) if prev else price,
        lpa=estimate_lpa(price, pl),
        growth_rate=estimate_growth_rate(roe),
        pl=pl,
        pbv=_num(stock.get("pbv")),
        dy=_num(stock.get("dy")),
        roe=roe,
        roic=_num(stock.get("roic")),
        net_margin=_num(stock.get("netMargin")),
    )


class MarketDataClient:
    """
    Quote client for a brapi-style provider (``GET {base_url}/quote/{symbols}``).

    Results are cached for ``cache_ttl_ms``; a multi-symbol call is cached
    under the exact (sorted) symbol set, so a different combination is a miss.
    Every failure surfaces as an ``ApiError`` subclass. No retries.
    """

    def __init__(
        self,
        base_url: str,
        cache: TTLCache,
        timeout_ms: int = 10000,
        cache_ttl_ms: int = 300000,
        token: str | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout_ms / 1000.0
        self.cache_ttl = cache_ttl_ms / 1000.0
        self._cache = cache
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_settings(cls, settings, cache: TTLCache | None = None, session: requests.Session | None = None) -> "MarketDataClient":
        return cls(
            base_url=settings.api_base_url,
            cache=cache or TTLCache(ttl_seconds=settings.cache_ttl_ms / 1000.0),
            timeout_ms=settings.api_timeout_ms,
            cache_ttl_ms=settings.cache_ttl_ms,
            token=settings.api_token,
            session=session,
        )

    def fetch_one(self, symbol: str) -> Instrument:
        symbol = _normalize_symbol(symbol)
        if not symbol:
            raise ValueError("symbol is required")
        key = f"stock_{symbol}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        logger.info("Fetching quote for %s", symbol)
        results = self._request_quotes(symbol)
        stock = to_instrument(results[0])
        self._cache.set(key, stock, self.cache_ttl)
        logger.info("Loaded %s", symbol)
        return stock

    def fetch_many(self, symbols: Iterable[str]) -> List[Instrument]:
        symbols = [_normalize_symbol(s) for s in symbols if _normalize_symbol(s)]
        if not symbols:
            raise ValueError("At least one symbol is required")
        key = "stocks_" + ",".join(sorted(set(symbols)))
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        logger.info("Fetching quotes for %d symbols", len(symbols))
        results = self._request_quotes(",".join(symbols))
        stocks = tuple(to_instrument(r) for r in results)
        self._cache.set(key, stocks, self.cache_ttl)
        logger.info("Loaded %d quotes", len(stocks))
        return list(stocks)

    def clear_cache(self):
        self._cache.clear()

    def cache_size(self) -> int:
        return self._cache.size()

    # --------------------------
    # Transport
    # --------------------------

    def _request_quotes(self, path_symbols: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/quote/{path_symbols}"
        try:
            resp = self._session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except ValueError as e:
            # JSON decode failures (and malformed URLs) are not transport faults
            logger.error("Invalid response for %s: %s", path_symbols, e)
            raise UnknownError(f"Invalid response from quote provider: {e}") from e
        except requests.RequestException as e:
            raise self._classify(e, path_symbols) from e

        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            logger.warning("No results for %s", path_symbols)
            raise NotFound(f"Symbol not found: {path_symbols}")
        if not isinstance(results, list) or not all(isinstance(r, dict) for r in results):
            logger.error("Malformed results for %s: %r", path_symbols, results)
            raise UnknownError("Invalid response from quote provider: results must be a list of quotes")
        return results

    def _classify(self, error: requests.RequestException, path_symbols: str) -> ApiError:
        if isinstance(error, requests.HTTPError) and error.response is not None:
            status = error.response.status_code
            if status == 401:
                err = Unauthorized("Invalid or missing authentication token. Set BRAPI_TOKEN in the environment or .env file")
            elif status == 404:
                err = NotFound(f"Symbol not found: {path_symbols}. Check the ticker")
            elif status == 429:
                err = RateLimited("Request limit exceeded. Wait a few minutes before refreshing")
            else:
                err = UnknownError(_provider_message(error.response) or str(error))
        elif isinstance(error, requests.Timeout):
            err = NetworkError(f"Quote request timed out after {self.timeout:g}s")
        elif isinstance(error, requests.ConnectionError):
            err = NetworkError(f"Could not reach quote provider: {error}")
        else:
            err = NetworkError(str(error) or type(error).__name__)
        logger.error("[%s] %s", err.code, err.message)
        return err


def _provider_message(response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("message")
    return None
