"""Pytest configuration and shared fixtures."""

import pytest
import requests

from services.models import Instrument
from utils.cache import TTLCache


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code=200, payload=None, json_error=False):
        self.status_code = status_code
        self._payload = payload
        self._json_error = json_error

    def json(self):
        if self._json_error:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Records every GET and replays queued responses (or raises queued exceptions)."""

    def __init__(self, *responses):
        self.headers = {}
        self.calls = []
        self._responses = list(responses)

    def queue(self, *responses):
        self._responses.extend(responses)

    def get(self, url, timeout=None):
        self.calls.append({"url": url, "timeout": timeout, "headers": dict(self.headers)})
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def quote_payload(*symbols, price=10.0, price_close=10.0, pl=8.0, roe=20.0):
    return {
        "results": [
            {
                "symbol": s,
                "name": f"{s} SA",
                "price": price,
                "priceClose": price_close,
                "pl": pl,
                "pbv": 1.2,
                "dy": 6.5,
                "roe": roe,
                "roic": 12.0,
                "netMargin": 18.0,
            }
            for s in symbols
        ],
        "requestedAt": "2024-05-10T14:00:00.000Z",
        "responseStatus": "OK",
    }


def make_instrument(ident="1", previous=10.0, current=10.0, lpa=0.5, growth=5.0, symbol=None):
    return Instrument(
        id=ident,
        name=f"A{ident}",
        symbol=symbol or f"A{ident}",
        previous_price=previous,
        current_price=current,
        lpa=lpa,
        growth_rate=growth,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(ttl_seconds=300, clock=clock)
