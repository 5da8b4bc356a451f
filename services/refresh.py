from __future__ import annotations
import logging
import threading
from typing import Iterable, List, Optional

from services.errors import ApiError
from services.market import MarketDataClient
from services.models import Instrument
from services.portfolio import InstrumentStore

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Pulls fresh quotes into an InstrumentStore on start and then every
    ``interval_seconds`` until stopped.

    Overlapping refreshes are not cancelled; whichever response lands last
    overwrites the snapshot. A failed refresh keeps the last good snapshot.
    """

    def __init__(self, client: MarketDataClient, store: InstrumentStore, interval_seconds: float = 300.0):
        self._client = client
        self._store = store
        self.interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def refresh(self, symbols: Iterable[str] | None = None) -> List[Instrument]:
        symbols = list(symbols) if symbols is not None else self._store.symbols()
        try:
            quotes = self._client.fetch_many(symbols)
        except ApiError as e:
            self._store.record_error(e)
            raise
        self._store.apply_quotes(quotes)
        return quotes

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="quote-refresh", daemon=True)
        self._thread.start()
        logger.info("Quote refresh started (every %ss)", self.interval)

    def stop(self, timeout: float | None = 5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Quote refresh stopped")

    def _run(self):
        self._tick()
        while not self._stop.wait(self.interval):
            self._tick()

    def _tick(self):
        if not self._store.symbols():
            return
        try:
            quotes = self.refresh()
            logger.info("Refreshed %d instruments", len(quotes))
        except ApiError as e:
            logger.warning("Refresh failed, keeping last known prices: [%s] %s", e.code, e.message)
        except Exception:
            # the timer thread must outlive any single bad refresh
            logger.exception("Unexpected refresh failure, keeping last known prices")
