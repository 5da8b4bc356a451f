from __future__ import annotations
import dataclasses
import logging
import os
import threading
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from services.errors import ApiError
from services.models import Instrument
from utils.config import PORTFOLIO_CSV_DEFAULT

logger = logging.getLogger(__name__)

# canonical column -> accepted CSV headers
_COLUMNS = {
    "id": ["id", "ID"],
    "name": ["name", "Name", "acao"],
    "symbol": ["symbol", "ticker", "Ticker", "SYMBOL"],
    "previous_price": ["previous_price", "previousPrice", "previous_close"],
    "current_price": ["current_price", "currentPrice", "price"],
    "lpa": ["lpa", "eps", "LPA"],
    "growth_rate": ["growth_rate", "growthRate"],
}
_OPTIONAL = ["pl", "pbv", "dy", "roe", "roic", "net_margin"]


def load_instruments(csv_path: str | None = None) -> Tuple[Instrument, ...]:
    """
    Load the starting stock set from CSV. Accepts flexible column names.
    ``id`` and ``name`` default to the symbol; ``lpa``/``growth_rate`` to 0.
    """
    path = os.path.abspath(csv_path or PORTFOLIO_CSV_DEFAULT)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Portfolio CSV not found at: {path}")

    df = pd.read_csv(path)
    df.columns = [str(c).strip() for c in df.columns]
    rename = {}
    for canonical, options in _COLUMNS.items():
        col = next((c for c in options if c in df.columns), None)
        if col:
            rename[col] = canonical
    df = df.rename(columns=rename)

    missing = [c for c in ("symbol", "previous_price", "current_price") if c not in df.columns]
    if missing:
        raise ValueError(f"Portfolio CSV is missing columns: {', '.join(missing)}")

    df = df.dropna(subset=["symbol"]).copy()
    df["symbol"] = df["symbol"].astype(str).str.strip().str.upper()
    for col in ("id", "name"):
        if col not in df.columns:
            df[col] = df["symbol"]
        df[col] = df[col].fillna(df["symbol"]).astype(str).str.strip()
    for col in ("lpa", "growth_rate"):
        if col not in df.columns:
            df[col] = 0.0
    numeric = ["previous_price", "current_price", "lpa", "growth_rate"] + [c for c in _OPTIONAL if c in df.columns]
    for col in numeric:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    bad = df[df[["previous_price", "current_price"]].isna().any(axis=1)]
    if not bad.empty:
        raise ValueError(f"Non-numeric prices for: {', '.join(bad['symbol'])}")
    df[["lpa", "growth_rate"]] = df[["lpa", "growth_rate"]].fillna(0.0)

    instruments = []
    for row in df.to_dict("records"):
        opt = {c: (None if pd.isna(row[c]) else float(row[c])) for c in _OPTIONAL if c in row}
        instruments.append(Instrument(
            id=row["id"],
            name=row["name"],
            symbol=row["symbol"],
            previous_price=float(row["previous_price"]),
            current_price=float(row["current_price"]),
            lpa=float(row["lpa"]),
            growth_rate=float(row["growth_rate"]),
            **opt,
        ))
    logger.info("Loaded %d instruments from %s", len(instruments), path)
    return tuple(instruments)


def merge_quotes(snapshot: Iterable[Instrument], quotes: Iterable[Instrument]) -> Tuple[Instrument, ...]:
    """
    New snapshot with provider quotes applied. Instruments keep their id;
    quotes for symbols not in the snapshot are appended.
    """
    by_symbol: Dict[str, Instrument] = {q.symbol: q for q in quotes}
    merged: List[Instrument] = []
    matched = set()
    for inst in snapshot:
        quote = by_symbol.get(inst.symbol)
        if quote:
            matched.add(inst.symbol)
            merged.append(dataclasses.replace(quote, id=inst.id))
        else:
            merged.append(inst)
    merged.extend(q for s, q in by_symbol.items() if s not in matched)
    return tuple(merged)


class InstrumentStore:
    """
    Holds the current instrument collection as an immutable snapshot.

    Every write swaps in a new tuple, so a reader computing allocations over
    ``snapshot()`` is never affected by a concurrent refresh.
    """

    def __init__(self, instruments: Iterable[Instrument] = ()):
        self._lock = threading.Lock()
        self._snapshot: Tuple[Instrument, ...] = tuple(instruments)
        self.last_error: Optional[ApiError] = None

    def snapshot(self) -> Tuple[Instrument, ...]:
        with self._lock:
            return self._snapshot

    def symbols(self) -> List[str]:
        return [i.symbol for i in self.snapshot() if i.symbol]

    def apply_quotes(self, quotes: Iterable[Instrument]) -> Tuple[Instrument, ...]:
        with self._lock:
            self._snapshot = merge_quotes(self._snapshot, quotes)
            self.last_error = None
            return self._snapshot

    def record_error(self, error: ApiError):
        with self._lock:
            self.last_error = error

    def add(self, instrument: Instrument) -> Instrument:
        with self._lock:
            if any(i.id == instrument.id for i in self._snapshot):
                raise ValueError(f"Instrument already exists: {instrument.id}")
            self._snapshot = self._snapshot + (instrument,)
        return instrument

    def update(self, instrument_id: str, **changes) -> Instrument:
        if "id" in changes and changes["id"] != instrument_id:
            raise ValueError("Instrument id cannot be changed")
        with self._lock:
            for idx, inst in enumerate(self._snapshot):
                if inst.id == instrument_id:
                    updated = dataclasses.replace(inst, **changes)
                    self._snapshot = self._snapshot[:idx] + (updated,) + self._snapshot[idx + 1:]
                    return updated
        raise KeyError(instrument_id)

    def remove(self, instrument_id: str):
        with self._lock:
            remaining = tuple(i for i in self._snapshot if i.id != instrument_id)
            if len(remaining) == len(self._snapshot):
                raise KeyError(instrument_id)
            if not remaining:
                raise ValueError("The portfolio needs at least one instrument")
            self._snapshot = remaining
