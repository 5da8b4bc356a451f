from __future__ import annotations
import math
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from services.errors import ApiError

# JSON (camelCase) name -> attribute name
_ALIASES = {
    "previousPrice": "previous_price",
    "currentPrice": "current_price",
    "growthRate": "growth_rate",
    "netMargin": "net_margin",
}
_REQUIRED = ("id", "name", "symbol", "previous_price", "current_price", "lpa", "growth_rate")
_TEXT_FIELDS = {"id", "name", "symbol"}


def _to_float(key: str, v: Any) -> float:
    try:
        value = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"Field '{key}' must be numeric, got {v!r}")
    if not math.isfinite(value):
        raise ValueError(f"Field '{key}' must be a finite number, got {v!r}")
    return value


@dataclass(frozen=True)
class Instrument:
    id: str
    name: str
    symbol: str
    previous_price: float
    current_price: float
    lpa: float
    growth_rate: float
    pl: Optional[float] = None
    pbv: Optional[float] = None
    dy: Optional[float] = None
    roe: Optional[float] = None
    roic: Optional[float] = None
    net_margin: Optional[float] = None

    @classmethod
    def coerce(cls, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        """
        Normalize a camelCase or snake_case mapping into attribute kwargs.
        Unknown keys are ignored; with ``partial`` missing required keys are allowed.
        """
        names = {f.name for f in fields(cls)}
        out: Dict[str, Any] = {}
        for k, v in (data or {}).items():
            key = _ALIASES.get(k, k)
            if key not in names:
                continue
            if key in _TEXT_FIELDS:
                out[key] = str(v).strip() if v is not None else ""
            elif v is None:
                if key in _REQUIRED:
                    raise ValueError(f"Field '{k}' is required")
                out[key] = None
            else:
                out[key] = _to_float(k, v)
        if "symbol" in out:
            out["symbol"] = out["symbol"].upper()
        if not partial:
            missing = [k for k in _REQUIRED if k not in ("id", "name") and out.get(k) in (None, "")]
            if missing:
                raise ValueError(f"Missing instrument fields: {', '.join(missing)}")
            out.setdefault("id", out["symbol"])
            out.setdefault("name", out["symbol"])
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Instrument":
        return cls(**cls.coerce(data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "previousPrice": self.previous_price,
            "currentPrice": self.current_price,
            "lpa": self.lpa,
            "growthRate": self.growth_rate,
            "pl": self.pl,
            "pbv": self.pbv,
            "dy": self.dy,
            "roe": self.roe,
            "roic": self.roic,
            "netMargin": self.net_margin,
        }


@dataclass(frozen=True)
class AllocationResult:
    instrument: Instrument
    variation_pct: Optional[float]
    intrinsic_value: float
    safety_margin_pct: float
    inverse_weight: Optional[float]
    normalized_weight: float
    investment_amount: float
    error: Optional[ApiError] = None

    @property
    def investment_pct(self) -> float:
        return self.normalized_weight * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instrument": self.instrument.to_dict(),
            "variationPct": self.variation_pct,
            "intrinsicValue": self.intrinsic_value,
            "safetyMarginPct": self.safety_margin_pct,
            "inverseWeight": self.inverse_weight,
            "normalizedWeight": self.normalized_weight,
            "investmentPct": self.investment_pct,
            "investmentAmount": self.investment_amount,
            "error": self.error.to_dict() if self.error else None,
        }
