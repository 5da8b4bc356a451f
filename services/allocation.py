from __future__ import annotations
import logging
from typing import List, Optional, Sequence

import numpy as np

from services.errors import ApiError, UndefinedWeight
from services.models import AllocationResult, Instrument
from services.valuation import intrinsic_value, inverse_weight, safety_margin, variation

logger = logging.getLogger(__name__)


def compute_allocations(
    instruments: Sequence[Instrument],
    total_budget: float,
    discount_rate_pct: float,
) -> List[AllocationResult]:
    """
    Split ``total_budget`` across ``instruments`` by inverse price momentum.

    Laggards get more: weight_i = 1 / (1 + variation_i / 100), normalized to
    sum to 1. Instruments whose weight cannot be computed (zero previous
    price, -100% variation) keep their error and get no allocation. If no
    positive total weight is left, every instrument gets 1/N.

    Results follow input order; inputs are never modified.
    """
    instruments = list(instruments)
    if not instruments:
        raise ValueError("At least one instrument is required")
    if not total_budget > 0:
        raise ValueError(f"Total budget must be positive, got {total_budget}")

    variations: List[Optional[float]] = []
    errors: List[Optional[ApiError]] = []
    raw = np.zeros(len(instruments))
    for i, inst in enumerate(instruments):
        var = None
        err = None
        try:
            var = variation(inst.previous_price, inst.current_price)
            w = inverse_weight(var)
            if not np.isfinite(w):
                raise UndefinedWeight(f"Weight for {inst.symbol or inst.id} is not finite")
            raw[i] = w
        except ApiError as e:
            err = e
            logger.warning("No weight for %s: %s", inst.symbol or inst.id, e.message)
        variations.append(var)
        errors.append(err)

    computable = np.array([e is None for e in errors])
    weights = np.where(computable, raw, 0.0)
    total_weight = float(weights.sum())

    if total_weight > 0:
        normalized = weights / total_weight
    else:
        logger.warning("Total weight %.6g is not positive; falling back to equal weights", total_weight)
        normalized = np.full(len(instruments), 1.0 / len(instruments))
    amounts = normalized * total_budget

    results: List[AllocationResult] = []
    for i, inst in enumerate(instruments):
        iv = intrinsic_value(inst.lpa, inst.growth_rate, discount_rate_pct)
        results.append(AllocationResult(
            instrument=inst,
            variation_pct=variations[i],
            intrinsic_value=iv,
            safety_margin_pct=safety_margin(iv, inst.current_price),
            inverse_weight=float(raw[i]) if computable[i] else None,
            normalized_weight=float(normalized[i]),
            investment_amount=float(amounts[i]),
            error=errors[i],
        ))
    return results
