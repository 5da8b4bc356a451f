"""
Per-instrument valuation formulas.

Graham's simplified intrinsic value:

    V = LPA * (8.5 + 2g) * (4.4 / r)

where ``g`` is the expected growth rate (%) and ``r`` the reference discount
rate (%). The constants are module defaults and can be overridden per call.
"""
from __future__ import annotations

from services.errors import DivisionUndefined, UndefinedWeight

BASE_MULTIPLE = 8.5
GROWTH_MULTIPLIER = 2.0
BOND_YIELD = 4.4


def variation(previous_price: float, current_price: float) -> float:
    """Percent change from previous to current price."""
    if previous_price == 0:
        raise DivisionUndefined("Previous price is zero; variation is undefined")
    return (current_price / previous_price - 1) * 100


def inverse_weight(variation_pct: float) -> float:
    denominator = 1 + variation_pct / 100
    if denominator == 0:
        raise UndefinedWeight("Price collapsed to zero (-100% variation); weight is undefined")
    return 1 / denominator


def intrinsic_value(
    lpa: float,
    growth_rate: float,
    discount_rate_pct: float,
    base_multiple: float = BASE_MULTIPLE,
    growth_multiplier: float = GROWTH_MULTIPLIER,
    bond_yield: float = BOND_YIELD,
) -> float:
    # non-positive earnings, growth or rate make the estimate meaningless for ranking
    if lpa <= 0 or growth_rate <= 0 or discount_rate_pct <= 0:
        return 0.0
    return lpa * (base_multiple + growth_multiplier * growth_rate) * (bond_yield / discount_rate_pct)


def safety_margin(intrinsic: float, current_price: float) -> float:
    """Positive when the price sits below the intrinsic value."""
    if intrinsic == 0:
        return 0.0
    return (intrinsic - current_price) / intrinsic * 100
