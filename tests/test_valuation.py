import math

import pytest

from services.errors import DivisionUndefined, UndefinedWeight
from services.valuation import intrinsic_value, inverse_weight, safety_margin, variation


def test_variation():
    assert variation(10, 11) == pytest.approx(10.0)
    assert variation(10, 9) == pytest.approx(-10.0)
    assert variation(10, 10) == 0


def test_variation_zero_previous_price_is_an_error():
    with pytest.raises(DivisionUndefined) as exc:
        variation(0, 10)
    assert exc.value.code == "DIVISION_UNDEFINED"


def test_inverse_weight():
    assert inverse_weight(0) == 1
    assert inverse_weight(100) == pytest.approx(0.5)
    assert inverse_weight(-50) == pytest.approx(2.0)


def test_inverse_weight_total_collapse():
    with pytest.raises(UndefinedWeight):
        inverse_weight(-100)


def test_intrinsic_value_graham():
    assert intrinsic_value(2, 5, 10) == pytest.approx(16.28)


@pytest.mark.parametrize("lpa,growth,rate", [(0, 5, 10), (-1, 5, 10), (2, 0, 10), (2, -3, 10), (2, 5, 0), (2, 5, -1)])
def test_intrinsic_value_degenerate_inputs(lpa, growth, rate):
    assert intrinsic_value(lpa, growth, rate) == 0


def test_intrinsic_value_constants_override():
    value = intrinsic_value(1, 10, 10, base_multiple=7, growth_multiplier=1.5, bond_yield=5)
    assert value == pytest.approx(1 * (7 + 15) * 0.5)


def test_safety_margin():
    assert safety_margin(20, 15) == pytest.approx(25.0)
    assert safety_margin(10, 12) == pytest.approx(-20.0)


@pytest.mark.parametrize("price", [0, 10, 1e9])
def test_safety_margin_zero_intrinsic(price):
    assert safety_margin(0, price) == 0
    assert not math.isnan(safety_margin(0, price))
