import pytest

from stakemint.protocol.fixed_point import (
    parse_units, format_units, mul_div, checked_sub, checked_add, saturating_sub,
)


def test_parse_units():
    assert parse_units("1000", 6) == 1000 * 10**6
    assert parse_units("0.03", 18) == 3 * 10**16
    assert parse_units(5, 0) == 5


@pytest.mark.parametrize("bad", ["-1", "abc", "0.0000001", "NaN"])
def test_parse_units_rejects(bad):
    with pytest.raises(ValueError):
        parse_units(bad, 6)


def test_format_units():
    assert format_units(1500 * 10**4, 6) == "15"
    assert format_units(3 * 10**16, 18) == "0.03"
    assert format_units(0, 6) == "0"


def test_mul_div_floors_and_saturates():
    assert mul_div(7, 3, 2) == 10
    assert mul_div(7, 3, 0) == 0


def test_checked_ops():
    assert checked_add(1, 2) == 3
    assert checked_sub(5, 5) == 0
    with pytest.raises(OverflowError):
        checked_sub(1, 2)
    with pytest.raises(OverflowError):
        checked_add(-1, 2)
    assert saturating_sub(1, 5) == 0
    assert saturating_sub(5, 1) == 4
