# tests/test_vat.py
from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.services.vat_service import (
    extract_vat, calculate_vat_from_gross, calculate_item_vat, calculate_cart_vat,
    vat_rate, vat_rate_string,
)
from storefront.utils.money import round_money


@pytest.mark.parametrize("gross", ["120", "0.01", "99.99", "1234.56", "7"])
def test_net_plus_vat_is_gross(gross):
    split = calculate_vat_from_gross(gross)
    assert split["net"] + split["vat"] == Decimal(gross)


@pytest.mark.parametrize("gross", ["120", "33.33", "5.99"])
def test_general_formula_matches_one_sixth_at_20_percent(gross):
    assert extract_vat(gross, 20) == Decimal(gross) / 6


def test_vat_from_gross_120():
    split = calculate_vat_from_gross(Decimal("120.00"))
    # 120 / 6 = 20
    assert split["vat"] == Decimal("20")
    assert split["net"] == Decimal("100")
    assert split["vat_rate"] == Decimal("0.20")


def test_vat_at_other_rates():
    # 5% reduced rate: 105 * 5 / 105 = 5
    assert extract_vat(105, 5) == Decimal("5")
    assert extract_vat(100, 0) == Decimal("0")


def test_missing_amounts_count_as_zero():
    assert calculate_vat_from_gross(None)["vat"] == Decimal("0")
    assert calculate_vat_from_gross("not a number")["gross"] == Decimal("0")


def test_item_vat_breaks_down_each_component():
    item = SimpleNamespace(
        material_base_price=Decimal("60"),
        size_cost=Decimal("12"),
        finish_cost=Decimal("6"),
        packaging_price=Decimal("0"),
        unit_price=Decimal("78"),
        total_price=Decimal("156"),
    )
    vat = calculate_item_vat(item)
    breakdown = vat["price_breakdown"]
    assert breakdown["material_vat"] == Decimal("10")
    assert breakdown["size_vat"] == Decimal("2")
    assert breakdown["finishes_vat"] == Decimal("1")
    assert breakdown["packaging_vat"] == Decimal("0")
    assert breakdown["total_vat"] == Decimal("13")
    assert vat["unit_price_vat"] == Decimal("13")
    assert vat["total_price_vat"] == Decimal("26")


def test_item_vat_tolerates_missing_fields():
    vat = calculate_item_vat(SimpleNamespace(unit_price=Decimal("12")))
    assert vat["price_breakdown"]["total_vat"] == Decimal("0")
    assert vat["unit_price_vat"] == Decimal("2")


def test_cart_vat_after_discount():
    # (150 - 30) / 6 = 20
    assert calculate_cart_vat(Decimal("150"), Decimal("30")) == Decimal("20")
    # a discount larger than the subtotal leaves nothing taxable
    assert calculate_cart_vat(10, 25) == Decimal("0")


def test_rate_accessors():
    assert vat_rate() == Decimal("0.20")
    assert vat_rate_string() == "20%"


def test_rounded_display_value():
    assert round_money(calculate_vat_from_gross("10")["vat"]) == Decimal("1.67")
