"""
VAT calculations for VAT-inclusive prices.

All catalogue prices already include UK VAT, so VAT is extracted for display
and reporting, never added on top:

    vat = gross * rate / (100 + rate)

At the standard 20% rate that is gross / 6.
"""
from decimal import Decimal

from ..utils.money import D, ZERO

VAT_RATE = Decimal("0.20")
VAT_RATE_PERCENT = VAT_RATE * 100


def extract_vat(gross, rate_percent) -> Decimal:
    gross = D(gross)
    rate = D(rate_percent)
    return gross * rate / (D(100) + rate)


def calculate_vat_from_gross(gross_amount) -> dict:
    """Split a VAT-inclusive amount at the standard rate into net and VAT."""
    gross = D(gross_amount)
    vat = extract_vat(gross, VAT_RATE_PERCENT)
    return {
        "gross": gross,
        "net": gross - vat,
        "vat": vat,
        "vat_rate": VAT_RATE,
    }


def calculate_item_vat(item) -> dict:
    """VAT carried by each price component of a cart line.

    `item` is a CartItem (or anything with the same attribute names).
    """
    material = calculate_vat_from_gross(getattr(item, "material_base_price", None))["vat"]
    size = calculate_vat_from_gross(getattr(item, "size_cost", None))["vat"]
    finish = calculate_vat_from_gross(getattr(item, "finish_cost", None))["vat"]
    packaging = calculate_vat_from_gross(getattr(item, "packaging_price", None))["vat"]

    return {
        "price_breakdown": {
            "material_vat": material,
            "size_vat": size,
            "finishes_vat": finish,
            "packaging_vat": packaging,
            "total_vat": material + size + finish + packaging,
        },
        "unit_price_vat": calculate_vat_from_gross(getattr(item, "unit_price", None))["vat"],
        "total_price_vat": calculate_vat_from_gross(getattr(item, "total_price", None))["vat"],
    }


def calculate_cart_vat(subtotal, discount=0) -> Decimal:
    taxable = max(ZERO, D(subtotal) - D(discount))
    return extract_vat(taxable, VAT_RATE_PERCENT)


def vat_rate() -> Decimal:
    return VAT_RATE


def vat_rate_string() -> str:
    return f"{VAT_RATE_PERCENT.normalize():f}%"
