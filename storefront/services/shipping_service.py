# storefront/services/shipping_service.py
from ..utils.money import D, ZERO, format_money
from .vat_service import extract_vat

DEFAULT_VAT_RATE = 20.0


def _tier_max(tier):
    # None means no upper bound
    return None if tier.max_amount is None else D(tier.max_amount)


def calculate_shipping_fee(order_total, settings):
    """Delivery fee for an order total (after discount).

    No settings -> 0. A reached free-delivery threshold wins over the tiers.
    Otherwise the first tier (in configured order) containing the total;
    if the total falls in a gap, the tier with the highest ceiling.
    """
    if not settings:
        return ZERO

    total = D(order_total)

    if settings.free_delivery_enabled and total >= D(settings.free_delivery_amount):
        return ZERO

    tiers = list(settings.delivery_tiers or [])
    if not tiers:
        return ZERO

    for tier in tiers:
        hi = _tier_max(tier)
        if D(tier.min_amount) <= total and (hi is None or total <= hi):
            return D(tier.fee)

    highest = max(tiers, key=lambda t: (_tier_max(t) is None, _tier_max(t) or ZERO))
    return D(highest.fee)


def effective_vat_rate(settings):
    """Rate in percent actually charged: 0 without settings or with VAT off."""
    if not settings or not settings.vat_enabled:
        return 0
    return settings.vat_rate if settings.vat_rate is not None else DEFAULT_VAT_RATE


def calculate_vat(taxable_amount, settings):
    """VAT contained in a VAT-inclusive amount at the configured rate."""
    rate = effective_vat_rate(settings)
    if not rate:
        return ZERO
    return extract_vat(taxable_amount, rate)


def calculate_order_pricing(subtotal, discount, settings):
    subtotal = D(subtotal)
    discount = D(discount)

    total_after_discount = max(ZERO, subtotal - discount)
    shipping = calculate_shipping_fee(total_after_discount, settings)

    # prices are VAT-inclusive: tax is reported, not added
    taxable_amount = total_after_discount + shipping
    tax = calculate_vat(taxable_amount, settings)
    total = max(ZERO, subtotal - discount + shipping)

    return {
        "subtotal": subtotal,
        "discount": discount,
        "shipping": shipping,
        "tax": tax,
        "total": total,
        "breakdown": {
            "total_after_discount": total_after_discount,
            "taxable_amount": taxable_amount,
            "vat_rate": effective_vat_rate(settings),
        },
    }


def get_delivery_tier_info(order_total, settings, symbol="£"):
    if not settings or not settings.delivery_tiers:
        return {
            "current_fee": ZERO,
            "tier_message": "No delivery fees configured",
            "is_free": True,
        }

    total = D(order_total)
    fee = calculate_shipping_fee(total, settings)

    if settings.free_delivery_enabled:
        threshold = D(settings.free_delivery_amount)
        if total >= threshold:
            return {
                "current_fee": ZERO,
                "tier_message": f"Free delivery (order over {format_money(threshold, symbol)})",
                "is_free": True,
            }
        remaining = threshold - total
        return {
            "current_fee": fee,
            "tier_message": f"Add {format_money(remaining, symbol)} more for free delivery",
            "is_free": False,
            "amount_to_free_delivery": remaining,
        }

    is_free = fee == 0
    return {
        "current_fee": fee,
        "tier_message": "Free delivery" if is_free else f"Delivery fee: {format_money(fee, symbol)}",
        "is_free": is_free,
    }
