# storefront/services/discount_service.py
import logging

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFound, InvalidSelection, Conflict
from ..model import Offer, DiscountProvenance
from ..model.offer import utcnow
from ..utils.money import D
from .offer_auto_apply_service import calculate_offer_discount, user_is_new

log = logging.getLogger(__name__)


def normalize_code(code) -> str:
    return (code or "").strip().upper()


def find_offer_by_code(code):
    code = normalize_code(code)
    if not code:
        return None
    return Offer.query.filter(func.upper(Offer.code) == code).first()


def _is_new_customer(user_id, guest_is_new: bool) -> bool:
    if not user_id:
        return guest_is_new
    return user_is_new(user_id)


def revalidate_cart_discount(cart, user_id=None, now=None):
    """Drop a stored discount that no longer holds, or re-price it.

    Runs after every cart mutation, before auto-apply. Guests only count as
    new customers for discounts the auto-apply engine put there.
    """
    if not cart.offer_id:
        return cart

    now = now or utcnow()
    offer = db.session.get(Offer, cart.offer_id)
    subtotal = D(cart.subtotal)

    reason = None
    if offer is None:
        reason = "offer no longer exists"
    elif not offer.is_active:
        reason = "offer deactivated"
    elif not offer.is_within_window(now):
        reason = "offer outside its validity window"
    elif offer.is_capped():
        reason = "offer usage limit reached"
    elif subtotal < D(offer.min_order_amount):
        reason = "subtotal below offer minimum"
    elif offer.applicable_to == "new_users" and not _is_new_customer(user_id, bool(cart.is_auto_applied)):
        reason = "offer is for new customers only"

    if reason:
        log.warning("cart %s: dropping discount %s (%s)", cart.uuid, cart.discount_code, reason)
        cart.clear_discount()
        return cart

    cart.discount_amount = calculate_offer_discount(offer, subtotal)
    return cart


def apply_manual_code(cart, code, user_id=None, lock=False, now=None):
    if not cart.items:
        raise InvalidSelection("Cart is empty")

    code = normalize_code(code)
    if not code:
        raise InvalidSelection("Discount code is required")

    offer = find_offer_by_code(code)
    if not offer:
        raise NotFound("Invalid discount code")

    ok, reason = offer.check_validity(_is_new_customer(user_id, guest_is_new=False), now)
    if not ok:
        raise InvalidSelection(reason)

    # one discount per cart; re-entering the same code re-prices it
    if cart.discount_code and normalize_code(cart.discount_code) != code:
        raise Conflict(
            f"A discount code ({cart.discount_code}) is already applied. "
            "Please remove it first to apply a new one."
        )

    subtotal = D(cart.subtotal)
    minimum = D(offer.min_order_amount)
    if subtotal < minimum:
        raise InvalidSelection(f"Minimum order amount of £{minimum:.2f} is required for this offer")

    provenance = DiscountProvenance.MANUAL_LOCKED if lock else DiscountProvenance.MANUAL
    previous_offer_id = cart.offer_id
    cart.set_discount(offer.code, calculate_offer_discount(offer, subtotal), offer.id, provenance)
    cart.recalculate()
    if previous_offer_id != offer.id:
        Offer.bump(offer.id, "manual_apply_count")
    log.info("cart %s: manual code %s applied (locked=%s)", cart.uuid, offer.code, bool(lock))
    return cart


def remove_discount(cart):
    if cart.discount_code:
        log.info("cart %s: discount %s removed", cart.uuid, cart.discount_code)
    cart.clear_discount()
    cart.recalculate()
    return cart


def set_manual_lock(cart, locked: bool):
    if cart.provenance not in (DiscountProvenance.MANUAL, DiscountProvenance.MANUAL_LOCKED):
        raise InvalidSelection("Only a manually entered code can be locked")
    provenance = DiscountProvenance.MANUAL_LOCKED if locked else DiscountProvenance.MANUAL
    cart.set_discount(cart.discount_code, cart.discount_amount, cart.offer_id, provenance)
    return cart


def validate_offer_code(code, amount, user_id=None, now=None) -> dict:
    """Check a code against an order amount without touching any cart."""
    if not normalize_code(code):
        raise InvalidSelection("Offer code is required")

    offer = find_offer_by_code(code)
    if not offer:
        raise NotFound("Invalid offer code")

    ok, reason = offer.check_validity(_is_new_customer(user_id, guest_is_new=False), now)
    if not ok:
        raise InvalidSelection(reason)

    amount = D(amount)
    minimum = D(offer.min_order_amount)
    if amount < minimum:
        raise InvalidSelection(f"Minimum order amount of {minimum:.2f} is required for this offer")

    return {
        "offer": offer,
        "discount_amount": calculate_offer_discount(offer, amount),
    }


def increment_usage(offer_id):
    offer = db.session.get(Offer, offer_id)
    if not offer:
        raise NotFound("Offer not found")
    Offer.bump(offer.id, "used_count")
    db.session.refresh(offer)
    return offer
