"""
Auto-apply offer engine.

Finds the promotional offers a cart qualifies for, picks the one worth the
most to the customer and decides whether it may replace the discount the
cart already carries.

The decision itself (`decide_auto_offer`) is a pure function of the cart's
discount state and the eligible offers; `apply_best_auto_offer` feeds it from
the database, writes the resulting patch onto the cart and counts the
application. Committing the session is left to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import or_

from ..model import Offer, Order, DiscountProvenance
from ..model.offer import utcnow
from ..utils.money import D, ZERO, round_money, money_float

log = logging.getLogger(__name__)

# how far below an offer's minimum a cart may be to be told about it (GBP)
NEAR_MISS_WINDOW = Decimal("20")
NEAR_MISS_LIMIT = 3

# an unlocked manual code is only replaced by an offer saving at least 10% more
MANUAL_OVERRIDE_FACTOR = Decimal("1.1")


@dataclass
class EligibleOffer:
    offer: Offer
    calculated_discount: Decimal
    priority: int = 0

    def as_hint(self):
        return {
            "offer_id": self.offer.id,
            "calculated_discount": money_float(self.calculated_discount),
            "priority": self.priority,
        }


@dataclass
class NearMissOffer:
    offer: Offer
    gap_amount: Decimal
    potential_discount: Decimal

    def as_api(self):
        return {
            "offer": self.offer.as_api(),
            "gap_amount": money_float(round_money(self.gap_amount)),
            "potential_discount": money_float(self.potential_discount),
        }


@dataclass(frozen=True)
class DiscountState:
    provenance: DiscountProvenance
    offer_id: int | None = None
    discount_amount: Decimal = ZERO
    is_auto_applied: bool = False

    @classmethod
    def from_cart(cls, cart) -> "DiscountState":
        return cls(
            provenance=cart.provenance,
            offer_id=cart.offer_id,
            discount_amount=D(cart.discount_amount),
            is_auto_applied=bool(cart.is_auto_applied),
        )


@dataclass(frozen=True)
class DiscountPatch:
    discount_code: str | None
    discount_amount: Decimal
    offer_id: int | None
    provenance: DiscountProvenance

    @classmethod
    def cleared(cls) -> "DiscountPatch":
        return cls(None, ZERO, None, DiscountProvenance.NONE)

    def apply_to(self, cart):
        cart.set_discount(self.discount_code, self.discount_amount, self.offer_id, self.provenance)


@dataclass(frozen=True)
class AutoOfferDecision:
    eligible_hints: list = field(default_factory=list)
    patch: DiscountPatch | None = None
    count_offer_id: int | None = None


# ---- discount math -------------------------------------------------------

def calculate_offer_discount(offer, amount) -> Decimal:
    amount = D(amount)
    value = D(offer.discount_value)
    if offer.discount_type == "percentage":
        return round_money(amount * value / D(100))
    # fixed: never more than the amount it is taken from
    return min(value, amount)


# ---- selection -----------------------------------------------------------

def _rank(entry: EligibleOffer):
    return (D(entry.calculated_discount), entry.priority or 0)


def select_best_offer(entries):
    """Highest discount wins, then highest priority. None for no entries."""
    if not entries:
        return None
    return max(entries, key=_rank)


def compare_offers(current, new):
    if current is None:
        return new
    if new is None:
        return current
    if D(new.calculated_discount) > D(current.calculated_discount):
        return new
    if D(new.calculated_discount) < D(current.calculated_discount):
        return current
    return new if (new.priority or 0) > (current.priority or 0) else current


def should_replace_discount(provenance: DiscountProvenance, current_discount, new_discount) -> bool:
    if provenance is DiscountProvenance.MANUAL_LOCKED:
        return False
    if provenance is DiscountProvenance.NONE:
        return True
    if provenance is DiscountProvenance.AUTO:
        return D(new_discount) > D(current_discount)
    return D(new_discount) >= D(current_discount) * MANUAL_OVERRIDE_FACTOR


def should_apply_offer(cart, entry: EligibleOffer) -> bool:
    return should_replace_discount(cart.provenance, cart.discount_amount, entry.calculated_discount)


def decide_auto_offer(state: DiscountState, eligible) -> AutoOfferDecision:
    hints = [e.as_hint() for e in eligible]

    if state.provenance is DiscountProvenance.MANUAL_LOCKED:
        return AutoOfferDecision(hints)

    best = select_best_offer(eligible)
    if best is None:
        # auto discounts lapse with their eligibility; manual codes stay
        if state.is_auto_applied:
            return AutoOfferDecision(hints, DiscountPatch.cleared())
        return AutoOfferDecision(hints)

    if not should_replace_discount(state.provenance, state.discount_amount, best.calculated_discount):
        return AutoOfferDecision(hints)

    offer = best.offer
    patch = DiscountPatch(
        discount_code=offer.code or f"AUTO_{offer.id}",
        discount_amount=D(best.calculated_discount),
        offer_id=offer.id,
        provenance=DiscountProvenance.AUTO,
    )
    return AutoOfferDecision(hints, patch, offer.id)


# ---- database-backed operations -------------------------------------------

def user_is_new(user_id) -> bool:
    return Order.count_live_for_user(user_id) == 0


def find_eligible_auto_offers(cart, user_id=None, now=None):
    now = now or utcnow()
    subtotal = D(cart.subtotal)

    # ordering here is only a hint; select_best_offer decides
    candidates = (
        Offer.query
        .filter(
            Offer.auto_apply.is_(True),
            Offer.is_active.is_(True),
            Offer.min_order_amount <= subtotal,
        )
        .order_by(Offer.priority.desc(), Offer.discount_value.desc())
        .all()
    )

    is_new = None
    eligible = []
    for offer in candidates:
        if offer.valid_from and now < offer.valid_from:
            continue
        if offer.valid_to and now > offer.valid_to:
            continue
        if offer.is_capped():
            continue
        if offer.applicable_to == "new_users" and user_id:
            if is_new is None:
                is_new = user_is_new(user_id)
            if not is_new:
                continue
        eligible.append(EligibleOffer(
            offer=offer,
            calculated_discount=calculate_offer_discount(offer, subtotal),
            priority=offer.priority or 0,
        ))
    return eligible


def apply_best_auto_offer(cart, user_id=None, now=None):
    if cart.provenance is DiscountProvenance.MANUAL_LOCKED:
        return cart

    eligible = find_eligible_auto_offers(cart, user_id, now)
    decision = decide_auto_offer(DiscountState.from_cart(cart), eligible)

    cart.eligible_auto_offers = decision.eligible_hints
    if decision.patch is not None:
        decision.patch.apply_to(cart)
        if decision.patch.offer_id:
            log.info("cart %s: auto-applied offer %s (%s)",
                     cart.uuid, decision.patch.offer_id, decision.patch.discount_amount)
        else:
            log.info("cart %s: auto-applied discount no longer eligible, cleared", cart.uuid)
    if decision.count_offer_id:
        Offer.bump(decision.count_offer_id, "auto_apply_count")
    return cart


def get_near_miss_offers(cart, user_id=None, now=None):
    """Offers the cart is within NEAR_MISS_WINDOW of qualifying for, closest first.

    `user_id` is accepted so callers can pass the same arguments they pass to
    find_eligible_auto_offers; audience rules are applied once the cart qualifies.
    """
    now = now or utcnow()
    subtotal = D(cart.subtotal)

    offers = (
        Offer.query
        .filter(
            Offer.auto_apply.is_(True),
            Offer.is_active.is_(True),
            Offer.show_in_cart.is_(True),
            Offer.min_order_amount > subtotal,
            Offer.min_order_amount <= subtotal + NEAR_MISS_WINDOW,
            or_(Offer.valid_from.is_(None), Offer.valid_from <= now),
            or_(Offer.valid_to.is_(None), Offer.valid_to >= now),
        )
        .order_by(Offer.min_order_amount.asc())
        .limit(NEAR_MISS_LIMIT)
        .all()
    )

    return [
        NearMissOffer(
            offer=offer,
            gap_amount=D(offer.min_order_amount) - subtotal,
            potential_discount=calculate_offer_discount(offer, offer.min_order_amount),
        )
        for offer in offers
    ]
