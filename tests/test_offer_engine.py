# tests/test_offer_engine.py
import random
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from storefront.extensions import db
from storefront.model import DiscountProvenance, Offer
from storefront.model.offer import utcnow
from storefront.services.offer_auto_apply_service import (
    EligibleOffer, DiscountState, calculate_offer_discount, select_best_offer, compare_offers,
    should_replace_discount, should_apply_offer, decide_auto_offer,
    find_eligible_auto_offers, apply_best_auto_offer, get_near_miss_offers,
)


def _entry(offer_id, discount, priority=0):
    return EligibleOffer(SimpleNamespace(id=offer_id, code=None), Decimal(discount), priority)


# ---- discount math ---------------------------------------------------------

def test_percentage_discount():
    offer = SimpleNamespace(discount_type="percentage", discount_value=Decimal("10"))
    assert calculate_offer_discount(offer, Decimal("200")) == Decimal("20.00")


def test_percentage_discount_rounds_to_pence():
    offer = SimpleNamespace(discount_type="percentage", discount_value=Decimal("15"))
    # 15% of 33.33 = 4.9995
    assert calculate_offer_discount(offer, Decimal("33.33")) == Decimal("5.00")


def test_fixed_discount_capped_at_amount():
    offer = SimpleNamespace(discount_type="fixed", discount_value=Decimal("30"))
    assert calculate_offer_discount(offer, Decimal("20")) == Decimal("20")
    assert calculate_offer_discount(offer, Decimal("80")) == Decimal("30")


# ---- selection -------------------------------------------------------------

def test_select_best_of_nothing_is_none():
    assert select_best_offer([]) is None


def test_highest_discount_then_priority():
    entries = [_entry(1, "10", priority=9), _entry(2, "15", priority=0), _entry(3, "15", priority=5)]
    assert select_best_offer(entries).offer.id == 3


def test_selection_ignores_input_order():
    entries = [_entry(i, str(d), p) for i, (d, p) in enumerate([(5, 1), (12, 0), (12, 3), (7, 9)])]
    for _ in range(10):
        random.shuffle(entries)
        assert select_best_offer(entries).offer.id == 2


def test_compare_offers():
    a, b = _entry(1, "10", 1), _entry(2, "10", 2)
    assert compare_offers(None, a) is a
    assert compare_offers(a, None) is a
    assert compare_offers(a, b) is b
    assert compare_offers(b, _entry(3, "9", 99)).offer.id == 2


# ---- replacement rules -----------------------------------------------------

def test_manual_code_needs_ten_percent_better():
    assert should_replace_discount(DiscountProvenance.MANUAL, Decimal("10"), Decimal("10.5")) is False
    assert should_replace_discount(DiscountProvenance.MANUAL, Decimal("10"), Decimal("11.5")) is True
    assert should_replace_discount(DiscountProvenance.MANUAL, Decimal("10"), Decimal("11")) is True


def test_locked_manual_code_is_never_replaced():
    assert should_replace_discount(DiscountProvenance.MANUAL_LOCKED, Decimal("1"), Decimal("500")) is False


def test_auto_discount_replaced_only_by_strictly_better():
    assert should_replace_discount(DiscountProvenance.AUTO, Decimal("10"), Decimal("10")) is False
    assert should_replace_discount(DiscountProvenance.AUTO, Decimal("10"), Decimal("10.01")) is True


def test_no_discount_accepts_any_offer():
    assert should_replace_discount(DiscountProvenance.NONE, Decimal("0"), Decimal("0")) is True


def test_should_apply_offer_reads_cart_provenance(make_cart):
    cart = make_cart(100)
    cart.set_discount("SAVE10", Decimal("10"), 1, DiscountProvenance.MANUAL)
    assert should_apply_offer(cart, _entry(2, "10.5")) is False
    assert should_apply_offer(cart, _entry(2, "11.5")) is True


# ---- pure decision ---------------------------------------------------------

def test_decision_for_locked_cart_only_lists_hints():
    state = DiscountState(DiscountProvenance.MANUAL_LOCKED, offer_id=7, discount_amount=Decimal("1"))
    decision = decide_auto_offer(state, [_entry(1, "50")])
    assert decision.patch is None
    assert decision.count_offer_id is None
    assert decision.eligible_hints == [{"offer_id": 1, "calculated_discount": 50.0, "priority": 0}]


def test_decision_clears_lapsed_auto_discount():
    state = DiscountState(DiscountProvenance.AUTO, offer_id=7, discount_amount=Decimal("5"), is_auto_applied=True)
    decision = decide_auto_offer(state, [])
    assert decision.patch.provenance is DiscountProvenance.NONE
    assert decision.patch.offer_id is None
    assert decision.count_offer_id is None


def test_decision_keeps_manual_discount_without_offers():
    state = DiscountState(DiscountProvenance.MANUAL, offer_id=7, discount_amount=Decimal("5"))
    assert decide_auto_offer(state, []).patch is None


def test_decision_patch_for_code_less_offer():
    decision = decide_auto_offer(DiscountState(DiscountProvenance.NONE), [_entry(4, "12")])
    assert decision.patch.discount_code == "AUTO_4"
    assert decision.patch.discount_amount == Decimal("12")
    assert decision.patch.provenance is DiscountProvenance.AUTO
    assert decision.count_offer_id == 4


# ---- eligibility -----------------------------------------------------------

def test_eligibility_filters(make_cart, make_offer):
    now = utcnow()
    good = make_offer(auto_apply=True, min_order_amount=Decimal("50"))
    make_offer(auto_apply=False)                                        # manual only
    make_offer(auto_apply=True, is_active=False)                        # inactive
    make_offer(auto_apply=True, min_order_amount=Decimal("500"))        # threshold
    make_offer(auto_apply=True, valid_from=now + timedelta(days=1))     # not started
    make_offer(auto_apply=True, valid_to=now - timedelta(days=1))       # expired
    make_offer(auto_apply=True, max_uses=3, used_count=3)               # capped
    cart = make_cart(120)

    eligible = find_eligible_auto_offers(cart, now=now)
    assert [e.offer.id for e in eligible] == [good.id]
    assert eligible[0].calculated_discount == Decimal("12.00")


def test_new_user_offer_skipped_for_returning_customer(make_cart, make_offer, make_user, make_order):
    offer = make_offer(auto_apply=True, applicable_to="new_users")
    fresh = make_user("fresh@example.com")
    returning = make_user("back@example.com")
    make_order(returning)
    cart = make_cart(80)

    assert [e.offer.id for e in find_eligible_auto_offers(cart, fresh.id)] == [offer.id]
    assert find_eligible_auto_offers(cart, returning.id) == []
    # guests are not excluded
    assert [e.offer.id for e in find_eligible_auto_offers(cart)] == [offer.id]


def test_cancelled_orders_do_not_count(make_cart, make_offer, make_user, make_order):
    make_offer(auto_apply=True, applicable_to="new_users")
    user = make_user()
    make_order(user, status="cancelled")
    assert len(find_eligible_auto_offers(make_cart(80), user.id)) == 1


# ---- apply -----------------------------------------------------------------

def test_applies_best_offer_and_counts_it(make_cart, make_offer):
    small = make_offer(auto_apply=True, discount_type="fixed", discount_value=Decimal("5"), priority=10)
    big = make_offer(auto_apply=True, code="BIG", discount_type="percentage", discount_value=Decimal("10"))
    cart = make_cart(200)

    apply_best_auto_offer(cart)
    db.session.commit()

    assert cart.offer_id == big.id
    assert cart.discount_code == "BIG"
    assert cart.discount_amount == Decimal("20.00")
    assert cart.provenance is DiscountProvenance.AUTO
    assert {h["offer_id"] for h in cart.eligible_auto_offers} == {small.id, big.id}

    db.session.refresh(big)
    assert big.auto_apply_count == 1


def test_locked_cart_is_left_alone(make_cart, make_offer):
    manual = make_offer(code="MINE", discount_type="fixed", discount_value=Decimal("1"))
    make_offer(auto_apply=True, discount_value=Decimal("50"))
    cart = make_cart(100)
    cart.set_discount("MINE", Decimal("1"), manual.id, DiscountProvenance.MANUAL_LOCKED)

    apply_best_auto_offer(cart)

    assert cart.offer_id == manual.id
    assert cart.discount_amount == Decimal("1")
    assert cart.provenance is DiscountProvenance.MANUAL_LOCKED


def test_unlocked_manual_code_replaced_by_much_better_offer(make_cart, make_offer):
    manual = make_offer(code="MINE", discount_type="fixed", discount_value=Decimal("10"))
    auto = make_offer(auto_apply=True, discount_type="fixed", discount_value=Decimal("11.5"))
    cart = make_cart(100)
    cart.set_discount("MINE", Decimal("10"), manual.id, DiscountProvenance.MANUAL)

    apply_best_auto_offer(cart)

    assert cart.offer_id == auto.id
    assert cart.is_auto_applied is True


def test_lapsed_auto_discount_is_cleared(make_cart, make_offer):
    offer = make_offer(auto_apply=True, min_order_amount=Decimal("100"))
    cart = make_cart(150)
    apply_best_auto_offer(cart)
    assert cart.offer_id == offer.id

    cart.items[0].set_quantity(1)
    cart.items[0].total_price = Decimal("50")
    cart.recalculate()
    apply_best_auto_offer(cart)

    assert cart.offer_id is None
    assert cart.discount_code is None
    assert cart.discount_amount == Decimal("0")
    assert cart.provenance is DiscountProvenance.NONE
    assert cart.eligible_auto_offers == []


def test_counter_bump_is_a_single_update(make_offer):
    offer = make_offer(auto_apply=True)
    Offer.bump(offer.id, "auto_apply_count")
    Offer.bump(offer.id, "auto_apply_count")
    db.session.commit()
    db.session.refresh(offer)
    assert offer.auto_apply_count == 2


# ---- near-miss -------------------------------------------------------------

def test_near_miss_window_and_order(make_cart, make_offer):
    now = utcnow()
    close = make_offer(auto_apply=True, min_order_amount=Decimal("55"), discount_value=Decimal("10"))
    closer = make_offer(auto_apply=True, min_order_amount=Decimal("52"), discount_type="fixed",
                        discount_value=Decimal("4"))
    make_offer(auto_apply=True, min_order_amount=Decimal("75"))                      # outside £20
    make_offer(auto_apply=True, min_order_amount=Decimal("45"))                      # already qualifies
    make_offer(auto_apply=True, min_order_amount=Decimal("60"), show_in_cart=False)  # hidden
    make_offer(auto_apply=False, min_order_amount=Decimal("60"))                     # code only
    make_offer(auto_apply=True, min_order_amount=Decimal("60"), valid_to=now - timedelta(hours=1))
    cart = make_cart(50)

    near = get_near_miss_offers(cart, now=now)

    assert [n.offer.id for n in near] == [closer.id, close.id]
    assert near[0].gap_amount == Decimal("2")
    assert near[0].potential_discount == Decimal("4")
    # 10% of the 55 minimum
    assert near[1].potential_discount == Decimal("5.50")
    assert near[1].as_api()["gap_amount"] == 5.0


def test_near_miss_limited_to_three(make_cart, make_offer):
    for minimum in ("51", "52", "53", "54"):
        make_offer(auto_apply=True, min_order_amount=Decimal(minimum))
    assert len(get_near_miss_offers(make_cart(50))) == 3
