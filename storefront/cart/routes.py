# storefront/cart/routes.py
from __future__ import annotations
from flask import request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from ..utils.api import api_ok, api_error
from ..utils.decorators import current_user_id
from ..utils.money import jsonable
from ..extensions import db
from ..model import Cart, Settings
from ..services import cart_service, discount_service
from ..services.offer_auto_apply_service import get_near_miss_offers
from ..services.shipping_service import calculate_order_pricing, get_delivery_tier_info, effective_vat_rate
from ..services.vat_service import calculate_item_vat
from . import bp

# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r

# ---- helpers ---------------------------------------------------------------

def _get_or_create_cart_by_uuid(cart_uuid: str | None) -> Cart:
    cart = None
    if cart_uuid:
        cart = Cart.query.filter_by(status="active", uuid=cart_uuid).first()
    if not cart:
        cart = Cart(status="active")           # uuid autogenerates in model
        db.session.add(cart)
        db.session.commit()
    return cart

def _resolve_cart() -> Cart:
    return _get_or_create_cart_by_uuid(request.headers.get("X-Cart-Id"))

def _cart_response(msg, cart: Cart, status=200):
    resp = ok(msg, cart.as_api(), status=status)
    resp.headers["X-Cart-Id"] = cart.uuid            # <- return UUID to client
    return resp

# ---- endpoints -------------------------------------------------------------

@bp.get("")
def get_cart():
    return _cart_response("cart", _resolve_cart())

@bp.post("/items")
def add_item():
    """
    Header: X-Cart-Id: <uuid>   (optional; a new cart is created without it)
    Body: {
      "product_id": 1,
      "selected_material": {"material_id": "oak", "name": "Oak"},
      "selected_size": 18,
      "selected_finish": 2,
      "quantity": 1,
      "include_packaging": true
    }
    """
    cart = _resolve_cart()
    payload = request.get_json(silent=True) or {}
    cart_service.add_item(cart, payload, current_user_id())
    db.session.commit()
    current_app.logger.info("cart %s: item added (product %s)", cart.uuid, payload.get("product_id"))
    return _cart_response("item added", cart, status=201)

@bp.patch("/items/<int:item_id>")
def update_item(item_id: int):
    cart = _resolve_cart()
    payload = request.get_json(silent=True) or {}
    if "quantity" not in payload:
        return err("Valid quantity is required", 400)
    cart_service.update_item_quantity(cart, item_id, payload.get("quantity"), current_user_id())
    db.session.commit()
    return _cart_response("item updated", cart)

@bp.delete("/items/<int:item_id>")
def remove_item(item_id: int):
    cart = _resolve_cart()
    cart_service.remove_item(cart, item_id, current_user_id())
    db.session.commit()
    return _cart_response("item removed", cart)

@bp.delete("/items")
def clear_cart_items():
    cart = _resolve_cart()
    cart_service.clear_cart(cart)
    db.session.commit()
    return _cart_response("cart cleared", cart)

# ---- discounts -------------------------------------------------------------

@bp.post("/discount")
def apply_discount():
    """Body: { "code": "SAVE10", "lock": false }"""
    cart = _resolve_cart()
    payload = request.get_json(silent=True) or {}
    discount_service.apply_manual_code(
        cart, payload.get("code"), current_user_id(), lock=bool(payload.get("lock")),
    )
    db.session.commit()
    return _cart_response("discount applied", cart)

@bp.delete("/discount")
def remove_discount():
    cart = _resolve_cart()
    discount_service.remove_discount(cart)
    db.session.commit()
    return _cart_response("discount removed", cart)

@bp.patch("/discount/lock")
def lock_discount():
    """Body: { "locked": true }"""
    cart = _resolve_cart()
    payload = request.get_json(silent=True) or {}
    if "locked" not in payload:
        return err("locked is required", 400)
    discount_service.set_manual_lock(cart, bool(payload.get("locked")))
    db.session.commit()
    return _cart_response("discount lock updated", cart)

# ---- read models -----------------------------------------------------------

@bp.get("/near-miss")
def near_miss():
    cart = _resolve_cart()
    offers = get_near_miss_offers(cart, current_user_id())
    resp = ok("near-miss offers", {"offers": [o.as_api() for o in offers]})
    resp.headers["X-Cart-Id"] = cart.uuid
    return resp

@bp.get("/checkout")
def checkout_summary():
    cart = _resolve_cart()
    if not cart.items:
        return err("Cart is empty", 400)

    user_id = current_user_id()
    settings = Settings.current()   # may be None: no shipping, no VAT
    symbol = current_app.config.get("CURRENCY_SYMBOL", "£")

    pricing = calculate_order_pricing(cart.subtotal, cart.discount_amount, settings)
    delivery = get_delivery_tier_info(pricing["breakdown"]["total_after_discount"], settings, symbol)

    items = []
    for item in cart.items:
        row = item.as_api()
        row["vat"] = jsonable(calculate_item_vat(item), rounded=True)
        items.append(row)

    data = {
        "cart": {
            "uuid": cart.uuid,
            "discount": cart.as_api()["discount"],
            "total_quantity": cart.total_quantity(),
        },
        "items": items,
        "pricing": jsonable(pricing, rounded=True),
        "vat": {
            "rate": f"{float(effective_vat_rate(settings)):g}%",
            "amount": jsonable(pricing["tax"], rounded=True),
        },
        "delivery": jsonable(delivery, rounded=True),
        "near_miss_offers": [o.as_api() for o in get_near_miss_offers(cart, user_id)],
    }
    resp = ok("checkout summary", data)
    resp.headers["X-Cart-Id"] = cart.uuid
    return resp

# ---- ownership -------------------------------------------------------------

@bp.post("/link")
@jwt_required()
def link_cart():
    """Attach the X-Cart-Id cart to the signed-in user and re-price it."""
    cart = _resolve_cart()
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        return err("Unauthorized", 401)
    cart_service.link_cart_to_user(cart, user_id)
    db.session.commit()
    current_app.logger.info("cart %s linked to user %s", cart.uuid, user_id)
    return _cart_response("cart linked", cart)
