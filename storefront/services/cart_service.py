# storefront/services/cart_service.py
from ..extensions import db
from ..errors import NotFound, InvalidSelection
from ..model import Cart, CartItem
from .pricing_service import compute_price_and_validate
from .discount_service import revalidate_cart_discount
from .offer_auto_apply_service import apply_best_auto_offer


def recalc_cart(cart: Cart, user_id=None, now=None):
    """
    Re-price after any change to the cart's lines.
    Order:
      1) subtotal from line totals
      2) stored discount revalidated against the new subtotal
      3) auto-apply engine
      4) total
    """
    cart.recalculate()
    revalidate_cart_discount(cart, user_id, now)
    apply_best_auto_offer(cart, user_id, now)
    cart.recalculate()
    db.session.flush()
    return cart


def add_item(cart: Cart, payload: dict, user_id=None):
    """
    payload: { product_id, selected_material: {material_id?, name, base_price?},
               selected_size?, selected_finish?, quantity?, include_packaging? }
    One finish per line; it is validated like the multi-finish price preview.
    """
    if not payload.get("product_id"):
        raise InvalidSelection("product_id is required")
    material = payload.get("selected_material") or {}
    if not material.get("name"):
        raise InvalidSelection("selected_material with name is required")
    finish_id = payload.get("selected_finish")
    if not finish_id:
        raise InvalidSelection("selected_finish is required")

    quantity = _parse_quantity(payload.get("quantity") or 1)
    quote = compute_price_and_validate({
        "product_id": payload.get("product_id"),
        "selected_material": material,
        "selected_size": payload.get("selected_size"),
        "selected_finishes": [finish_id],
        "quantity": quantity,
        "include_packaging": payload.get("include_packaging", True),
    })

    product = quote["product"]
    matched = quote["resolved"]["material"]
    finish_option = quote["resolved"]["finishes"][0]
    size_option = quote["resolved"]["size"]
    breakdown = quote["breakdown"]

    cart.items.append(CartItem(
        product_id=product.id,
        product_name=product.name,
        product_code=product.code,
        material_id=material.get("material_id") or matched.material_id,
        material_name=matched.name,
        material_base_price=breakdown["material"],
        size_mm=size_option.size_mm if size_option else None,
        size_cost=breakdown["size"],
        finish_id=finish_option.finish_id,
        finish_name=finish_option.finish.name if finish_option.finish else None,
        finish_cost=breakdown["finishes"],
        packaging_price=breakdown["packaging"],
        quantity=quantity,
        unit_price=quote["unit_price"],
        total_price=quote["total_amount"],
    ))
    return recalc_cart(cart, user_id)


def _parse_quantity(value) -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise InvalidSelection("Valid quantity is required")
    if qty < 1:
        raise InvalidSelection("Valid quantity is required")
    return qty


def _find_item(cart: Cart, item_id: int) -> CartItem:
    item = next((i for i in cart.items if i.id == item_id), None)
    if not item:
        raise NotFound("Item not found in cart")
    return item


def update_item_quantity(cart: Cart, item_id: int, quantity, user_id=None):
    item = _find_item(cart, item_id)
    item.set_quantity(_parse_quantity(quantity))
    return recalc_cart(cart, user_id)


def remove_item(cart: Cart, item_id: int, user_id=None):
    item = _find_item(cart, item_id)
    # delete-orphan cascade removes the row
    cart.items.remove(item)
    return recalc_cart(cart, user_id)


def clear_cart(cart: Cart):
    cart.items.clear()
    cart.clear_discount()
    cart.eligible_auto_offers = []
    cart.recalculate()
    db.session.flush()
    return cart


def link_cart_to_user(cart: Cart, user_id):
    cart.user_id = user_id
    return recalc_cart(cart, user_id)
