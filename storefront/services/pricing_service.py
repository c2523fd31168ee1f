# storefront/services/pricing_service.py
from ..extensions import db
from ..errors import NotFound, InvalidSelection
from ..model import Product
from ..utils.money import D, ZERO


def _match_material(product: Product, selected: dict):
    wanted_id = selected.get("material_id")
    wanted_name = str(selected.get("name") or "").lower()
    for m in product.materials:
        if wanted_id and m.material_id and str(m.material_id) == str(wanted_id):
            return m
        if m.name.lower() == wanted_name:
            return m
    return None


def compute_price_and_validate(payload: dict) -> dict:
    """
    Validate a product configuration against the catalogue and price it.

    payload: {
      product_id, selected_material: {material_id?, name, base_price?},
      selected_size?, selected_finishes?: [finish_id], quantity?, include_packaging?
    }
    Raises NotFound (404) / InvalidSelection (400). Read-only.
    """
    product_id = payload.get("product_id")
    selected_material = payload.get("selected_material") or {}
    selected_size = payload.get("selected_size")
    selected_finishes = payload.get("selected_finishes") or []
    quantity = payload.get("quantity", 1)
    include_packaging = payload.get("include_packaging", True)

    if not isinstance(selected_material, dict):
        raise InvalidSelection("selected_material must be an object")
    if not isinstance(selected_finishes, list):
        raise InvalidSelection("selected_finishes must be a list")

    try:
        product = db.session.get(Product, int(product_id))
    except (TypeError, ValueError):
        product = None
    if not product:
        raise NotFound("Product not found")

    material = _match_material(product, selected_material)
    if not material:
        raise InvalidSelection("Selected material not available for product")

    override = selected_material.get("base_price")
    material_cost = D(override if override is not None else material.base_price)

    size_cost = ZERO
    size_option = None
    if selected_size is not None:
        wanted = D(selected_size)
        size_option = next((s for s in material.size_options if D(s.size_mm) == wanted), None)
        if not size_option:
            raise InvalidSelection("Selected size not available for chosen material")
        size_cost = D(size_option.additional_cost)

    finish_cost = ZERO
    finish_options = []
    allowed = {str(f.finish_id): f for f in product.finishes}
    for fid in selected_finishes:
        option = allowed.get(str(fid))
        if not option:
            raise InvalidSelection("One or more selected finishes are not allowed for this product")
        finish_options.append(option)
        finish_cost += D(option.price_adjustment)

    packaging = D(product.packaging_price) if include_packaging else ZERO
    unit_price = material_cost + size_cost + finish_cost + packaging
    total_amount = unit_price * D(quantity or 1)

    return {
        "product": product,
        "breakdown": {
            "material": material_cost,
            "size": size_cost,
            "finishes": finish_cost,
            "packaging": packaging,
        },
        "unit_price": unit_price,
        "total_amount": total_amount,
        "resolved": {
            "material": material,
            "size": size_option,
            "finishes": finish_options,
        },
        "include_packaging": bool(include_packaging),
    }
