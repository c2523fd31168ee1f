# storefront/configuration/routes.py
from flask import request, jsonify

from ..utils.api import api_ok
from ..utils.money import jsonable
from ..services.pricing_service import compute_price_and_validate
from ..services.vat_service import calculate_vat_from_gross
from . import bp


@bp.post("/preview")
def preview():
    """
    Price a product configuration without touching any cart.
    Body: {
      "product_id": 1,
      "selected_material": {"material_id": "oak", "name": "Oak"},
      "selected_size": 18,
      "selected_finishes": [2, 3],
      "quantity": 2,
      "include_packaging": true
    }
    """
    payload = request.get_json(silent=True) or {}
    quote = compute_price_and_validate(payload)
    product = quote["product"]
    resolved = quote["resolved"]

    data = {
        "product": {"id": product.id, "code": product.code, "name": product.name},
        "selections": {
            "material": resolved["material"].name,
            "size": resolved["size"].as_api() if resolved["size"] else None,
            "finishes": [f.as_api() for f in resolved["finishes"]],
            "include_packaging": quote["include_packaging"],
        },
        "breakdown": jsonable(quote["breakdown"]),
        "unit_price": jsonable(quote["unit_price"]),
        "total_amount": jsonable(quote["total_amount"]),
        "vat": jsonable(calculate_vat_from_gross(quote["total_amount"]), rounded=True),
    }
    return jsonify(api_ok("configuration priced", data)), 200
