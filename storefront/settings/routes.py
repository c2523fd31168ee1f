# storefront/settings/routes.py
from flask import request, jsonify, current_app

from ..extensions import db
from ..model import Settings
from ..utils.api import api_ok, api_error
from ..utils.decorators import role_at_least, _current_user
from ..utils.money import D
from . import bp


def _updated_by():
    user = _current_user()
    return user.email if user else "admin"


@bp.get("")
def get_settings():
    """Public: the storefront shows delivery tiers and the VAT rate."""
    settings = Settings.get_settings()
    return jsonify(api_ok("settings", settings.as_api())), 200


@bp.put("")
@role_at_least("admin")
def update_settings():
    """
    Body (all keys optional):
    {
      "delivery_tiers": [{"min_amount": 0, "max_amount": 49.99, "fee": 5.99}, ...],
      "free_delivery_threshold": {"enabled": true, "amount": 100},
      "vat_rate": 20,
      "vat_enabled": true
    }
    """
    data = request.get_json(silent=True) or {}
    settings = Settings.get_settings()

    if "delivery_tiers" in data:
        tiers = data.get("delivery_tiers")
        if not isinstance(tiers, list) or not all(isinstance(t, dict) for t in tiers):
            return jsonify(api_error("delivery_tiers must be a list of tiers")), 400
        settings.replace_tiers(tiers)

    threshold = data.get("free_delivery_threshold")
    if isinstance(threshold, dict):
        if "enabled" in threshold:
            settings.free_delivery_enabled = bool(threshold.get("enabled"))
        if "amount" in threshold:
            amount = D(threshold.get("amount"))
            if amount < 0:
                return jsonify(api_error("Free delivery amount cannot be negative")), 400
            settings.free_delivery_amount = amount

    if "vat_rate" in data:
        rate = D(data.get("vat_rate"))
        if rate < 0 or rate > 100:
            return jsonify(api_error("vat_rate must be between 0 and 100")), 400
        settings.vat_rate = float(rate)
    if "vat_enabled" in data:
        settings.vat_enabled = bool(data.get("vat_enabled"))

    # raises ConfigurationError (400); the handler rolls back
    settings.validate_delivery_tiers()

    settings.updated_by = _updated_by()
    db.session.commit()
    current_app.logger.info("settings updated by %s", settings.updated_by)
    return jsonify(api_ok("Settings updated", settings.as_api())), 200


@bp.post("/reset")
@role_at_least("admin")
def reset_settings():
    settings = Settings.get_settings()
    settings.reset_to_defaults()
    settings.updated_by = _updated_by()
    db.session.commit()
    current_app.logger.info("settings reset to defaults by %s", settings.updated_by)
    return jsonify(api_ok("Settings reset to defaults", settings.as_api())), 200
