# storefront/offer/routes.py
from __future__ import annotations
from datetime import datetime, timezone
from flask import request, jsonify, current_app
from sqlalchemy import func

from ..extensions import db
from ..model import Offer
from ..model.offer import DISCOUNT_TYPES, AUDIENCES
from ..services.discount_service import validate_offer_code, increment_usage, normalize_code
from ..utils.api import api_ok, api_error
from ..utils.decorators import role_required, current_user_id, _current_user
from ..utils.money import D, money_float
from . import bp


def _parse_iso8601(s: str | None):
    if not s:
        return None
    s = str(s).strip()
    # support trailing 'Z' (UTC)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None  # let validation catch it below
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt

def _parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "on"}

def _apply_fields(offer: Offer, data: dict) -> str | None:
    """Copy submitted fields onto `offer`; returns an error message or None."""
    if "code" in data:
        offer.code = normalize_code(data.get("code")) or None
    if "description" in data:
        offer.description = (data.get("description") or "").strip()
    if "display_name" in data:
        offer.display_name = (data.get("display_name") or "").strip() or None
    if "discount_type" in data:
        offer.discount_type = (data.get("discount_type") or "").strip().lower()
    if "discount_value" in data:
        offer.discount_value = D(data.get("discount_value"))
    if "min_order_amount" in data:
        offer.min_order_amount = D(data.get("min_order_amount"))
    if "max_uses" in data:
        max_uses = data.get("max_uses")
        try:
            offer.max_uses = None if max_uses in (None, "") else int(max_uses)
        except (TypeError, ValueError):
            return "max_uses must be an integer"
    if "applicable_to" in data:
        offer.applicable_to = (data.get("applicable_to") or "all").strip().lower()
    if "priority" in data:
        try:
            offer.priority = int(data.get("priority") or 0)
        except (TypeError, ValueError):
            return "priority must be an integer"
    for flag in ("is_active", "auto_apply", "show_in_cart"):
        if flag in data:
            setattr(offer, flag, _parse_bool(data.get(flag)))
    for key in ("valid_from", "valid_to"):
        if key in data:
            parsed = _parse_iso8601(data.get(key))
            if data.get(key) and not parsed:
                return f"Invalid datetime format for {key}"
            setattr(offer, key, parsed)

    # whole-record checks
    if not offer.description:
        return "description is required"
    if not offer.code and not offer.auto_apply:
        return "code is required for offers that are not auto-applied"
    if offer.discount_type not in DISCOUNT_TYPES:
        return "discount_type must be 'percentage' or 'fixed'"
    value = D(offer.discount_value)
    if value <= 0:
        return "discount_value must be > 0"
    if offer.discount_type == "percentage" and value > 100:
        return "percentage discount must be ≤ 100"
    if D(offer.min_order_amount) < 0:
        return "min_order_amount cannot be negative"
    if offer.max_uses is not None and offer.max_uses < 0:
        return "max_uses cannot be negative"
    if offer.applicable_to not in AUDIENCES:
        return "applicable_to must be 'all' or 'new_users'"
    if offer.valid_from and offer.valid_to and offer.valid_to <= offer.valid_from:
        return "valid_to must be after valid_from"
    return None

def _code_taken(code, exclude_id=None) -> bool:
    if not code:
        return False
    q = Offer.query.filter(func.upper(Offer.code) == code)
    if exclude_id:
        q = q.filter(Offer.id != exclude_id)
    with db.session.no_autoflush:   # pending edits may carry the duplicate
        return db.session.query(q.exists()).scalar()

def _get_offer_or_404(offer_id: int):
    offer = db.session.get(Offer, offer_id)
    if not offer:
        return None, (jsonify(api_error("Offer not found")), 404)
    return offer, None


# ---- public ----------------------------------------------------------------

@bp.post("/validate")
def validate_offer():
    """Body: { "code": "SAVE10", "amount": 120.00 }"""
    data = request.get_json(silent=True) or {}
    result = validate_offer_code(data.get("code"), data.get("amount"), current_user_id())
    offer = result["offer"]
    return jsonify(api_ok("Offer is valid", {
        "offer": {
            "id": offer.id,
            "code": offer.code,
            "description": offer.label,
            "discount_type": offer.discount_type,
            "discount_value": money_float(offer.discount_value),
        },
        "discount_amount": money_float(result["discount_amount"]),
    })), 200


# ---- admin -----------------------------------------------------------------

@bp.post("")
@role_required("admin")
def create_offer():
    data = request.get_json(silent=True) or {}
    offer = Offer(
        discount_type="percentage",
        discount_value=0,
        min_order_amount=0,
        used_count=0,
        applicable_to="all",
        is_active=True,
        auto_apply=False,
        priority=0,
        show_in_cart=True,
        auto_apply_count=0,
        manual_apply_count=0,
    )
    problem = _apply_fields(offer, data)
    if problem:
        return jsonify(api_error(problem)), 400
    if _code_taken(offer.code):
        return jsonify(api_error("Offer code already exists")), 400

    admin = _current_user()
    offer.created_by = admin.id if admin else None
    db.session.add(offer)
    db.session.commit()
    current_app.logger.info("offer %s created (%s)", offer.id, offer.code or "auto")
    return jsonify(api_ok("Offer created", offer.as_api())), 201

@bp.get("")
@role_required("admin")
def list_offers():
    q = Offer.query
    active = request.args.get("active")
    if active is not None:
        q = q.filter(Offer.is_active.is_(active.lower() == "true"))
    auto = request.args.get("auto_apply")
    if auto is not None:
        q = q.filter(Offer.auto_apply.is_(auto.lower() == "true"))

    items = q.order_by(Offer.priority.desc(), Offer.id.desc()).all()
    return jsonify(api_ok("ok", {"offers": [o.as_api() for o in items]})), 200

@bp.get("/<int:offer_id>")
@role_required("admin")
def get_offer(offer_id: int):
    offer, error = _get_offer_or_404(offer_id)
    if error:
        return error
    return jsonify(api_ok("ok", offer.as_api())), 200

@bp.patch("/<int:offer_id>")
@role_required("admin")
def update_offer(offer_id: int):
    offer, error = _get_offer_or_404(offer_id)
    if error:
        return error
    data = request.get_json(silent=True) or {}
    problem = _apply_fields(offer, data)
    if problem:
        db.session.rollback()
        return jsonify(api_error(problem)), 400
    if _code_taken(offer.code, exclude_id=offer.id):
        db.session.rollback()
        return jsonify(api_error("Offer code already exists")), 400
    db.session.commit()
    return jsonify(api_ok("Offer updated", offer.as_api())), 200

@bp.delete("/<int:offer_id>")
@role_required("admin")
def deactivate_offer(offer_id: int):
    """Soft delete: carts holding the offer drop it on their next re-price."""
    offer, error = _get_offer_or_404(offer_id)
    if error:
        return error
    offer.is_active = False
    db.session.commit()
    current_app.logger.info("offer %s deactivated", offer.id)
    return jsonify(api_ok("Offer deactivated", offer.as_api())), 200

@bp.post("/<int:offer_id>/increment-usage")
@role_required("admin")
def increment_offer_usage(offer_id: int):
    offer = increment_usage(offer_id)
    db.session.commit()
    return jsonify(api_ok("Usage recorded", {"id": offer.id, "used_count": offer.used_count})), 200
