# storefront/model/cart.py
from __future__ import annotations
import enum
import uuid as _uuid
from decimal import Decimal
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.money import D, ZERO, money_float


class DiscountProvenance(str, enum.Enum):
    """Where the cart's current discount came from.

    Stored across three columns (discount_application_method,
    is_auto_applied, manual_code_locked); this enum is the only way the
    engine reads or writes them.
    """
    NONE = "none"
    AUTO = "auto"
    MANUAL = "manual"
    MANUAL_LOCKED = "manual_locked"


class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, index=True, default=lambda: str(_uuid.uuid4()))
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    status = db.Column(db.String(16), default="active", index=True)   # active | checkout | completed | abandoned
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    # --- pricing (derived by recalculate()) ---
    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # --- single cart-level discount ---
    discount_code = db.Column(db.String(64), nullable=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    offer_id = db.Column(db.Integer, db.ForeignKey("offer.id"), nullable=True)

    # --- discount provenance ---
    is_auto_applied = db.Column(db.Boolean, nullable=False, default=False)
    discount_application_method = db.Column(db.String(16), nullable=False, default="none")  # none | auto | manual
    manual_code_locked = db.Column(db.Boolean, nullable=False, default=False)

    # UI hint cache: [{offer_id, calculated_discount, priority}]
    eligible_auto_offers = db.Column(db.JSON, nullable=False, default=lambda: [])

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id.asc()"
    )
    offer = db.relationship("Offer", lazy="joined")

    # --------- provenance ----------
    @property
    def provenance(self) -> DiscountProvenance:
        method = self.discount_application_method or "none"
        if method == "manual" and self.manual_code_locked:
            return DiscountProvenance.MANUAL_LOCKED
        if not self.offer_id:
            return DiscountProvenance.NONE
        if self.is_auto_applied or method == "auto":
            return DiscountProvenance.AUTO
        # any other stored discount is a customer-entered code
        return DiscountProvenance.MANUAL

    def set_discount(self, code, amount, offer_id, provenance: DiscountProvenance):
        self.discount_code = code
        self.discount_amount = D(amount)
        self.offer_id = offer_id
        self.is_auto_applied = provenance is DiscountProvenance.AUTO
        self.manual_code_locked = provenance is DiscountProvenance.MANUAL_LOCKED
        if provenance is DiscountProvenance.AUTO:
            self.discount_application_method = "auto"
        elif provenance in (DiscountProvenance.MANUAL, DiscountProvenance.MANUAL_LOCKED):
            self.discount_application_method = "manual"
        else:
            self.discount_application_method = "none"

    def clear_discount(self):
        self.set_discount(None, ZERO, None, DiscountProvenance.NONE)

    # --------- totals ----------
    def recalculate(self):
        """Subtotal from line totals; total never below zero."""
        self.subtotal = sum((D(i.total_price) for i in self.items), Decimal("0"))
        self.total = max(ZERO, D(self.subtotal) - D(self.discount_amount))

    def total_quantity(self) -> int:
        return sum(int(i.quantity or 0) for i in self.items)

    def as_api(self):
        return {
            "id": self.id,
            "uuid": self.uuid,
            "status": self.status,
            "user_id": self.user_id,
            "items": [i.as_api() for i in self.items],
            "totals": {
                "subtotal": money_float(self.subtotal),
                "discount_amount": money_float(self.discount_amount),
                "total": money_float(self.total),
            },
            "discount": {
                "code": self.discount_code,
                "offer_id": self.offer_id,
                "label": self.offer.label if self.offer else None,
                "is_auto_applied": self.is_auto_applied,
                "application_method": self.discount_application_method,
                "manual_code_locked": self.manual_code_locked,
            },
            "eligible_auto_offers": list(self.eligible_auto_offers or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class CartItem(db.Model):
    __tablename__ = "cart_item"

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id"), nullable=False, index=True)

    # product snapshot
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_code = db.Column(db.String(64))

    # selected material snapshot
    material_id = db.Column(db.String(64))
    material_name = db.Column(db.String(120), nullable=False)
    material_base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    size_mm = db.Column(db.Integer, nullable=True)
    size_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    finish_id = db.Column(db.Integer, db.ForeignKey("finish.id"), nullable=True)
    finish_name = db.Column(db.String(120))
    finish_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    packaging_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def set_quantity(self, quantity: int):
        self.quantity = quantity
        self.total_price = D(self.unit_price) * quantity

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.product_name,
            "code": self.product_code,
            "selections": {
                "material": self.material_name,
                "size": f"{self.size_mm}mm" if self.size_mm else "Standard",
                "finish": self.finish_name or "None",
            },
            "pricing": {
                "material_cost": money_float(self.material_base_price),
                "size_cost": money_float(self.size_cost),
                "finish_cost": money_float(self.finish_cost),
                "packaging_cost": money_float(self.packaging_price),
                "unit_price": money_float(self.unit_price),
            },
            "quantity": self.quantity,
            "total_price": money_float(self.total_price),
        }
