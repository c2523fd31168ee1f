# --- storefront/model/offer.py ---

from datetime import datetime, timezone
from sqlalchemy import update
from sqlalchemy.sql import func

from ..extensions import db

DISCOUNT_TYPES = ("percentage", "fixed")
AUDIENCES = ("all", "new_users")

def utcnow():
    # naive UTC, matching how offer windows are stored
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Offer(db.Model):
    __tablename__ = "offer"

    id = db.Column(db.Integer, primary_key=True)
    # required for manual codes only; auto-apply offers may have none
    code = db.Column(db.String(64), unique=True, nullable=True, index=True)
    description = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(255), nullable=True)

    discount_type = db.Column(db.String(16), nullable=False, default="percentage")  # "percentage" | "fixed"
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    min_order_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    max_uses = db.Column(db.Integer, nullable=True)        # None = unlimited
    used_count = db.Column(db.Integer, nullable=False, default=0)
    valid_from = db.Column(db.DateTime, nullable=True)
    valid_to = db.Column(db.DateTime, nullable=True)       # None = no expiry

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    applicable_to = db.Column(db.String(16), nullable=False, default="all")   # "all" | "new_users"

    auto_apply = db.Column(db.Boolean, nullable=False, default=False, index=True)
    priority = db.Column(db.Integer, nullable=False, default=0, index=True)
    show_in_cart = db.Column(db.Boolean, nullable=False, default=True)

    # analytics counters, bumped atomically
    auto_apply_count = db.Column(db.Integer, nullable=False, default=0)
    manual_apply_count = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    __table_args__ = (
        db.Index("ix_offer_auto_active_priority", "auto_apply", "is_active", "priority"),
        db.Index("ix_offer_min_order_auto", "min_order_amount", "auto_apply"),
    )

    @property
    def label(self):
        return self.display_name or self.description

    def is_within_window(self, now=None) -> bool:
        now = now or utcnow()
        if self.valid_from and now < self.valid_from:
            return False
        if self.valid_to and now > self.valid_to:
            return False
        return True

    def is_capped(self) -> bool:
        return self.max_uses is not None and (self.used_count or 0) >= self.max_uses

    def check_validity(self, user_is_new=False, now=None):
        """Return (ok, reason) for applying this offer by code."""
        now = now or utcnow()
        if not self.is_active:
            return False, "Offer is not active"
        if self.valid_from and now < self.valid_from:
            return False, "Offer has not started yet"
        if self.valid_to and now > self.valid_to:
            return False, "Offer has expired"
        if self.is_capped():
            return False, "Offer has reached maximum usage limit"
        if self.applicable_to == "new_users" and not user_is_new:
            return False, "Offer is only valid for new users"
        return True, None

    @classmethod
    def bump(cls, offer_id, counter: str):
        """Atomic `counter = counter + 1`; no read-modify-write."""
        column = getattr(cls, counter)
        db.session.execute(
            update(cls).where(cls.id == offer_id).values({column: column + 1})
        )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "display_name": self.label,
            "discount_type": self.discount_type,
            "discount_value": float(self.discount_value or 0),
            "min_order_amount": float(self.min_order_amount or 0),
            "max_uses": self.max_uses,
            "used_count": self.used_count,
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_to": self.valid_to.isoformat() if self.valid_to else None,
            "is_active": self.is_active,
            "applicable_to": self.applicable_to,
            "auto_apply": self.auto_apply,
            "priority": self.priority,
            "show_in_cart": self.show_in_cart,
            "auto_apply_count": self.auto_apply_count,
            "manual_apply_count": self.manual_apply_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
