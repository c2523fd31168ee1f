# storefront/model/settings.py
from decimal import Decimal
from sqlalchemy.sql import func

from ..extensions import db
from ..errors import ConfigurationError
from ..utils.money import D

DEFAULT_VAT_RATE = 20.0
DEFAULT_FREE_DELIVERY = Decimal("100.00")
DEFAULT_TIERS = (
    # (min, max, fee); max None = no upper bound
    (Decimal("0"), Decimal("49.99"), Decimal("5.99")),
    (Decimal("50"), Decimal("99.99"), Decimal("3.99")),
    (Decimal("100"), None, Decimal("0")),
)

class Settings(db.Model):
    """Shop-wide delivery and VAT configuration (one row)."""
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)

    vat_enabled = db.Column(db.Boolean, nullable=False, default=True)
    vat_rate = db.Column(db.Float, nullable=False, default=DEFAULT_VAT_RATE)   # percent, VAT-inclusive prices

    free_delivery_enabled = db.Column(db.Boolean, nullable=False, default=True)
    free_delivery_amount = db.Column(db.Numeric(12, 2), nullable=False, default=DEFAULT_FREE_DELIVERY)

    updated_by = db.Column(db.String(120), default="system")
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    delivery_tiers = db.relationship(
        "DeliveryTier",
        backref="settings",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DeliveryTier.position.asc()",
    )

    @classmethod
    def get_settings(cls):
        settings = cls.current()
        if not settings:
            settings = cls.defaults()
            db.session.add(settings)
            db.session.commit()
        return settings

    @classmethod
    def current(cls):
        """The configured row, or None when the shop has never been set up."""
        return cls.query.order_by(cls.id.asc()).first()

    @classmethod
    def defaults(cls):
        settings = cls(updated_by="system")
        settings.reset_to_defaults()
        return settings

    def reset_to_defaults(self):
        self.vat_enabled = True
        self.vat_rate = DEFAULT_VAT_RATE
        self.free_delivery_enabled = True
        self.free_delivery_amount = DEFAULT_FREE_DELIVERY
        self.delivery_tiers = [
            DeliveryTier(position=i, min_amount=lo, max_amount=hi, fee=fee)
            for i, (lo, hi, fee) in enumerate(DEFAULT_TIERS)
        ]

    def replace_tiers(self, tiers):
        """tiers: iterable of dicts with min_amount, max_amount (optional), fee."""
        self.delivery_tiers = [
            DeliveryTier(
                position=i,
                min_amount=D(t.get("min_amount")),
                max_amount=None if t.get("max_amount") is None else D(t.get("max_amount")),
                fee=D(t.get("fee")),
            )
            for i, t in enumerate(tiers)
        ]

    def validate_delivery_tiers(self):
        """Reject inverted or overlapping tiers; gaps between tiers are allowed."""
        tiers = sorted(self.delivery_tiers, key=lambda t: D(t.min_amount))
        for i, tier in enumerate(tiers):
            lo = D(tier.min_amount)
            hi = None if tier.max_amount is None else D(tier.max_amount)
            if lo < 0 or D(tier.fee) < 0:
                raise ConfigurationError(f"Tier {i + 1}: amounts cannot be negative")
            if hi is not None and hi <= lo:
                raise ConfigurationError(f"Tier {i + 1}: max_amount must be greater than min_amount")
            if i + 1 < len(tiers):
                nxt = D(tiers[i + 1].min_amount)
                if hi is None or hi > nxt:
                    raise ConfigurationError(f"Overlap detected between tier {i + 1} and tier {i + 2}")

    def as_api(self):
        return {
            "delivery_tiers": [t.as_api() for t in self.delivery_tiers],
            "free_delivery_threshold": {
                "enabled": self.free_delivery_enabled,
                "amount": float(self.free_delivery_amount or 0),
            },
            "vat_rate": self.vat_rate,
            "vat_enabled": self.vat_enabled,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class DeliveryTier(db.Model):
    __tablename__ = "delivery_tier"

    id = db.Column(db.Integer, primary_key=True)
    settings_id = db.Column(db.Integer, db.ForeignKey("settings.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    min_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    max_amount = db.Column(db.Numeric(12, 2), nullable=True)   # None = no upper bound
    fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    def as_api(self):
        return {
            "min_amount": float(self.min_amount or 0),
            "max_amount": float(self.max_amount) if self.max_amount is not None else None,
            "fee": float(self.fee or 0),
        }
