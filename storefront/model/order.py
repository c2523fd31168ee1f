from datetime import datetime
from ..extensions import db

ORDER_STATUSES = ("pending", "paid", "shipped", "delivered", "completed", "cancelled")

class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, index=True)  # e.g., "ORD-20251022-0001"
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    status = db.Column(db.String(20), default="pending", index=True)

    # Money snapshot
    subtotal = db.Column(db.Numeric(12, 2))
    discount_amount = db.Column(db.Numeric(12, 2))
    shipping = db.Column(db.Numeric(12, 2))
    total = db.Column(db.Numeric(12, 2))
    offer_id = db.Column(db.Integer, db.ForeignKey("offer.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @classmethod
    def count_live_for_user(cls, user_id) -> int:
        """Orders that still count against new-customer offers."""
        return cls.query.filter(cls.user_id == user_id, cls.status != "cancelled").count()
