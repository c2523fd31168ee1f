# tests/conftest.py
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.extensions import db
from storefront.model import (
    User, Product, ProductMaterial, MaterialSizeOption, ProductFinish, Finish,
    Offer, Cart, CartItem, Order, Settings, DeliveryTier,
)


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "JWT_SECRET_KEY": "test-secret-key-with-enough-length-32b",
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email="customer@example.com", role="user", password="secret123"):
        user = User(email=email, name=email.split("@")[0],
                    password_hash=generate_password_hash(password), role=role)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def auth_header(app):
    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}
    return _header


@pytest.fixture
def admin_headers(make_user, auth_header):
    return auth_header(make_user("admin@example.com", role="admin"))


@pytest.fixture
def product(app):
    """Oak board: base 100, 18mm (+15) and 25mm (+30), Matt (+5) and Gloss (+12), packaging 4.50."""
    matt = Finish(name="Matt")
    gloss = Finish(name="Gloss")
    p = Product(code="BRD-001", name="Board", packaging_price=Decimal("4.50"))
    oak = ProductMaterial(material_id="oak", name="Oak", base_price=Decimal("100.00"))
    oak.size_options = [
        MaterialSizeOption(name="18mm", size_mm=18, additional_cost=Decimal("15.00")),
        MaterialSizeOption(name="25mm", size_mm=25, additional_cost=Decimal("30.00")),
    ]
    pine = ProductMaterial(material_id="pine", name="Pine", base_price=Decimal("60.00"))
    p.materials = [oak, pine]
    p.finishes = [
        ProductFinish(finish=matt, price_adjustment=Decimal("5.00")),
        ProductFinish(finish=gloss, price_adjustment=Decimal("12.00")),
    ]
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def make_offer(app):
    def _make(**fields):
        values = {
            "description": "Test offer",
            "discount_type": "percentage",
            "discount_value": Decimal("10"),
            "min_order_amount": Decimal("0"),
            "is_active": True,
            "auto_apply": False,
            "priority": 0,
            "applicable_to": "all",
        }
        values.update(fields)
        offer = Offer(**values)
        db.session.add(offer)
        db.session.commit()
        return offer
    return _make


@pytest.fixture
def make_cart(app):
    """A cart holding one line per amount given (quantity 1, price = amount)."""
    def _make(*amounts, user_id=None):
        cart = Cart(status="active", user_id=user_id)
        for amount in amounts:
            cart.items.append(CartItem(
                product_id=1,
                product_name="Line",
                material_name="Oak",
                material_base_price=Decimal(str(amount)),
                quantity=1,
                unit_price=Decimal(str(amount)),
                total_price=Decimal(str(amount)),
            ))
        cart.recalculate()
        db.session.add(cart)
        db.session.commit()
        return cart
    return _make


@pytest.fixture
def make_order(app):
    def _make(user, status="completed"):
        order = Order(user_id=user.id, status=status, subtotal=0, discount_amount=0, shipping=0, total=0)
        db.session.add(order)
        db.session.commit()
        return order
    return _make


@pytest.fixture
def shop_settings(app):
    """Default tiers: 0-49.99 -> 5.99, 50-99.99 -> 3.99, 100+ -> 0; free over 100; VAT 20%."""
    settings = Settings.defaults()
    db.session.add(settings)
    db.session.commit()
    return settings


@pytest.fixture
def make_settings(app):
    """Unsaved Settings for pure shipping/VAT calculations."""
    def _make(tiers, free_enabled=False, free_amount="100", vat_rate=20.0, vat_enabled=True):
        return Settings(
            vat_enabled=vat_enabled,
            vat_rate=vat_rate,
            free_delivery_enabled=free_enabled,
            free_delivery_amount=Decimal(free_amount),
            delivery_tiers=[
                DeliveryTier(
                    position=i,
                    min_amount=Decimal(str(lo)),
                    max_amount=None if hi is None else Decimal(str(hi)),
                    fee=Decimal(str(fee)),
                )
                for i, (lo, hi, fee) in enumerate(tiers)
            ],
        )
    return _make
