# ------ storefront/model/__init__.py ------

from .user import User
from .product import Product, ProductMaterial, MaterialSizeOption, ProductFinish, Finish
from .offer import Offer
from .cart import Cart, CartItem, DiscountProvenance
from .order import Order
from .settings import Settings, DeliveryTier

__all__ = [
    "User",
    "Product",
    "ProductMaterial",
    "MaterialSizeOption",
    "ProductFinish",
    "Finish",
    "Offer",
    "Cart",
    "CartItem",
    "DiscountProvenance",
    "Order",
    "Settings",
    "DeliveryTier",
]
