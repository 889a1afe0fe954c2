# ------ sneakerstore/model/__init__.py ------

from .user import User
from .product import Product, ProductImage, ProductVariant, Size, Color
from .cart import Cart, CartItem
from .coupon import Coupon
from .order import Order, OrderItem, OrderStatusEvent

__all__ = [
    "User",
    "Product",
    "ProductImage",
    "ProductVariant",
    "Size",
    "Color",
    "Cart",
    "CartItem",
    "Coupon",
    "Order",
    "OrderItem",
    "OrderStatusEvent",
]
