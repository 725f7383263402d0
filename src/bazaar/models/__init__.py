"""SQLAlchemy ORM models."""

from bazaar.models.base import CreatedAtMixin, TimestampMixin
from bazaar.models.buyer import Address, Buyer, Seller
from bazaar.models.campaign import DiscountCampaign, ProductDiscount
from bazaar.models.cart import Cart, CartItem
from bazaar.models.order import Order, OrderDiscount, OrderItem
from bazaar.models.product import Product, ProductVariant
from bazaar.models.registry import RegistryItem
from bazaar.models.voucher import Voucher, VoucherRedemption

__all__ = [
    "CreatedAtMixin",
    "TimestampMixin",
    "Buyer",
    "Seller",
    "Address",
    "Product",
    "ProductVariant",
    "Cart",
    "CartItem",
    "DiscountCampaign",
    "ProductDiscount",
    "Voucher",
    "VoucherRedemption",
    "Order",
    "OrderItem",
    "OrderDiscount",
    "RegistryItem",
]
