"""API v1 routers."""

from bazaar.api.v1 import cart, checkout, orders, vouchers

__all__ = ["cart", "checkout", "orders", "vouchers"]
