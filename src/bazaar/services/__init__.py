"""Checkout engine and persistence services."""

from bazaar.services.cart_store import CartStore
from bazaar.services.checkout_orchestrator import CheckoutOrchestrator
from bazaar.services.checkout_session import CheckoutSession
from bazaar.services.pricing import price_checkout
from bazaar.services.redis_service import RedisService

__all__ = [
    "CartStore",
    "CheckoutOrchestrator",
    "CheckoutSession",
    "RedisService",
    "price_checkout",
]
