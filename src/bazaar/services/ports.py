"""Ports (abstract interfaces) between the checkout engine and its backends.

The engine classes (CartStore, CheckoutSession, CheckoutOrchestrator) talk
only to these interfaces. The SQL services in this package implement them,
and tests swap in in-memory fakes.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable

from bazaar.schemas.cart import LineItem
from bazaar.schemas.checkout import CheckoutPayload, CheckoutResult
from bazaar.schemas.pricing import CampaignDiscount
from bazaar.schemas.voucher import VoucherValidation


class CartBackend(ABC):
    """Durable store of cart line items, keyed by buyer."""

    @abstractmethod
    async def get_or_create_cart(self, buyer_id: str) -> str:
        """Return the buyer's cart id, creating the cart if needed."""
        ...

    @abstractmethod
    async def list_items(self, cart_id: str) -> list[LineItem]:
        """Return the cart's lines with product and variant snapshots."""
        ...

    @abstractmethod
    async def add_item(
        self,
        cart_id: str,
        product_id: str,
        quantity: int,
        variant_id: str | None = None,
        registry_item_id: str | None = None,
    ) -> LineItem:
        """Add a line (merging into an existing one) and return the stored line."""
        ...

    @abstractmethod
    async def update_quantity(self, item_id: str, quantity: int) -> int:
        """Set a quantity clamped to stock; return the recorded value (0 removes)."""
        ...

    @abstractmethod
    async def update_variant(
        self, item_id: str, variant_id: str, quantity: int
    ) -> None:
        ...

    @abstractmethod
    async def remove_items(self, item_ids: Iterable[str]) -> None:
        ...


class DiscountLookup(ABC):
    """Read-only source of active campaign discounts."""

    @abstractmethod
    async def get_active_discounts_for_products(
        self, product_ids: Iterable[str]
    ) -> dict[str, CampaignDiscount]:
        """Return the active campaign discount per product id (absent if none)."""
        ...


class VoucherBackend(ABC):
    """Remote voucher validation."""

    @abstractmethod
    async def validate(
        self,
        code: str,
        order_value: Decimal,
        buyer_id: str,
        seller_id: str | None = None,
    ) -> VoucherValidation:
        ...


class OrderGateway(ABC):
    """Persists a priced checkout as one transaction."""

    @abstractmethod
    async def submit(self, payload: CheckoutPayload) -> CheckoutResult:
        """Place one order per seller; all or nothing."""
        ...
