"""Pytest configuration and fixtures for testing."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from bazaar.schemas.cart import LineItem, ProductSnapshot, SellerSnapshot, VariantSnapshot
from bazaar.schemas.checkout import (
    CheckoutPayload,
    CheckoutResult,
    PaymentMethod,
    PaymentSelection,
    ShippingAddress,
)
from bazaar.schemas.pricing import CampaignDiscount, PricingRules
from bazaar.schemas.voucher import VoucherErrorCode, VoucherValidation
from bazaar.services.ports import CartBackend, DiscountLookup, OrderGateway, VoucherBackend
from bazaar.services.voucher_service import check_voucher

_clock = itertools.count()


# ==================== Factories ====================


def make_product(
    price: str | Decimal = "100",
    seller_id: str = "seller-a",
    stock: int = 10,
    free_shipping: bool = False,
    original_price: str | Decimal | None = None,
    product_id: str | None = None,
    name: str = "Test Product",
) -> ProductSnapshot:
    return ProductSnapshot(
        product_id=product_id or str(uuid4()),
        name=name,
        price=Decimal(price),
        original_price=Decimal(original_price) if original_price is not None else None,
        stock=stock,
        is_free_shipping=free_shipping,
        seller=SellerSnapshot(seller_id=seller_id, store_name=f"Store {seller_id}"),
    )


def make_variant(
    name: str = "Red",
    stock: int = 10,
    price: str | Decimal | None = None,
    variant_id: str | None = None,
) -> VariantSnapshot:
    return VariantSnapshot(
        variant_id=variant_id or str(uuid4()),
        name=name,
        price=Decimal(price) if price is not None else None,
        stock=stock,
    )


def make_line(
    price: str | Decimal = "100",
    quantity: int = 1,
    seller_id: str = "seller-a",
    stock: int = 10,
    free_shipping: bool = False,
    included: bool = True,
    variant: VariantSnapshot | None = None,
    product: ProductSnapshot | None = None,
    item_id: str | None = None,
    created_at: datetime | None = None,
    original_price: str | Decimal | None = None,
) -> LineItem:
    product = product or make_product(
        price, seller_id, stock, free_shipping, original_price=original_price
    )
    # Strictly increasing creation times keep activity ordering deterministic
    created = created_at or datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(
        seconds=next(_clock)
    )
    return LineItem(
        item_id=item_id,
        product=product,
        variant=variant,
        quantity=quantity,
        included=included,
        created_at=created,
    )


def make_address(**overrides) -> ShippingAddress:
    fields = {
        "full_name": "Juan Dela Cruz",
        "street": "1 Rizal Street",
        "city": "Makati",
        "province": "Metro Manila",
        "postal_code": "1203",
        "phone": "09171234567",
    }
    fields.update(overrides)
    return ShippingAddress(**fields)


# ==================== In-memory backends ====================


class FakeCartBackend(CartBackend):
    """Cart backend held in memory.

    ``fail`` names operations that raise; ``gate`` (when set) makes every call
    wait until the event is set, so tests can hold syncs in flight.
    """

    def __init__(self, catalog: Iterable[ProductSnapshot] = (), records: Iterable[LineItem] = ()):
        self.cart_id = "cart-1"
        self.catalog = {product.product_id: product for product in catalog}
        self.variants: dict[str, VariantSnapshot] = {}
        self.records: list[LineItem] = list(records)
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self.gate: asyncio.Event | None = None
        self._ids = itertools.count(1)

    async def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation, *args))
        if self.gate is not None:
            await self.gate.wait()
        if operation in self.fail:
            raise ConnectionError(f"{operation} unavailable")

    def _index(self, item_id: str) -> int:
        for index, record in enumerate(self.records):
            if record.item_id == item_id:
                return index
        raise KeyError(item_id)

    async def get_or_create_cart(self, buyer_id: str) -> str:
        return self.cart_id

    async def list_items(self, cart_id: str) -> list[LineItem]:
        await self._enter("list_items", cart_id)
        return [record.model_copy(update={"included": False}) for record in self.records]

    async def add_item(
        self,
        cart_id: str,
        product_id: str,
        quantity: int,
        variant_id: str | None = None,
        registry_item_id: str | None = None,
    ) -> LineItem:
        await self._enter("add_item", product_id, quantity, variant_id)
        for index, record in enumerate(self.records):
            if record.key == (product_id, variant_id):
                merged = record.model_copy(update={"quantity": record.quantity + quantity})
                self.records[index] = merged
                return merged
        record = LineItem(
            item_id=f"item-{next(self._ids)}",
            product=self.catalog[product_id],
            variant=self.variants.get(variant_id) if variant_id else None,
            quantity=quantity,
            registry_item_id=registry_item_id,
        )
        self.records.append(record)
        return record

    async def update_quantity(self, item_id: str, quantity: int) -> int:
        await self._enter("update_quantity", item_id, quantity)
        index = self._index(item_id)
        self.records[index] = self.records[index].model_copy(update={"quantity": quantity})
        return quantity

    async def update_variant(self, item_id: str, variant_id: str, quantity: int) -> None:
        await self._enter("update_variant", item_id, variant_id, quantity)
        index = self._index(item_id)
        self.records[index] = self.records[index].model_copy(
            update={"variant": self.variants.get(variant_id), "quantity": quantity}
        )

    async def remove_items(self, item_ids: Iterable[str]) -> None:
        ids = list(item_ids)
        await self._enter("remove_items", ids)
        self.records = [record for record in self.records if record.item_id not in ids]


class FakeDiscountLookup(DiscountLookup):
    def __init__(self, discounts: dict[str, CampaignDiscount] | None = None):
        self.discounts = discounts or {}
        self.lookups: list[list[str]] = []

    async def get_active_discounts_for_products(self, product_ids):
        ids = list(product_ids)
        self.lookups.append(ids)
        return {pid: self.discounts[pid] for pid in ids if pid in self.discounts}


class FakeVoucherBackend(VoucherBackend):
    """Validates against an in-memory code table with the real state machine."""

    def __init__(self, vouchers=(), usage: dict[str, int] | None = None):
        self.vouchers = {voucher.code: voucher for voucher in vouchers}
        self.usage = usage or {}
        self.error: Exception | None = None

    async def validate(self, code, order_value, buyer_id, seller_id=None) -> VoucherValidation:
        if self.error is not None:
            raise self.error
        voucher = self.vouchers.get(code.strip().upper())
        if voucher is None:
            return VoucherValidation(error_code=VoucherErrorCode.NOT_FOUND)
        return check_voucher(
            voucher,
            order_value=order_value,
            seller_id=seller_id,
            buyer_usage=self.usage.get(voucher.voucher_id, 0),
        )


class FakeOrderGateway(OrderGateway):
    def __init__(self, result: CheckoutResult | None = None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.payloads: list[CheckoutPayload] = []

    async def submit(self, payload: CheckoutPayload) -> CheckoutResult:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return CheckoutResult(
            success=True,
            transaction_id=payload.transaction_id,
            order_ids=[f"ORD-{index}" for index, _ in enumerate(payload.sellers, start=1)],
            new_bazcoin_balance=None,
        )


# ==================== Fixtures ====================


@pytest.fixture
def rules() -> PricingRules:
    """Stock pricing rules (12% tax, flat 50 checkout shipping)."""
    return PricingRules()


@pytest.fixture
def address() -> ShippingAddress:
    return make_address()


@pytest.fixture
def cod_payment() -> PaymentSelection:
    return PaymentSelection(method=PaymentMethod.COD)


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()

    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.register_script = MagicMock(return_value=AsyncMock(return_value=1))

    return redis


# Mock database session fixture
@pytest.fixture
def mock_db() -> AsyncMock:
    """Create a mock AsyncSession; add() is synchronous like the real one."""
    db = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    return db
