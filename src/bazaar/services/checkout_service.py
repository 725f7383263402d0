"""Checkout service: places one order per seller in a single transaction.

Flow (all inside one database transaction, guarded by a per-buyer Redis lock):
1. Lock the buyer row and check the Bazcoin balance
2. Lock product/variant rows and verify stock
3. Create one order per seller, with items and campaign discount rows
4. Deduct stock
5. Record voucher redemptions
6. Apply the Bazcoin delta as one write
7. Increment registry received quantities
8. Delete the consumed cart items (cart checkouts only)
9. Commit; any failure rolls everything back
"""

import logging
import secrets
import string
import time
import uuid
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.core.config import settings
from bazaar.models.buyer import Buyer
from bazaar.models.cart import Cart, CartItem
from bazaar.models.order import Order, OrderDiscount, OrderItem
from bazaar.models.product import Product, ProductVariant
from bazaar.models.registry import RegistryItem
from bazaar.models.voucher import Voucher as VoucherRow
from bazaar.schemas.checkout import CheckoutLine, CheckoutPayload, CheckoutResult
from bazaar.schemas.pricing import SellerPricing
from bazaar.services.ports import OrderGateway
from bazaar.services.redis_service import RedisService
from bazaar.services.voucher_service import VoucherService

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


class CheckoutError(Exception):
    """Raised when a checkout cannot be placed (stock, balance, missing data)."""


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_order_number(now_ms: int | None = None, year: int | None = None) -> str:
    """Order number: ORD-<year><6 random digits><last 4 base36 chars of the ms clock>."""
    now_ms = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    year = year if year is not None else time.gmtime(now_ms / 1000).tm_year
    random_part = 100000 + secrets.randbelow(900000)
    return f"ORD-{year}{random_part}{_to_base36(now_ms)[-4:].rjust(4, '0')}"


class CheckoutService(OrderGateway):
    """Order gateway backed by PostgreSQL."""

    def __init__(self, db: AsyncSession, redis_service: RedisService | None = None):
        """Initialize checkout service.

        Args:
            db: SQLAlchemy async session
            redis_service: Redis service for the per-buyer lock (skipped if None)
        """
        self.db = db
        self.redis_service = redis_service

    async def submit(self, payload: CheckoutPayload) -> CheckoutResult:
        """Place the payload's orders atomically.

        Returns:
            CheckoutResult; on failure nothing was written
        """
        lock_resource = f"checkout:{payload.buyer_id}"
        owner_id = None
        if self.redis_service is not None:
            acquired, owner_id = await self.redis_service.acquire_lock(
                lock_resource, ttl=settings.CHECKOUT_LOCK_TTL_SECONDS
            )
            if not acquired:
                return CheckoutResult(
                    success=False,
                    transaction_id=payload.transaction_id,
                    error="Another checkout is already in progress",
                )

        try:
            order_numbers, new_balance = await self._place_orders(payload)
            await self.db.commit()
        except CheckoutError as e:
            await self.db.rollback()
            logger.warning(f"Checkout {payload.transaction_id} rejected: {e}")
            return CheckoutResult(
                success=False, transaction_id=payload.transaction_id, error=str(e)
            )
        except (SQLAlchemyError, ValueError) as e:
            await self.db.rollback()
            logger.error(f"Checkout {payload.transaction_id} failed, rolled back: {e}")
            return CheckoutResult(
                success=False,
                transaction_id=payload.transaction_id,
                error="Checkout failed. Please try again.",
            )
        finally:
            if owner_id is not None:
                await self.redis_service.release_lock(lock_resource, owner_id)

        return CheckoutResult(
            success=True,
            transaction_id=payload.transaction_id,
            order_ids=order_numbers,
            new_bazcoin_balance=new_balance,
        )

    async def _place_orders(self, payload: CheckoutPayload) -> tuple[list[str], int]:
        buyer_id = uuid.UUID(payload.buyer_id)
        transaction_id = uuid.UUID(payload.transaction_id)

        buyer = await self._lock_buyer(buyer_id)
        if payload.bazcoins_redeemed > buyer.bazcoins:
            raise CheckoutError("Insufficient Bazcoins")

        stock = await self._lock_stock(payload.items)

        items_by_seller: dict[str, list[CheckoutLine]] = defaultdict(list)
        for item in payload.items:
            items_by_seller[item.seller_id].append(item)
        slices = {seller.seller_id: seller for seller in payload.sellers}

        orders: dict[str, Order] = {}
        for seller_id, seller_items in items_by_seller.items():
            seller_slice = slices.get(seller_id)
            if seller_slice is None:
                raise CheckoutError("Missing seller information")
            orders[seller_id] = await self._create_order(
                payload,
                buyer_id,
                transaction_id,
                generate_order_number(),
                seller_slice,
                seller_items,
            )

        self._deduct_stock(payload.items, stock)
        await self._redeem_vouchers(payload.voucher_ids, buyer_id, orders)

        # Redeem then earn, applied as a single write
        buyer.bazcoins = buyer.bazcoins - payload.bazcoins_redeemed + payload.bazcoins_earned

        await self._fulfil_registry(payload.items)
        if payload.from_cart:
            await self._clear_cart_items(buyer_id, payload.items)

        await self.db.flush()
        logger.info(
            f"Checkout {payload.transaction_id}: {len(orders)} orders for buyer {payload.buyer_id}"
        )
        return [order.order_number for order in orders.values()], buyer.bazcoins

    async def _lock_buyer(self, buyer_id: uuid.UUID) -> Buyer:
        result = await self.db.execute(
            select(Buyer).where(Buyer.buyer_id == buyer_id).with_for_update()
        )
        buyer = result.scalar_one_or_none()
        if buyer is None:
            raise CheckoutError("Buyer not found")
        return buyer

    async def _lock_stock(
        self, items: list[CheckoutLine]
    ) -> dict[tuple[str, str | None], Product | ProductVariant]:
        """Lock the stock rows for every line and check there is enough.

        Returns:
            Dict of (product_id, variant_id) to the row holding the stock

        Raises:
            CheckoutError: Unknown product/variant, seller mismatch, or short stock
        """
        product_ids = {uuid.UUID(item.product_id) for item in items}
        variant_ids = {uuid.UUID(item.variant_id) for item in items if item.variant_id}

        result = await self.db.execute(
            select(Product).where(Product.product_id.in_(product_ids)).with_for_update()
        )
        products = {str(p.product_id): p for p in result.scalars().all()}
        variants: dict[str, ProductVariant] = {}
        if variant_ids:
            result = await self.db.execute(
                select(ProductVariant)
                .where(ProductVariant.variant_id.in_(variant_ids))
                .with_for_update()
            )
            variants = {str(v.variant_id): v for v in result.scalars().all()}

        needed: dict[tuple[str, str | None], int] = defaultdict(int)
        for item in items:
            needed[(item.product_id, item.variant_id)] += item.quantity

        rows: dict[tuple[str, str | None], Product | ProductVariant] = {}
        for item in items:
            product = products.get(item.product_id)
            if product is None:
                raise CheckoutError(f"Product {item.product_name} is no longer available")
            if str(product.seller_id) != item.seller_id:
                raise CheckoutError("Missing seller information")
            row: Product | ProductVariant = product
            if item.variant_id:
                variant = variants.get(item.variant_id)
                if variant is None or str(variant.product_id) != item.product_id:
                    raise CheckoutError(f"Variant of {item.product_name} is no longer available")
                row = variant
            key = (item.product_id, item.variant_id)
            if row.stock < needed[key]:
                raise CheckoutError(f"Insufficient stock for {item.product_name}")
            rows[key] = row
        return rows

    async def _create_order(
        self,
        payload: CheckoutPayload,
        buyer_id: uuid.UUID,
        transaction_id: uuid.UUID,
        order_number: str,
        seller: SellerPricing,
        items: list[CheckoutLine],
    ) -> Order:
        order = Order(
            order_number=order_number,
            transaction_id=transaction_id,
            buyer_id=buyer_id,
            seller_id=uuid.UUID(seller.seller_id),
            address_id=uuid.UUID(payload.selected_address_id) if payload.selected_address_id else None,
            shipping_address=payload.shipping_address.model_dump(),
            payment_method=payload.payment_method.value,
            payment_status="pending_payment",
            status="placed",
            subtotal=seller.original_subtotal,
            campaign_discount=seller.campaign_discount,
            voucher_discount=seller.voucher_discount,
            shipping_fee=seller.shipping_fee,
            tax=seller.tax,
            total=seller.total,
            bazcoins_redeemed=int(seller.bazcoins_redeemed),
            bazcoins_earned=int(seller.bazcoins_earned),
        )
        self.db.add(order)
        await self.db.flush()

        campaign_totals: dict[str, Decimal] = defaultdict(Decimal)
        for item in items:
            self.db.add(
                OrderItem(
                    order_id=order.order_id,
                    product_id=uuid.UUID(item.product_id),
                    variant_id=uuid.UUID(item.variant_id) if item.variant_id else None,
                    product_name=item.variant_name or item.product_name,
                    image_url=item.image_url,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount_per_unit=item.campaign_discount_per_unit,
                )
            )
            discount_total = item.campaign_discount_per_unit * item.quantity
            if item.campaign_id and discount_total > 0:
                campaign_totals[item.campaign_id] += discount_total

        for campaign_id, amount in campaign_totals.items():
            self.db.add(
                OrderDiscount(
                    order_id=order.order_id,
                    buyer_id=buyer_id,
                    campaign_id=uuid.UUID(campaign_id),
                    discount_amount=amount,
                )
            )
        return order

    def _deduct_stock(
        self,
        items: list[CheckoutLine],
        rows: dict[tuple[str, str | None], Product | ProductVariant],
    ) -> None:
        for item in items:
            row = rows[(item.product_id, item.variant_id)]
            row.stock -= item.quantity

    async def _redeem_vouchers(
        self, voucher_ids: list[str], buyer_id: uuid.UUID, orders: dict[str, Order]
    ) -> None:
        """Record each voucher once, against its seller's order (platform: first order)."""
        if not voucher_ids:
            return
        voucher_service = VoucherService(self.db)
        first_order = next(iter(orders.values()))
        for voucher_id in voucher_ids:
            voucher = await self.db.get(VoucherRow, uuid.UUID(voucher_id))
            if voucher is None:
                raise CheckoutError("Voucher no longer exists")
            order = orders.get(str(voucher.seller_id)) if voucher.seller_id else first_order
            if order is None:
                raise CheckoutError("Voucher does not match any store in this order")
            await voucher_service.redeem(voucher.voucher_id, buyer_id, order.order_id)

    async def _fulfil_registry(self, items: list[CheckoutLine]) -> None:
        for item in items:
            if not item.registry_item_id:
                continue
            await self.db.execute(
                update(RegistryItem)
                .where(RegistryItem.registry_item_id == uuid.UUID(item.registry_item_id))
                .values(received_qty=RegistryItem.received_qty + item.quantity)
            )

    async def _clear_cart_items(self, buyer_id: uuid.UUID, items: list[CheckoutLine]) -> None:
        item_ids = [uuid.UUID(item.item_id) for item in items if item.item_id]
        if not item_ids:
            return
        await self.db.execute(
            delete(CartItem).where(
                CartItem.item_id.in_(item_ids),
                CartItem.cart_id.in_(select(Cart.cart_id).where(Cart.buyer_id == buyer_id)),
            )
        )
