"""Tests for transactional order placement."""

import re
import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from bazaar.schemas.checkout import (
    CheckoutLine,
    CheckoutPayload,
    PaymentMethod,
)
from bazaar.schemas.pricing import SellerPricing
from bazaar.services.checkout_service import (
    CheckoutError,
    CheckoutService,
    generate_order_number,
)
from bazaar.services.redis_service import RedisService
from conftest import make_address


def seller_slice(seller_id: str, total: str = "100") -> SellerPricing:
    zero = Decimal("0")
    return SellerPricing(
        seller_id=seller_id,
        original_subtotal=Decimal(total),
        campaign_discount=zero,
        subtotal_after_campaign=Decimal(total),
        shipping_fee=zero,
        voucher_discount=zero,
        bazcoins_redeemed=zero,
        bazcoins_earned=zero,
        tax=zero,
        total=Decimal(total),
    )


def make_payload(seller_count: int = 1, redeemed: int = 0, earned: int = 0) -> CheckoutPayload:
    sellers = [str(uuid.uuid4()) for _ in range(seller_count)]
    items = [
        CheckoutLine(
            item_id=str(uuid.uuid4()),
            product_id=str(uuid.uuid4()),
            seller_id=seller_id,
            product_name=f"Product {index}",
            quantity=1,
            unit_price=Decimal("100"),
        )
        for index, seller_id in enumerate(sellers)
    ]
    return CheckoutPayload(
        transaction_id=str(uuid.uuid4()),
        buyer_id=str(uuid.uuid4()),
        items=items,
        sellers=[seller_slice(seller_id) for seller_id in sellers],
        total_amount=Decimal(100 * seller_count),
        tax=Decimal("0"),
        shipping_fee=Decimal("0"),
        discount_amount=Decimal("0"),
        shipping_address=make_address(),
        payment_method=PaymentMethod.COD,
        bazcoins_redeemed=redeemed,
        bazcoins_earned=earned,
    )


def stock_rows(payload: CheckoutPayload, stock: int = 10) -> dict:
    return {(item.product_id, item.variant_id): MagicMock(stock=stock) for item in payload.items}


def placed_order(number: str) -> MagicMock:
    order = MagicMock()
    order.order_number = number
    order.order_id = uuid.uuid4()
    return order


@pytest.fixture
def buyer() -> MagicMock:
    buyer = MagicMock()
    buyer.bazcoins = 100
    return buyer


class TestGenerateOrderNumber:
    def test_format(self):
        number = generate_order_number(now_ms=36**4 + 35, year=2026)

        assert re.fullmatch(r"ORD-2026\d{6}000Z", number)

    def test_numbers_differ(self):
        assert len({generate_order_number() for _ in range(20)}) > 1


class TestPlaceOrders:
    """Test the all-or-nothing order transaction."""

    @pytest.mark.asyncio
    async def test_success_commits_and_applies_bazcoin_delta(self, mock_db, buyer):
        payload = make_payload(seller_count=2, redeemed=30, earned=5)
        service = CheckoutService(mock_db)

        with patch.object(service, "_lock_buyer", AsyncMock(return_value=buyer)), patch.object(
            service, "_lock_stock", AsyncMock(return_value=stock_rows(payload))
        ), patch.object(
            service,
            "_create_order",
            AsyncMock(side_effect=[placed_order("ORD-A"), placed_order("ORD-B")]),
        ):
            result = await service.submit(payload)

        assert result.success
        assert result.order_ids == ["ORD-A", "ORD-B"]
        assert result.new_bazcoin_balance == 75
        assert buyer.bazcoins == 75
        mock_db.commit.assert_awaited_once()
        mock_db.rollback.assert_not_awaited()
        # Consumed cart lines are deleted in the same transaction
        mock_db.execute.assert_awaited()

    @pytest.mark.asyncio
    async def test_one_order_number_per_seller(self, mock_db, buyer):
        payload = make_payload(seller_count=2)
        service = CheckoutService(mock_db)
        create_order = AsyncMock(side_effect=[placed_order("ORD-A"), placed_order("ORD-B")])

        with patch.object(service, "_lock_buyer", AsyncMock(return_value=buyer)), patch.object(
            service, "_lock_stock", AsyncMock(return_value=stock_rows(payload))
        ), patch.object(service, "_create_order", create_order), patch(
            "bazaar.services.checkout_service.generate_order_number",
            side_effect=["ORD-2026000001AAAA", "ORD-2026000002BBBB"],
        ) as number:
            await service.submit(payload)

        assert number.call_count == 2
        assert [c.args[3] for c in create_order.call_args_list] == [
            "ORD-2026000001AAAA",
            "ORD-2026000002BBBB",
        ]

    @pytest.mark.asyncio
    async def test_third_seller_failure_rolls_back_everything(self, mock_db, buyer):
        payload = make_payload(seller_count=3, redeemed=20, earned=10)
        service = CheckoutService(mock_db)
        rows = stock_rows(payload)
        create_order = AsyncMock(
            side_effect=[
                placed_order("ORD-A"),
                placed_order("ORD-B"),
                SQLAlchemyError("insert failed"),
            ]
        )

        with patch.object(service, "_lock_buyer", AsyncMock(return_value=buyer)), patch.object(
            service, "_lock_stock", AsyncMock(return_value=rows)
        ), patch.object(service, "_create_order", create_order):
            result = await service.submit(payload)

        assert result.success is False
        assert result.order_ids == []
        assert result.error == "Checkout failed. Please try again."
        assert create_order.await_count == 3
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()
        assert buyer.bazcoins == 100
        assert all(row.stock == 10 for row in rows.values())

    @pytest.mark.asyncio
    async def test_insufficient_bazcoins(self, mock_db, buyer):
        payload = make_payload(redeemed=500)
        service = CheckoutService(mock_db)

        with patch.object(service, "_lock_buyer", AsyncMock(return_value=buyer)):
            result = await service.submit(payload)

        assert result.success is False
        assert result.error == "Insufficient Bazcoins"
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insufficient_stock(self, mock_db):
        payload = make_payload()
        item = payload.items[0]
        product = MagicMock()
        product.product_id = uuid.UUID(item.product_id)
        product.seller_id = uuid.UUID(item.seller_id)
        product.stock = 0
        query_result = MagicMock()
        query_result.scalars.return_value.all.return_value = [product]
        mock_db.execute = AsyncMock(return_value=query_result)
        service = CheckoutService(mock_db)

        with pytest.raises(CheckoutError, match="Insufficient stock for Product 0"):
            await service._lock_stock(payload.items)

    @pytest.mark.asyncio
    async def test_seller_without_slice_rejected(self, mock_db, buyer):
        payload = make_payload(seller_count=2)
        payload = payload.model_copy(update={"sellers": payload.sellers[:1]})
        service = CheckoutService(mock_db)

        with patch.object(service, "_lock_buyer", AsyncMock(return_value=buyer)), patch.object(
            service, "_lock_stock", AsyncMock(return_value=stock_rows(payload))
        ), patch.object(service, "_create_order", AsyncMock(return_value=placed_order("ORD-A"))):
            result = await service.submit(payload)

        assert result.error == "Missing seller information"
        mock_db.commit.assert_not_awaited()


class TestCheckoutLock:
    """Test the per-buyer checkout lock."""

    @pytest.mark.asyncio
    async def test_concurrent_checkout_rejected(self, mock_db, mock_redis):
        mock_redis.set = AsyncMock(return_value=None)
        service = CheckoutService(mock_db, RedisService(mock_redis))
        service._place_orders = AsyncMock()

        result = await service.submit(make_payload())

        assert result.success is False
        assert result.error == "Another checkout is already in progress"
        service._place_orders.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, mock_db, mock_redis):
        payload = make_payload()
        service = CheckoutService(mock_db, RedisService(mock_redis))
        service._place_orders = AsyncMock(side_effect=CheckoutError("Insufficient Bazcoins"))

        await service.submit(payload)

        mock_redis.set.assert_awaited_once()
        args, kwargs = mock_redis.set.call_args
        assert args[0] == f"lock:checkout:{payload.buyer_id}"
        assert kwargs["nx"] is True
        release_script = mock_redis.register_script.return_value
        release_script.assert_awaited_once_with(
            keys=[f"lock:checkout:{payload.buyer_id}"], args=[args[1]]
        )
