"""Order service for order query operations."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bazaar.models.order import Order


class OrderService:
    """Service class for order operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_buyer_orders(
        self, buyer_id: UUID, skip: int = 0, limit: int = 100
    ) -> tuple[list[Order], int]:
        """Get orders for a specific buyer, newest first.

        Args:
            buyer_id: Buyer UUID
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders list, total count)
        """
        count_result = await self.db.execute(
            select(func.count(Order.order_id)).where(Order.buyer_id == buyer_id)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.buyer_id == buyer_id)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        orders = list(result.scalars().all())

        return orders, total

    async def get_transaction_orders(self, transaction_id: UUID) -> list[Order]:
        """Get every seller order created by one checkout.

        Args:
            transaction_id: Checkout transaction UUID

        Returns:
            Orders sharing the transaction id
        """
        result = await self.db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.transaction_id == transaction_id)
            .order_by(Order.created_at.asc())
        )
        return list(result.scalars().all())
