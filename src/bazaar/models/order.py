"""Order models: one order per seller per checkout."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bazaar.core.database import Base
from bazaar.models.base import CreatedAtMixin, TimestampMixin, uuid_fk, uuid_pk

if TYPE_CHECKING:
    from bazaar.models.buyer import Buyer


class Order(Base, TimestampMixin):
    """A seller's slice of one checkout transaction."""

    __tablename__ = "orders"

    order_id: Mapped[uuid.UUID] = uuid_pk()
    order_number: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    buyer_id: Mapped[uuid.UUID] = uuid_fk("buyers.buyer_id")
    seller_id: Mapped[uuid.UUID] = uuid_fk("sellers.seller_id")
    address_id: Mapped[uuid.UUID | None] = uuid_fk("addresses.address_id", nullable=True)
    shipping_address: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
    )
    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending_payment",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="placed",
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    campaign_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    voucher_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    bazcoins_redeemed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bazcoins_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    buyer: Mapped["Buyer"] = relationship("Buyer", back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )
    discounts: Mapped[List["OrderDiscount"]] = relationship(
        "OrderDiscount", back_populates="order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("total >= 0", name="chk_order_total_positive"),
        Index("idx_orders_buyer_created", "buyer_id", "created_at"),
        Index("idx_orders_transaction", "transaction_id"),
        Index("idx_orders_status", "status"),
    )


class OrderItem(Base):
    """Priced line captured on an order."""

    __tablename__ = "order_items"

    order_item_id: Mapped[uuid.UUID] = uuid_pk()
    order_id: Mapped[uuid.UUID] = uuid_fk("orders.order_id", ondelete="CASCADE")
    product_id: Mapped[uuid.UUID] = uuid_fk("products.product_id")
    variant_id: Mapped[uuid.UUID | None] = uuid_fk("product_variants.variant_id", nullable=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_per_unit: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
    )


class OrderDiscount(Base, CreatedAtMixin):
    """Campaign discount total granted on one order."""

    __tablename__ = "order_discounts"

    order_discount_id: Mapped[uuid.UUID] = uuid_pk()
    order_id: Mapped[uuid.UUID] = uuid_fk("orders.order_id", ondelete="CASCADE")
    buyer_id: Mapped[uuid.UUID] = uuid_fk("buyers.buyer_id")
    campaign_id: Mapped[uuid.UUID] = uuid_fk("discount_campaigns.campaign_id")
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="discounts")
