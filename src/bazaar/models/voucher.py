"""Voucher and voucher redemption models."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from bazaar.core.database import Base
from bazaar.models.base import CreatedAtMixin, TimestampMixin, uuid_fk, uuid_pk


class Voucher(Base, TimestampMixin):
    """Discount instrument redeemable by code; platform wide when seller_id is null."""

    __tablename__ = "vouchers"

    voucher_id: Mapped[uuid.UUID] = uuid_pk()
    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    voucher_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )
    min_order_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )
    max_discount: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
    )
    seller_id: Mapped[uuid.UUID | None] = uuid_fk("sellers.seller_id", nullable=True)
    valid_from: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    valid_to: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    usage_limit: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    used_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    per_buyer_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    __table_args__ = (
        CheckConstraint(
            "voucher_type IN ('percentage', 'fixed', 'shipping')",
            name="chk_voucher_type",
        ),
        CheckConstraint("used_count >= 0", name="chk_voucher_used_count"),
        Index("idx_vouchers_code", "code"),
    )


class VoucherRedemption(Base, CreatedAtMixin):
    """One use of a voucher by a buyer on an order."""

    __tablename__ = "voucher_redemptions"

    redemption_id: Mapped[uuid.UUID] = uuid_pk()
    voucher_id: Mapped[uuid.UUID] = uuid_fk("vouchers.voucher_id")
    buyer_id: Mapped[uuid.UUID] = uuid_fk("buyers.buyer_id")
    order_id: Mapped[uuid.UUID] = uuid_fk("orders.order_id", ondelete="CASCADE")

    __table_args__ = (
        Index("idx_voucher_redemptions_voucher_buyer", "voucher_id", "buyer_id"),
    )
