"""Discount campaign models."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bazaar.core.database import Base
from bazaar.models.base import TimestampMixin, uuid_fk, uuid_pk


class DiscountCampaign(Base, TimestampMixin):
    """Time-bound markdown applied to a set of products."""

    __tablename__ = "discount_campaigns"

    campaign_id: Mapped[uuid.UUID] = uuid_pk()
    seller_id: Mapped[uuid.UUID | None] = uuid_fk("sellers.seller_id", nullable=True)
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    discount_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    max_discount_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
    )
    starts_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    ends_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    products: Mapped[List["ProductDiscount"]] = relationship(
        "ProductDiscount", back_populates="campaign", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="chk_discount_campaign_time_range"),
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed_amount')",
            name="chk_discount_campaign_type",
        ),
        CheckConstraint("discount_value >= 0", name="chk_discount_campaign_value"),
        Index("idx_discount_campaigns_window", "is_active", "starts_at", "ends_at"),
    )


class ProductDiscount(Base):
    """Links a product to a discount campaign."""

    __tablename__ = "product_discounts"

    campaign_id: Mapped[uuid.UUID] = uuid_fk(
        "discount_campaigns.campaign_id", ondelete="CASCADE", primary_key=True
    )
    product_id: Mapped[uuid.UUID] = uuid_fk(
        "products.product_id", ondelete="CASCADE", primary_key=True
    )

    campaign: Mapped["DiscountCampaign"] = relationship(
        "DiscountCampaign", back_populates="products"
    )

    __table_args__ = (Index("idx_product_discounts_product", "product_id"),)
