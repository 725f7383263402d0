"""Product and variant models."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bazaar.core.database import Base
from bazaar.models.base import TimestampMixin, uuid_fk, uuid_pk

if TYPE_CHECKING:
    from bazaar.models.buyer import Seller


class Product(Base, TimestampMixin):
    """Product listed by a seller."""

    __tablename__ = "products"

    product_id: Mapped[uuid.UUID] = uuid_pk()
    seller_id: Mapped[uuid.UUID] = uuid_fk("sellers.seller_id")
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    image_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    original_price: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
    )
    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    is_free_shipping: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    # Relationships
    seller: Mapped["Seller"] = relationship("Seller", back_populates="products")
    variants: Mapped[List["ProductVariant"]] = relationship(
        "ProductVariant", back_populates="product"
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="chk_product_stock_positive"),
        CheckConstraint("price >= 0", name="chk_product_price_positive"),
        Index("idx_products_seller", "seller_id"),
    )


class ProductVariant(Base, TimestampMixin):
    """A purchasable option of a product with its own price and stock."""

    __tablename__ = "product_variants"

    variant_id: Mapped[uuid.UUID] = uuid_pk()
    product_id: Mapped[uuid.UUID] = uuid_fk("products.product_id", ondelete="CASCADE")
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    price: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
    )
    original_price: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
    )
    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    image_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    product: Mapped["Product"] = relationship("Product", back_populates="variants")

    __table_args__ = (
        CheckConstraint("stock >= 0", name="chk_variant_stock_positive"),
        Index("idx_variants_product", "product_id"),
    )
