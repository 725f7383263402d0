"""Cart and cart item models."""

import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bazaar.core.database import Base
from bazaar.models.base import CreatedAtMixin, TimestampMixin, uuid_fk, uuid_pk

if TYPE_CHECKING:
    from bazaar.models.buyer import Buyer
    from bazaar.models.product import Product, ProductVariant


class Cart(Base, TimestampMixin):
    """One persistent cart per buyer."""

    __tablename__ = "carts"

    cart_id: Mapped[uuid.UUID] = uuid_pk()
    buyer_id: Mapped[uuid.UUID] = uuid_fk("buyers.buyer_id", ondelete="CASCADE")

    buyer: Mapped["Buyer"] = relationship("Buyer", back_populates="cart")
    items: Mapped[List["CartItem"]] = relationship(
        "CartItem", back_populates="cart", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("uq_carts_buyer", "buyer_id", unique=True),)


class CartItem(Base, CreatedAtMixin):
    """A product (and optional variant) placed in a cart."""

    __tablename__ = "cart_items"

    item_id: Mapped[uuid.UUID] = uuid_pk()
    cart_id: Mapped[uuid.UUID] = uuid_fk("carts.cart_id", ondelete="CASCADE")
    product_id: Mapped[uuid.UUID] = uuid_fk("products.product_id")
    variant_id: Mapped[uuid.UUID | None] = uuid_fk(
        "product_variants.variant_id", nullable=True, ondelete="SET NULL"
    )
    registry_item_id: Mapped[uuid.UUID | None] = uuid_fk(
        "registry_items.registry_item_id", nullable=True, ondelete="SET NULL"
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    # Relationships
    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")
    product: Mapped["Product"] = relationship("Product")
    variant: Mapped["ProductVariant | None"] = relationship("ProductVariant")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_cart_item_quantity_positive"),
        Index("idx_cart_items_cart_created", "cart_id", "created_at"),
        Index("idx_cart_items_cart_product", "cart_id", "product_id", "variant_id"),
    )
