"""Buyer, seller and address models."""

import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bazaar.core.database import Base
from bazaar.models.base import TimestampMixin, uuid_fk, uuid_pk

if TYPE_CHECKING:
    from bazaar.models.cart import Cart
    from bazaar.models.order import Order
    from bazaar.models.product import Product


class Buyer(Base, TimestampMixin):
    """A shopper; carries the Bazcoin balance."""

    __tablename__ = "buyers"

    buyer_id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    bazcoins: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    # Relationships
    cart: Mapped["Cart | None"] = relationship("Cart", back_populates="buyer", uselist=False)
    addresses: Mapped[List["Address"]] = relationship("Address", back_populates="buyer")
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="buyer")

    __table_args__ = (
        CheckConstraint("bazcoins >= 0", name="chk_buyer_bazcoins_positive"),
        Index("idx_buyers_email", "email"),
    )


class Seller(Base, TimestampMixin):
    """An independent store selling on the marketplace."""

    __tablename__ = "sellers"

    seller_id: Mapped[uuid.UUID] = uuid_pk()
    store_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    avatar_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    products: Mapped[List["Product"]] = relationship("Product", back_populates="seller")


class Address(Base, TimestampMixin):
    """Saved shipping address of a buyer."""

    __tablename__ = "addresses"

    address_id: Mapped[uuid.UUID] = uuid_pk()
    buyer_id: Mapped[uuid.UUID] = uuid_fk("buyers.buyer_id", ondelete="CASCADE")
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    barangay: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    province: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    buyer: Mapped["Buyer"] = relationship("Buyer", back_populates="addresses")

    __table_args__ = (Index("idx_addresses_buyer", "buyer_id"),)
