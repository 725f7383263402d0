"""Gift registry items."""

import uuid

from sqlalchemy import CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column

from bazaar.core.database import Base
from bazaar.models.base import TimestampMixin, uuid_fk, uuid_pk


class RegistryItem(Base, TimestampMixin):
    """A product a registry owner asked for; received_qty grows as gifts are bought."""

    __tablename__ = "registry_items"

    registry_item_id: Mapped[uuid.UUID] = uuid_pk()
    owner_id: Mapped[uuid.UUID] = uuid_fk("buyers.buyer_id", ondelete="CASCADE")
    product_id: Mapped[uuid.UUID] = uuid_fk("products.product_id")
    variant_id: Mapped[uuid.UUID | None] = uuid_fk("product_variants.variant_id", nullable=True)
    requested_qty: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    received_qty: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    __table_args__ = (
        CheckConstraint("requested_qty > 0", name="chk_registry_requested_positive"),
        CheckConstraint("received_qty >= 0", name="chk_registry_received_positive"),
    )
