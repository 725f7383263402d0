"""Cart schemas: line items, seller groups and cart views."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SelectionState(str, Enum):
    """Folded inclusion state of a set of lines."""

    NONE = "none"
    SOME = "some"
    ALL = "all"


class SellerSnapshot(BaseModel):
    """Seller profile captured alongside a cart line."""

    model_config = ConfigDict(frozen=True)

    seller_id: str
    store_name: str = ""
    avatar_url: str | None = None


class VariantSnapshot(BaseModel):
    """Chosen product variant; its own price and stock override the product's."""

    model_config = ConfigDict(frozen=True)

    variant_id: str
    name: str | None = None
    price: Decimal | None = None
    original_price: Decimal | None = None
    stock: int = Field(0, ge=0)
    image_url: str | None = None


class ProductSnapshot(BaseModel):
    """Product fields a cart line needs for pricing and display."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    price: Decimal = Field(..., ge=0)
    original_price: Decimal | None = None
    stock: int = Field(0, ge=0)
    is_free_shipping: bool = False
    image_url: str | None = None
    seller: SellerSnapshot


class LineItem(BaseModel):
    """One product (plus optional variant) and its quantity in the cart.

    Instances are immutable; every mutation produces a new line so that
    snapshots taken before an optimistic change stay intact.
    """

    model_config = ConfigDict(frozen=True)

    item_id: str | None = None
    product: ProductSnapshot
    variant: VariantSnapshot | None = None
    quantity: int = Field(..., ge=0)
    included: bool = True
    registry_item_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def product_id(self) -> str:
        return self.product.product_id

    @property
    def variant_id(self) -> str | None:
        return self.variant.variant_id if self.variant else None

    @property
    def seller_id(self) -> str:
        return self.product.seller.seller_id

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.product_id, self.variant_id)

    @property
    def free_shipping(self) -> bool:
        return self.product.is_free_shipping

    @property
    def effective_price(self) -> Decimal:
        if self.variant is not None and self.variant.price is not None:
            return self.variant.price
        return self.product.price

    @property
    def effective_original_price(self) -> Decimal:
        if self.variant is not None and self.variant.original_price is not None:
            return self.variant.original_price
        if self.product.original_price is not None:
            return self.product.original_price
        return self.effective_price

    @property
    def effective_stock(self) -> int:
        if self.variant is not None:
            return self.variant.stock
        return self.product.stock

    @property
    def line_total(self) -> Decimal:
        return self.effective_price * self.quantity


class SellerGroup(BaseModel):
    """Derived per-seller slice of the cart; never persisted."""

    seller: SellerSnapshot
    items: list[LineItem]
    subtotal: Decimal
    shipping_fee: Decimal
    free_shipping_eligible: bool
    selection: SelectionState

    @property
    def seller_id(self) -> str:
        return self.seller.seller_id

    @property
    def last_activity(self) -> datetime:
        return max(item.created_at for item in self.items)


class CartView(BaseModel):
    """Grouped cart returned to the presentation layer."""

    cart_id: str
    groups: list[SellerGroup]
    selection: SelectionState
    item_count: int
    selected_count: int


class CartItemAdd(BaseModel):
    """Schema for add-to-cart request."""

    product_id: str
    variant_id: str | None = None
    quantity: int = Field(1, ge=1)
    registry_item_id: str | None = None


class CartItemQuantityUpdate(BaseModel):
    """Schema for quantity change request."""

    quantity: int = Field(..., ge=0)


class CartItemVariantUpdate(BaseModel):
    """Schema for variant change request."""

    variant_id: str
    quantity: int | None = Field(None, ge=0)


class CartItemsRemove(BaseModel):
    """Schema for bulk removal request."""

    item_ids: list[str] = Field(..., min_length=1)


class QuantityChangeResponse(BaseModel):
    """Clamped quantity actually recorded."""

    item_id: str
    quantity: int
    removed: bool
