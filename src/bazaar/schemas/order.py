"""Order schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class OrderItemResponse(BaseModel):
    """Schema for a line captured on an order."""

    product_id: UUID
    variant_id: UUID | None = None
    product_name: str
    image_url: str | None = None
    quantity: int
    unit_price: Decimal
    discount_per_unit: Decimal

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    """Schema for order response."""

    order_id: UUID
    order_number: str
    transaction_id: UUID
    seller_id: UUID
    status: str
    payment_method: str
    payment_status: str
    subtotal: Decimal
    campaign_discount: Decimal
    voucher_discount: Decimal
    shipping_fee: Decimal
    tax: Decimal
    total: Decimal
    bazcoins_redeemed: int
    bazcoins_earned: int
    items: list[OrderItemResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    """Schema for order list response."""

    orders: list[OrderResponse]
    total: int
