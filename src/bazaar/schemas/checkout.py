"""Checkout schemas: address, payment, submission payload and results."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from bazaar.schemas.pricing import PricingResult, SellerPricing


class PaymentMethod(str, Enum):
    CARD = "card"
    GCASH = "gcash"
    PAYMAYA = "paymaya"
    COD = "cod"


class ShippingAddress(BaseModel):
    full_name: str = ""
    street: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    phone: str = ""
    barangay: str | None = None


class PaymentSelection(BaseModel):
    """Chosen payment method; card and wallet details are only checked for shape."""

    method: PaymentMethod | None = None
    card_number: str | None = None
    card_name: str | None = None
    expiry_date: str | None = None
    cvv: str | None = None
    wallet_number: str | None = None


class CheckoutLine(BaseModel):
    """A priced line item as submitted to the order gateway."""

    item_id: str | None = None
    product_id: str
    seller_id: str
    variant_id: str | None = None
    variant_name: str | None = None
    product_name: str
    image_url: str | None = None
    quantity: int = Field(..., ge=1)
    unit_price: Decimal
    campaign_discount_per_unit: Decimal = Decimal("0")
    campaign_id: str | None = None
    registry_item_id: str | None = None


class CheckoutPayload(BaseModel):
    """One transactional checkout request, fanned out into one order per seller."""

    transaction_id: str
    buyer_id: str
    items: list[CheckoutLine] = Field(..., min_length=1)
    sellers: list[SellerPricing]
    total_amount: Decimal
    tax: Decimal
    shipping_fee: Decimal
    discount_amount: Decimal
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    bazcoins_redeemed: int = Field(0, ge=0)
    bazcoins_earned: int = Field(0, ge=0)
    voucher_ids: list[str] = []
    selected_address_id: str | None = None
    from_cart: bool = True


class CheckoutResult(BaseModel):
    """Response of the order gateway."""

    success: bool
    transaction_id: str | None = None
    order_ids: list[str] = []
    new_bazcoin_balance: int | None = None
    error: str | None = None


class OrderResult(BaseModel):
    """Successful submission as seen by the presentation layer."""

    transaction_id: str
    order_ids: list[str]
    new_bazcoin_balance: int | None = None
    pricing: PricingResult


class CheckoutFailure(BaseModel):
    """Failed submission; nothing was placed and no local state changed."""

    message: str
    field_errors: dict[str, str] = {}
    retryable: bool = True


class CheckoutRequest(BaseModel):
    """Schema for the HTTP checkout submission."""

    item_ids: list[str] = Field(..., min_length=1)
    shipping_address: ShippingAddress | None = None
    address_id: str | None = None
    payment: PaymentSelection
    voucher_codes: list[str] = []
    use_bazcoins: bool = False
