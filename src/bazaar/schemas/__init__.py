"""Pydantic schemas for the checkout engine and request/response validation."""

from bazaar.schemas.cart import (
    CartItemAdd,
    CartItemQuantityUpdate,
    CartItemsRemove,
    CartItemVariantUpdate,
    CartView,
    LineItem,
    ProductSnapshot,
    QuantityChangeResponse,
    SelectionState,
    SellerGroup,
    SellerSnapshot,
    VariantSnapshot,
)
from bazaar.schemas.checkout import (
    CheckoutFailure,
    CheckoutLine,
    CheckoutPayload,
    CheckoutRequest,
    CheckoutResult,
    OrderResult,
    PaymentMethod,
    PaymentSelection,
    ShippingAddress,
)
from bazaar.schemas.order import OrderItemResponse, OrderListResponse, OrderResponse
from bazaar.schemas.pricing import (
    CampaignDiscount,
    FixedCampaignDiscount,
    FixedVoucher,
    LineDiscount,
    LinePricing,
    PercentageCampaignDiscount,
    PercentageVoucher,
    PricingResult,
    PricingRules,
    QuoteRequest,
    SellerPricing,
    ShippingVoucher,
    Voucher,
)
from bazaar.schemas.voucher import (
    VoucherErrorCode,
    VoucherValidateRequest,
    VoucherValidateResponse,
    VoucherValidation,
)

__all__ = [
    "SelectionState",
    "SellerSnapshot",
    "VariantSnapshot",
    "ProductSnapshot",
    "LineItem",
    "SellerGroup",
    "CartView",
    "CartItemAdd",
    "CartItemQuantityUpdate",
    "CartItemVariantUpdate",
    "CartItemsRemove",
    "QuantityChangeResponse",
    "CampaignDiscount",
    "PercentageCampaignDiscount",
    "FixedCampaignDiscount",
    "Voucher",
    "PercentageVoucher",
    "FixedVoucher",
    "ShippingVoucher",
    "PricingRules",
    "LineDiscount",
    "LinePricing",
    "SellerPricing",
    "PricingResult",
    "QuoteRequest",
    "VoucherErrorCode",
    "VoucherValidation",
    "VoucherValidateRequest",
    "VoucherValidateResponse",
    "ShippingAddress",
    "PaymentMethod",
    "PaymentSelection",
    "CheckoutLine",
    "CheckoutPayload",
    "CheckoutResult",
    "OrderResult",
    "CheckoutFailure",
    "CheckoutRequest",
    "OrderItemResponse",
    "OrderResponse",
    "OrderListResponse",
]
