"""Pricing schemas: campaign discounts, vouchers, rules and priced results."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from bazaar.core.config import settings

# ==================== Campaign Discounts ====================


class _CampaignDiscountBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    campaign_id: str
    campaign_name: str = ""
    value: Decimal = Field(..., ge=0)
    ends_at: datetime | None = None


class PercentageCampaignDiscount(_CampaignDiscountBase):
    """Percent off the unit price, optionally capped per unit."""

    kind: Literal["percentage"] = "percentage"
    max_discount_amount: Decimal | None = None


class FixedCampaignDiscount(_CampaignDiscountBase):
    """Fixed amount off the unit price."""

    kind: Literal["fixed_amount"] = "fixed_amount"


CampaignDiscount = Annotated[
    Union[PercentageCampaignDiscount, FixedCampaignDiscount],
    Field(discriminator="kind"),
]

# ==================== Vouchers ====================


class _VoucherBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    voucher_id: str
    code: str
    title: str = ""
    min_order_value: Decimal = Decimal("0")
    seller_id: str | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    usage_limit: int | None = None
    used_count: int = 0
    per_buyer_limit: int = 1
    is_active: bool = True

    @property
    def is_platform(self) -> bool:
        return self.seller_id is None


class PercentageVoucher(_VoucherBase):
    kind: Literal["percentage"] = "percentage"
    value: Decimal = Field(..., ge=0, le=100)
    max_discount: Decimal | None = None


class FixedVoucher(_VoucherBase):
    kind: Literal["fixed"] = "fixed"
    value: Decimal = Field(..., ge=0)


class ShippingVoucher(_VoucherBase):
    kind: Literal["shipping"] = "shipping"


Voucher = Annotated[
    Union[PercentageVoucher, FixedVoucher, ShippingVoucher],
    Field(discriminator="kind"),
]

# ==================== Rules ====================


class PricingRules(BaseModel):
    """Business constants the pricing functions depend on."""

    model_config = ConfigDict(frozen=True)

    tax_rate: Decimal = Decimal("0.12")
    checkout_shipping_fee: Decimal = Decimal("50")
    seller_shipping_fee: Decimal = Decimal("100")
    free_shipping_threshold: Decimal = Decimal("1000")
    bazcoin_earn_divisor: int = 10

    @classmethod
    def from_settings(cls) -> "PricingRules":
        return cls(
            tax_rate=settings.TAX_RATE,
            checkout_shipping_fee=settings.CHECKOUT_SHIPPING_FEE,
            seller_shipping_fee=settings.SELLER_SHIPPING_FEE,
            free_shipping_threshold=settings.FREE_SHIPPING_THRESHOLD,
            bazcoin_earn_divisor=settings.BAZCOIN_EARN_DIVISOR,
        )

# ==================== Results ====================


class LineDiscount(BaseModel):
    """Outcome of applying one campaign discount to one line."""

    model_config = ConfigDict(frozen=True)

    discount_per_unit: Decimal
    discount_total: Decimal
    discounted_unit_price: Decimal


class LinePricing(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    variant_id: str | None
    seller_id: str
    quantity: int
    unit_price: Decimal
    campaign_discount_per_unit: Decimal
    campaign_discount_total: Decimal
    discounted_unit_price: Decimal
    campaign_id: str | None = None


class SellerPricing(BaseModel):
    """A seller's slice of the priced totals; slices sum to the order totals."""

    model_config = ConfigDict(frozen=True)

    seller_id: str
    original_subtotal: Decimal
    campaign_discount: Decimal
    subtotal_after_campaign: Decimal
    shipping_fee: Decimal
    voucher_discount: Decimal
    bazcoins_redeemed: Decimal
    bazcoins_earned: Decimal
    tax: Decimal
    total: Decimal
    voucher_id: str | None = None


class PricingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_subtotal: Decimal
    campaign_discount_total: Decimal
    subtotal_after_campaign: Decimal
    shipping_fee: Decimal
    voucher_discount: Decimal
    bazcoins_redeemed: int
    tax: Decimal
    grand_total: Decimal
    bazcoins_earned: int
    lines: list[LinePricing]
    sellers: list[SellerPricing]
    applied_voucher_ids: list[str] = []

    @property
    def bazcoin_delta(self) -> int:
        return self.bazcoins_earned - self.bazcoins_redeemed


class QuoteRequest(BaseModel):
    """Schema for a server-side pricing quote."""

    item_ids: list[str] = Field(..., min_length=1)
    voucher_codes: list[str] = []
    use_bazcoins: bool = False
